"""Configuration modules for ctxbuild."""

from .install_config import InstallConfig, default_pack_root, resolve_install_config
from .options import BuilderOptions, ContextId

__all__ = [
    "InstallConfig",
    "resolve_install_config",
    "default_pack_root",
    "BuilderOptions",
    "ContextId",
]

"""
Install configuration resolution.

The install configuration tells ctxbuild where the external tools live. It is
resolved once from the process environment at startup and then passed to
every component explicitly:

    CMSIS_BUILD_ROOT     directory holding csolution, cpackget, cbuildgen (mandatory)
    CMSIS_PACK_ROOT      pack installation root (default: per-user cache)
    CMSIS_COMPILER_ROOT  toolchain configuration directory (default: <bin>/../etc)
"""

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from ctxbuild.exceptions import ConfigNotFoundError, ToolNotFoundError

BUILD_ROOT_VAR = "CMSIS_BUILD_ROOT"
PACK_ROOT_VAR = "CMSIS_PACK_ROOT"
COMPILER_ROOT_VAR = "CMSIS_COMPILER_ROOT"


@dataclass(frozen=True)
class InstallConfig:
    """Resolved on-disk locations of the tool installation."""

    bin_path: str = ""
    bin_extn: str = ""
    etc_path: str = ""
    pack_root: str = ""
    compiler_root: str = ""

    def is_valid(self) -> bool:
        """Check that the configuration points at a binary root."""
        return bool(self.bin_path)

    def tool_path(self, name: str) -> Path:
        """Get the path of a tool shipped in the binary root.

        Args:
            name: Tool name without extension (e.g., "csolution")

        Returns:
            Path to the tool binary

        Raises:
            ToolNotFoundError: If the configuration is empty or the binary is missing
        """
        if not self.is_valid():
            raise ToolNotFoundError(
                f"Cannot locate {name}: install configuration is not set",
                program=name,
            )
        path = Path(self.bin_path) / f"{name}{self.bin_extn}"
        if not path.is_file():
            raise ToolNotFoundError(f"Tool not found: {path}", program=str(path))
        return path

    def tool_environment(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Build the environment passed to child tools.

        Args:
            base: Environment to start from (default: current process environment)

        Returns:
            Copy of base with the binary root on PATH and the pack and
            compiler roots exported
        """
        env = dict(os.environ if base is None else base)
        if self.bin_path:
            current = env.get("PATH", "")
            env["PATH"] = self.bin_path + (os.pathsep + current if current else "")
        if self.pack_root:
            env[PACK_ROOT_VAR] = self.pack_root
        if self.compiler_root:
            env[COMPILER_ROOT_VAR] = self.compiler_root
        return env


def default_pack_root(environ: Mapping[str, str]) -> str:
    """Get the default pack root for the current platform."""
    if platform.system() == "Windows":
        local_app_data = environ.get("LOCALAPPDATA", "")
        if local_app_data:
            return str(Path(local_app_data) / "Arm" / "Packs")
    cache_home = environ.get("XDG_CACHE_HOME", "")
    if cache_home:
        return str(Path(cache_home) / "arm" / "packs")
    return str(Path.home() / ".cache" / "arm" / "packs")


def resolve_install_config(environ: Optional[Mapping[str, str]] = None) -> InstallConfig:
    """Resolve the install configuration from the environment.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Resolved InstallConfig

    Raises:
        ConfigNotFoundError: If CMSIS_BUILD_ROOT is unset or not a directory
    """
    if environ is None:
        environ = os.environ

    bin_root = environ.get(BUILD_ROOT_VAR, "")
    if not bin_root:
        raise ConfigNotFoundError(f"{BUILD_ROOT_VAR} environment variable is not set")

    bin_path = Path(bin_root).resolve()
    if not bin_path.is_dir():
        raise ConfigNotFoundError(
            f"{BUILD_ROOT_VAR} does not point to a directory: {bin_root}"
        )

    etc_path = (bin_path.parent / "etc").resolve()
    bin_extn = ".exe" if platform.system() == "Windows" else ""
    pack_root = environ.get(PACK_ROOT_VAR, "") or default_pack_root(environ)
    compiler_root = environ.get(COMPILER_ROOT_VAR, "") or str(etc_path)

    return InstallConfig(
        bin_path=str(bin_path),
        bin_extn=bin_extn,
        etc_path=str(etc_path),
        pack_root=pack_root,
        compiler_root=compiler_root,
    )

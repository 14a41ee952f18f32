"""Pack management for ctxbuild.

Packs are resolved and downloaded by the external cpackget installer; this
package only decides which packs to hand to it.
"""

from .installer import PackInstaller

__all__ = [
    "PackInstaller",
]

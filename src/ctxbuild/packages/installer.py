"""Missing pack installation.

This module asks csolution which packs a solution (or one of its contexts)
needs but are not installed, and installs each of them with cpackget into the
resolved pack root.

Context pipelines may run concurrently and share one pack root, so installer
invocations are serialised and a pack is installed at most once per run.
"""

import logging
import threading
from typing import List, Optional, Set

from ctxbuild.config import InstallConfig
from ctxbuild.exceptions import PackageInstallError, ToolInvocationError, ToolNotFoundError
from ctxbuild.runner import Runner
from ctxbuild.solution.listing import ListingService

logger = logging.getLogger(__name__)

INSTALLER_TOOL = "cpackget"


class PackInstaller:
    """Installs the packs csolution reports as missing."""

    def __init__(
        self,
        runner: Runner,
        install_config: InstallConfig,
        listing: ListingService,
        quiet: bool = True,
    ):
        """Initialize the pack installer.

        Args:
            runner: Runner used to invoke cpackget
            install_config: Resolved install configuration
            listing: Listing service reporting the missing packs
            quiet: Capture installer output only
        """
        self.runner = runner
        self.install_config = install_config
        self.listing = listing
        self.quiet = quiet
        self._lock = threading.Lock()
        self._installed: Set[str] = set()

    def missing_packs(self, context: Optional[str] = None) -> List[str]:
        """Get the distinct missing packs, in the order csolution reports them."""
        packs = self.listing._list_packs(
            quiet=True, missing=True, context=context, use_filter=False
        )
        return list(dict.fromkeys(packs))

    def install_missing_packs(self, context: Optional[str] = None) -> List[str]:
        """Install every missing pack of the solution or of one context.

        Args:
            context: Restrict the query to one context (default: whole solution)

        Returns:
            Packs installed by this call (empty when nothing was missing)

        Raises:
            ToolNotFoundError: If csolution or cpackget cannot be located
            ToolInvocationError: If csolution fails to report missing packs
            PackageInstallError: If cpackget fails to install a pack
        """
        packs = self.missing_packs(context)
        if not packs:
            logger.debug("No missing packs%s", f" for {context}" if context else "")
            return []

        installer = self.install_config.tool_path(INSTALLER_TOOL)
        installed = []
        with self._lock:
            for pack in packs:
                if pack in self._installed:
                    continue
                logger.info("Installing pack %s", pack)
                args = ["add", pack, "--agree-embedded-license"]
                if self.install_config.pack_root:
                    args.append(f"--pack-root={self.install_config.pack_root}")
                try:
                    self.runner.execute(str(installer), self.quiet, *args)
                except ToolNotFoundError:
                    raise
                except ToolInvocationError as e:
                    raise PackageInstallError(f"Failed to install pack {pack}: {e}") from e
                self._installed.add(pack)
                installed.append(pack)

        return installed

"""
Context selection.

Decides which contexts of a solution take part in a run, combining the
user's explicit context list and filter with the contexts discovered through
csolution or declared in a build-index manifest.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ctxbuild.config import BuilderOptions
from ctxbuild.exceptions import ContextNotFoundError, NoContextSelectedError
from ctxbuild.solution.listing import ListingService, filter_items
from ctxbuild.solution.manifest import get_selected_contexts

logger = logging.getLogger(__name__)


def filter_contexts(contexts: List[str], pattern: str) -> List[str]:
    """Keep the contexts containing pattern as a substring, order preserved."""
    return filter_items(contexts, pattern)


class ContextSelector:
    """Computes the ordered, de-duplicated set of contexts to act on.

    Example usage:
        selector = ContextSelector(listing, options, index_path=idx)
        contexts = selector.select()
    """

    def __init__(
        self,
        listing: ListingService,
        options: Optional[BuilderOptions] = None,
        index_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the selector.

        Args:
            listing: Listing service used to discover contexts through csolution
            options: Builder options (explicit contexts and filter)
            index_path: Build-index manifest used when reading from a manifest
        """
        self.listing = listing
        self.options = options if options is not None else BuilderOptions()
        self.index_path = index_path

    def list_contexts(self, from_manifest: bool = False, require_all: bool = False) -> List[str]:
        """
        Discover the contexts matching the configured filter.

        Args:
            from_manifest: Read the build-index manifest instead of asking csolution
            require_all: Treat an empty result as an error

        Returns:
            Context identifiers in discovery order, duplicates removed

        Raises:
            NoContextSelectedError: If require_all is set and nothing matched
            ManifestNotFoundError: If reading from a missing manifest
            ToolInvocationError: If csolution fails
        """
        if from_manifest:
            if self.index_path is None:
                raise NoContextSelectedError("No build index available to read contexts from")
            contexts = filter_contexts(get_selected_contexts(self.index_path), self.options.filter)
        else:
            contexts = self.listing._list_contexts(quiet=True)
        contexts = list(dict.fromkeys(contexts))

        if require_all and not contexts:
            if self.options.filter:
                raise NoContextSelectedError(f"No context matches filter '{self.options.filter}'")
            raise NoContextSelectedError("No context found in solution")
        return contexts

    def _known_contexts(self, from_manifest: bool) -> List[str]:
        """All contexts of the solution, ignoring the filter."""
        if from_manifest:
            if self.index_path is None:
                raise NoContextSelectedError("No build index available to read contexts from")
            return get_selected_contexts(self.index_path)

        return self.listing._list_contexts(quiet=True, use_filter=False)

    def select(self, from_manifest: bool = False) -> List[str]:
        """
        Resolve the contexts a build acts on.

        An explicit context list is used verbatim, in the given order, after
        every entry has been checked against the known contexts. Otherwise all
        discovered contexts matching the filter are used.

        Args:
            from_manifest: Validate and discover against the manifest instead of csolution

        Returns:
            Ordered, duplicate-free context identifiers

        Raises:
            ContextNotFoundError: If any explicit context is unknown
            NoContextSelectedError: If nothing was requested and nothing was found
        """
        requested = list(dict.fromkeys(self.options.contexts))
        if not requested:
            return self.list_contexts(from_manifest=from_manifest, require_all=True)

        known = set(self._known_contexts(from_manifest))
        unknown = [context for context in requested if context not in known]
        if unknown:
            raise ContextNotFoundError(
                f"Unknown context(s): {', '.join(unknown)}", contexts=unknown
            )

        logger.debug("Selected contexts: %s", ", ".join(requested))
        return requested

"""Solution queries for ctxbuild.

This package discovers what a solution contains:
- Listing of contexts, toolchains, packs and environment through csolution
- Build-index manifest resolution
- Context selection for a build
"""

from .listing import ListingService, filter_items, split_lines
from .manifest import (
    BuildIndex,
    ContextRecord,
    build_index_path,
    get_cprj_file_path,
    get_selected_contexts,
    load_build_index,
)
from .selector import ContextSelector, filter_contexts

__all__ = [
    "ListingService",
    "split_lines",
    "filter_items",
    "BuildIndex",
    "ContextRecord",
    "load_build_index",
    "get_selected_contexts",
    "get_cprj_file_path",
    "build_index_path",
    "ContextSelector",
    "filter_contexts",
]

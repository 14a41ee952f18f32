"""
Build system components for ctxbuild.

This module provides the build implementation including:
- Per-context orchestration of generation, pack installation and native build
- Native build of a single project descriptor (cbuildgen, cmake, ninja)
"""

from .native_builder import BuildDirs, NativeBuilder
from .orchestrator import BuildOrchestrator, BuildResult, ContextResult

__all__ = [
    "BuildOrchestrator",
    "BuildResult",
    "ContextResult",
    "NativeBuilder",
    "BuildDirs",
]

"""Exception hierarchy for ctxbuild.

Every error raised by the orchestration engine derives from CtxBuildError so
the CLI can report them uniformly. Listing, selection and manifest errors are
raised immediately (fail fast); only the build orchestrator aggregates
failures across contexts into a single BuildFailedError.
"""

from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from ctxbuild.build.orchestrator import BuildResult


class CtxBuildError(Exception):
    """Base exception for all ctxbuild errors."""

    pass


class ConfigNotFoundError(CtxBuildError):
    """Raised when the install configuration cannot be resolved."""

    pass


class ToolInvocationError(CtxBuildError):
    """Raised when an external tool fails or cannot be run."""

    def __init__(
        self,
        message: str,
        program: str = "",
        returncode: Optional[int] = None,
        output: str = "",
    ):
        super().__init__(message)
        self.program = program
        self.returncode = returncode
        self.output = output


class ToolNotFoundError(ToolInvocationError):
    """Raised when an external tool binary does not exist at its resolved path."""

    pass


class ManifestNotFoundError(CtxBuildError):
    """Raised when the build-index manifest is missing or unreadable."""

    pass


class ManifestParseError(ManifestNotFoundError):
    """Raised when the build-index manifest is not valid YAML or has bad records."""

    pass


class ContextNotFoundError(CtxBuildError):
    """Raised when a requested context is not part of the known universe."""

    def __init__(self, message: str, contexts: Sequence[str] = ()):
        super().__init__(message)
        self.contexts = list(contexts)


class NoContextSelectedError(CtxBuildError):
    """Raised when a selection that requires contexts ends up empty."""

    pass


class PackageInstallError(CtxBuildError):
    """Raised when the package installer fails."""

    pass


class NativeBuildError(CtxBuildError):
    """Raised when the native build of a project descriptor cannot proceed."""

    pass


class BuildFailedError(CtxBuildError):
    """Raised when one or more contexts failed during a build run."""

    def __init__(
        self,
        message: str,
        failed_contexts: List[str],
        result: Optional["BuildResult"] = None,
    ):
        super().__init__(message)
        self.failed_contexts = failed_contexts
        self.result = result

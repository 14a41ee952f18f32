"""Builder options and context identifiers."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class BuilderOptions:
    """User-selected options for one ctxbuild invocation."""

    contexts: List[str] = field(default_factory=list)
    filter: str = ""
    schema: bool = False
    packs: bool = False
    output_dir: Optional[Path] = None
    intermediate_dir: Optional[Path] = None
    toolchain: str = ""
    generator: str = "Ninja"
    clean: bool = False
    rebuild: bool = False
    jobs: int = 1
    workers: int = 1
    fail_fast: bool = False
    update_rte: bool = False
    quiet: bool = False
    verbose: bool = False
    debug: bool = False


@dataclass(frozen=True)
class ContextId:
    """Parts of a context identifier `<project>.<buildType>+<target>`.

    Example:
        ContextId.parse("test.Debug+CM0")
        # ContextId(project='test', build_type='Debug', target='CM0')
    """

    project: str
    build_type: str
    target: str

    @classmethod
    def parse(cls, context: str) -> "ContextId":
        """Split a context identifier into its parts.

        Build type and target are optional; missing parts are empty.
        """
        name, _, target = context.partition("+")
        project, _, build_type = name.partition(".")
        return cls(project=project, build_type=build_type, target=target)

    def __str__(self) -> str:
        text = self.project
        if self.build_type:
            text += f".{self.build_type}"
        if self.target:
            text += f"+{self.target}"
        return text

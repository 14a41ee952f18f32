"""
Build orchestration for ctxbuild solutions.

This module coordinates a complete solution build. It resolves the contexts
to build and then drives, per context, the external tool pipeline:
- Generation of the project descriptor and build index (csolution convert)
- Installation of missing packs (cpackget, only with the packs option)
- Descriptor lookup in the build index
- Native build (cbuildgen + cmake/ninja)

A failing context does not stop its siblings unless fail-fast is enabled.
The run fails at the end with one error naming every failed context.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from tqdm import tqdm

from ctxbuild.config import BuilderOptions, ContextId, InstallConfig
from ctxbuild.exceptions import (
    BuildFailedError,
    ConfigNotFoundError,
    CtxBuildError,
)
from ctxbuild.packages import PackInstaller
from ctxbuild.runner import Runner
from ctxbuild.solution import (
    ContextSelector,
    ListingService,
    build_index_path,
    get_cprj_file_path,
)
from ctxbuild.solution.listing import SOLUTION_TOOL

from .native_builder import NativeBuilder

logger = logging.getLogger(__name__)

STAGE_GENERATE = "generate"
STAGE_PACKS = "packs"
STAGE_RESOLVE = "resolve"
STAGE_BUILD = "build"
STAGE_SKIPPED = "skipped"
STAGE_DONE = "done"


@dataclass
class ContextResult:
    """Outcome of one context pipeline."""

    context: str
    success: bool
    stage: str
    message: str = ""
    cprj_path: Optional[Path] = None
    build_time: float = 0.0

    @property
    def skipped(self) -> bool:
        return self.stage == STAGE_SKIPPED


@dataclass
class BuildResult:
    """Result of a complete solution build."""

    results: List[ContextResult] = field(default_factory=list)
    build_time: float = 0.0

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)

    @property
    def failed_contexts(self) -> List[str]:
        return [r.context for r in self.results if not r.success and not r.skipped]

    @property
    def skipped_contexts(self) -> List[str]:
        return [r.context for r in self.results if r.skipped]


class BuildOrchestrator:
    """
    Orchestrates the build of the selected contexts of a solution.

    Example usage:
        orchestrator = BuildOrchestrator(
            runner=CommandRunner(env=config.tool_environment()),
            install_config=config,
            options=BuilderOptions(contexts=["app.Debug+CM0"], packs=True),
            input_file="app.csolution.yml",
        )
        result = orchestrator.build()
    """

    def __init__(
        self,
        runner: Runner,
        install_config: InstallConfig,
        options: Optional[BuilderOptions] = None,
        input_file: Union[str, Path] = "",
        show_progress: bool = False,
    ):
        """
        Initialize build orchestrator.

        Args:
            runner: Runner used for every external tool
            install_config: Resolved install configuration
            options: Builder options for this invocation
            input_file: Path to the *.csolution.yml file
            show_progress: Display a progress bar over the contexts
        """
        self.runner = runner
        self.install_config = install_config
        self.options = options if options is not None else BuilderOptions()
        self.input_file = str(input_file)
        self.show_progress = show_progress

        self.listing = ListingService(runner, install_config, self.options, self.input_file)
        self.selector = ContextSelector(self.listing, self.options)
        self.installer = PackInstaller(
            runner, install_config, self.listing, quiet=not self.options.verbose
        )
        self.native_builder = NativeBuilder(runner, install_config, self.options)

        self._generate_lock = threading.Lock()
        self._abort = threading.Event()

    @property
    def index_path(self) -> Path:
        """Build-index manifest written by csolution convert."""
        return build_index_path(self.input_file, self.options.output_dir)

    def install_missing_packs(self) -> List[str]:
        """Install the missing packs of the whole solution.

        Returns:
            Packs that were installed
        """
        return self.installer.install_missing_packs()

    def build(self) -> BuildResult:
        """
        Build every selected context.

        Returns:
            BuildResult when all contexts built successfully

        Raises:
            ConfigNotFoundError: If the install configuration is not set
            FileNotFoundError: If the solution file does not exist
            NoContextSelectedError: If no context is resolvable
            ContextNotFoundError: If an explicitly requested context is unknown
            BuildFailedError: If any context failed (after all were attempted)
        """
        start_time = time.time()
        self._abort.clear()

        if not self.install_config.is_valid():
            raise ConfigNotFoundError("Install configuration is not set")
        if not Path(self.input_file).is_file():
            raise FileNotFoundError(f"Solution file not found: {self.input_file}")

        contexts = self.selector.select()
        logger.info("Building %d context(s)", len(contexts))

        results = self._run_pipelines(contexts)
        result = BuildResult(results=results, build_time=time.time() - start_time)

        if not result.success:
            raise BuildFailedError(
                self._failure_message(result), result.failed_contexts, result
            )
        return result

    def _run_pipelines(self, contexts: List[str]) -> List[ContextResult]:
        """Run every context pipeline and return results in selection order."""
        workers = max(1, min(self.options.workers, len(contexts)))
        with tqdm(
            total=len(contexts),
            desc="Building",
            unit="context",
            disable=not self.show_progress,
        ) as progress:

            def run(context: str) -> ContextResult:
                outcome = self._build_context(context)
                progress.update(1)
                return outcome

            if workers == 1:
                return [run(context) for context in contexts]

            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(run, context) for context in contexts]
                return [future.result() for future in futures]

    def _build_context(self, context: str) -> ContextResult:
        """Run the generate, packs, resolve and build stages for one context."""
        if self._abort.is_set():
            return ContextResult(
                context=context,
                success=False,
                stage=STAGE_SKIPPED,
                message="not attempted after an earlier failure",
            )

        start_time = time.time()
        parts = ContextId.parse(context)
        logger.info(
            "Building context %s (project %s, build type %s, target %s)",
            context,
            parts.project,
            parts.build_type or "-",
            parts.target or "-",
        )

        stage = STAGE_GENERATE
        cprj_path = None
        try:
            with self._generate_lock:
                self._generate(context)
                if self.options.packs:
                    stage = STAGE_PACKS
                    self.installer.install_missing_packs(context)
                stage = STAGE_RESOLVE
                cprj_path = get_cprj_file_path(self.index_path, context)

            stage = STAGE_BUILD
            self.native_builder.build_cprj(cprj_path, context)

        except (CtxBuildError, OSError) as e:
            logger.error("%s: %s stage failed: %s", context, stage, e)
            if self.options.fail_fast:
                self._abort.set()
            return ContextResult(
                context=context,
                success=False,
                stage=stage,
                message=str(e),
                cprj_path=cprj_path,
                build_time=time.time() - start_time,
            )

        logger.info("%s: build successful", context)
        return ContextResult(
            context=context,
            success=True,
            stage=STAGE_DONE,
            message="Build successful",
            cprj_path=cprj_path,
            build_time=time.time() - start_time,
        )

    def _generate(self, context: str) -> None:
        """Regenerate the project descriptor and build index for a context."""
        tool = self.install_config.tool_path(SOLUTION_TOOL)
        args = [
            "convert",
            f"--solution={self.input_file}",
            f"--context={context}",
        ]
        if self.options.output_dir:
            args.append(f"--output={self.options.output_dir}")
        if self.options.toolchain:
            args.append(f"--toolchain={self.options.toolchain}")
        if self.options.schema:
            args.append("--schema")
        if self.options.update_rte:
            args.append("--update-rte")

        self.runner.execute(str(tool), not self.options.verbose, *args)

    @staticmethod
    def _failure_message(result: BuildResult) -> str:
        failed = [r for r in result.results if not r.success and not r.skipped]
        lines = [f"Build failed for {len(failed)} context(s): {', '.join(r.context for r in failed)}"]
        for r in failed:
            lines.append(f"  {r.context} [{r.stage}]: {r.message}")
        if result.skipped_contexts:
            lines.append(f"Not attempted: {', '.join(result.skipped_contexts)}")
        return "\n".join(lines)

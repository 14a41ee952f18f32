"""Native build of a generated project descriptor.

This module turns one project descriptor (`*.cprj`) into build outputs:

1. cbuildgen generates CMakeLists.txt into the intermediate directory
2. cmake configures the build plan with the selected generator (Ninja)
3. cmake --build executes it

Design:
    - All tools run through the Runner interface
    - Output and intermediate directories default to OutDir/ and IntDir/
      next to the descriptor; with explicit directories every context gets
      its own subdirectory so concurrent builds never collide
    - Clean removes both directories; rebuild cleans then builds
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ctxbuild.config import BuilderOptions, InstallConfig
from ctxbuild.exceptions import NativeBuildError
from ctxbuild.runner import Runner

logger = logging.getLogger(__name__)

GENERATOR_TOOL = "cbuildgen"
CMAKE_TOOL = "cmake"


@dataclass
class BuildDirs:
    """Output and intermediate directories of one descriptor build."""

    out_dir: Path
    int_dir: Path


class NativeBuilder:
    """Generates and executes the native build of project descriptors.

    Example usage:
        builder = NativeBuilder(runner, install_config, options)
        dirs = builder.build_cprj(Path("out/app.Debug+CM0.cprj"))
    """

    def __init__(
        self,
        runner: Runner,
        install_config: InstallConfig,
        options: Optional[BuilderOptions] = None,
    ):
        """Initialize the native builder.

        Args:
            runner: Runner used for cbuildgen and cmake
            install_config: Resolved install configuration
            options: Builder options (directories, generator, jobs, clean flags)
        """
        self.runner = runner
        self.install_config = install_config
        self.options = options if options is not None else BuilderOptions()

    def get_build_dirs(self, cprj_path: Path, context: Optional[str] = None) -> BuildDirs:
        """Get the output and intermediate directories for a descriptor.

        Args:
            cprj_path: Path to the project descriptor
            context: Context name, used as subdirectory under explicit directories

        Returns:
            BuildDirs for this descriptor
        """
        name = context or cprj_path.stem
        base = cprj_path.parent

        if self.options.output_dir:
            out_dir = Path(self.options.output_dir) / name
        else:
            out_dir = base / "OutDir"

        if self.options.intermediate_dir:
            int_dir = Path(self.options.intermediate_dir) / name
        else:
            int_dir = base / "IntDir"

        return BuildDirs(out_dir=out_dir.resolve(), int_dir=int_dir.resolve())

    def clean(self, dirs: BuildDirs) -> None:
        """Remove the output and intermediate directories."""
        for directory in (dirs.int_dir, dirs.out_dir):
            if directory.exists():
                logger.info("Cleaning %s", directory)
                shutil.rmtree(directory)

    def build_cprj(self, cprj_path: Union[str, Path], context: Optional[str] = None) -> BuildDirs:
        """Build one project descriptor.

        Args:
            cprj_path: Path to the *.cprj file
            context: Context name the descriptor belongs to (optional)

        Returns:
            BuildDirs holding the build outputs

        Raises:
            NativeBuildError: If the descriptor does not exist
            ToolNotFoundError: If cbuildgen or cmake cannot be located
            ToolInvocationError: If a build tool fails
        """
        cprj = Path(cprj_path)
        if not cprj.is_file():
            raise NativeBuildError(f"Project descriptor not found: {cprj}")

        dirs = self.get_build_dirs(cprj, context)

        if self.options.clean or self.options.rebuild:
            self.clean(dirs)
            if not self.options.rebuild:
                return dirs

        self._generate(cprj, dirs)
        self._configure(dirs)
        self._execute(dirs)
        return dirs

    def _generate(self, cprj: Path, dirs: BuildDirs) -> None:
        generator = self.install_config.tool_path(GENERATOR_TOOL)
        args = [
            "cmake",
            str(cprj),
            f"--outdir={dirs.out_dir}",
            f"--intdir={dirs.int_dir}",
        ]
        if self.options.quiet:
            args.append("--quiet")
        if self.options.update_rte:
            args.append("--update-rte")

        logger.debug("Generating CMakeLists for %s", cprj.name)
        self.runner.execute(str(generator), self.options.quiet, *args)

        cmake_lists = dirs.int_dir / "CMakeLists.txt"
        if not cmake_lists.is_file():
            raise NativeBuildError(f"{GENERATOR_TOOL} did not generate {cmake_lists}")

    def _configure(self, dirs: BuildDirs) -> None:
        args = [
            "-G",
            self.options.generator,
            "-S",
            str(dirs.int_dir),
            "-B",
            str(dirs.int_dir),
            "-Wno-dev",
        ]
        if not self.options.debug:
            args.append("--log-level=ERROR")
        self.runner.execute(CMAKE_TOOL, self.options.quiet, *args)

    def _execute(self, dirs: BuildDirs) -> None:
        args = ["--build", str(dirs.int_dir)]
        if self.options.jobs > 1:
            args.extend(["-j", str(self.options.jobs)])
        if self.options.verbose:
            args.append("--verbose")
        self.runner.execute(CMAKE_TOOL, self.options.quiet, *args)

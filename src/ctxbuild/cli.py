"""
Command-line interface for ctxbuild.

This module provides the `ctxbuild` CLI tool for building the contexts of an
embedded solution and for querying what a solution contains.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ctxbuild import __version__
from ctxbuild.build import BuildOrchestrator, NativeBuilder
from ctxbuild.cli_utils import (
    BannerFormatter,
    ErrorFormatter,
    PathValidator,
    setup_logging,
)
from ctxbuild.config import BuilderOptions, resolve_install_config
from ctxbuild.exceptions import BuildFailedError, CtxBuildError
from ctxbuild.runner import CommandRunner
from ctxbuild.solution import ListingService
from ctxbuild.solution.manifest import CPRJ_SUFFIX, SOLUTION_SUFFIX

LIST_TOPICS = ("contexts", "toolchains", "packs", "environment")


@dataclass
class CommonArgs:
    """Flags shared by every command."""

    quiet: bool = False
    debug: bool = False
    verbose: bool = False
    log_file: Optional[Path] = None
    timeout: Optional[float] = None


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    input_file: Path
    common: CommonArgs = field(default_factory=CommonArgs)
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


@dataclass
class ListArgs:
    """Arguments for the list command."""

    topic: str
    input_file: Optional[Path] = None
    common: CommonArgs = field(default_factory=CommonArgs)
    filter: str = ""
    schema: bool = False
    missing: bool = False


@dataclass
class BuildCprjArgs:
    """Arguments for the buildcprj command."""

    cprj_file: Path
    common: CommonArgs = field(default_factory=CommonArgs)
    output_dir: Optional[Path] = None
    intermediate_dir: Optional[Path] = None
    generator: str = "Ninja"
    clean: bool = False
    rebuild: bool = False
    jobs: int = 1
    update_rte: bool = False


def _make_runner(common: CommonArgs, env: Dict[str, str]) -> CommandRunner:
    return CommandRunner(env=env, timeout=common.timeout)


def build_command(args: BuildArgs) -> int:
    """Build the contexts of a solution.

    Examples:
        ctxbuild build app.csolution.yml                        # Build every context
        ctxbuild build app.csolution.yml -c app.Debug+CM0       # Build one context
        ctxbuild build app.csolution.yml -f Release --packs     # Filter, install missing packs
        ctxbuild build app.csolution.yml -w 4 --fail-fast       # Four contexts at a time
    """
    problem = PathValidator.validate_input_file(args.input_file, SOLUTION_SUFFIX)
    if problem:
        ErrorFormatter.print_error("Error: Invalid input", problem)
        return 2

    try:
        config = resolve_install_config()
        options = BuilderOptions(
            contexts=args.contexts,
            filter=args.filter,
            schema=args.schema,
            packs=args.packs,
            output_dir=args.output_dir,
            intermediate_dir=args.intermediate_dir,
            toolchain=args.toolchain,
            generator=args.generator,
            clean=args.clean,
            rebuild=args.rebuild,
            jobs=args.jobs,
            workers=args.workers,
            fail_fast=args.fail_fast,
            update_rte=args.update_rte,
            quiet=args.common.quiet,
            verbose=args.common.verbose,
            debug=args.common.debug,
        )
        orchestrator = BuildOrchestrator(
            runner=_make_runner(args.common, config.tool_environment()),
            install_config=config,
            options=options,
            input_file=args.input_file,
            show_progress=not args.common.quiet and args.workers > 1,
        )

        result = orchestrator.build()
        if not args.common.quiet:
            BannerFormatter.print_summary(result)
            ErrorFormatter.print_success("Build successful!")
        return 0

    except BuildFailedError as e:
        if e.result is not None and not args.common.quiet:
            BannerFormatter.print_summary(e.result)
        return ErrorFormatter.handle_ctxbuild_error(e)
    except CtxBuildError as e:
        return ErrorFormatter.handle_ctxbuild_error(e)
    except FileNotFoundError as e:
        return ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        return ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        return ErrorFormatter.handle_unexpected_error(e, args.common.verbose)


def list_command(args: ListArgs) -> int:
    """List contexts, toolchains, packs or environment of a solution.

    Examples:
        ctxbuild list contexts app.csolution.yml
        ctxbuild list toolchains app.csolution.yml -f GCC
        ctxbuild list packs app.csolution.yml --missing
        ctxbuild list environment
    """
    if args.input_file is not None:
        problem = PathValidator.validate_input_file(args.input_file, SOLUTION_SUFFIX)
        if problem:
            ErrorFormatter.print_error("Error: Invalid input", problem)
            return 2
    elif args.topic != "environment":
        ErrorFormatter.print_error("Error: Missing input", f"list {args.topic} needs a *{SOLUTION_SUFFIX} file")
        return 2

    try:
        config = resolve_install_config()
        options = BuilderOptions(filter=args.filter, schema=args.schema)
        listing = ListingService(
            runner=_make_runner(args.common, config.tool_environment()),
            install_config=config,
            options=options,
            input_file=str(args.input_file) if args.input_file else "",
        )

        if args.topic == "contexts":
            listing.list_contexts()
        elif args.topic == "toolchains":
            listing.list_toolchains()
        elif args.topic == "packs":
            listing.list_packs(missing=args.missing)
        else:
            listing.list_environment()
        return 0

    except CtxBuildError as e:
        return ErrorFormatter.handle_ctxbuild_error(e)
    except KeyboardInterrupt:
        return ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        return ErrorFormatter.handle_unexpected_error(e, args.common.verbose)


def buildcprj_command(args: BuildCprjArgs) -> int:
    """Build a single generated project descriptor.

    Examples:
        ctxbuild buildcprj out/app.Debug+CM0.cprj
        ctxbuild buildcprj out/app.Debug+CM0.cprj --rebuild -j 8
    """
    problem = PathValidator.validate_input_file(args.cprj_file, CPRJ_SUFFIX)
    if problem:
        ErrorFormatter.print_error("Error: Invalid input", problem)
        return 2

    try:
        config = resolve_install_config()
        options = BuilderOptions(
            output_dir=args.output_dir,
            intermediate_dir=args.intermediate_dir,
            generator=args.generator,
            clean=args.clean,
            rebuild=args.rebuild,
            jobs=args.jobs,
            update_rte=args.update_rte,
            quiet=args.common.quiet,
            verbose=args.common.verbose,
            debug=args.common.debug,
        )
        builder = NativeBuilder(
            runner=_make_runner(args.common, config.tool_environment()),
            install_config=config,
            options=options,
        )
        dirs = builder.build_cprj(args.cprj_file)

        if not args.common.quiet:
            ErrorFormatter.print_success("Build successful!")
            print(f"Output: {dirs.out_dir}")
        return 0

    except CtxBuildError as e:
        return ErrorFormatter.handle_ctxbuild_error(e)
    except KeyboardInterrupt:
        return ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        return ErrorFormatter.handle_unexpected_error(e, args.common.verbose)


def _common_parser() -> argparse.ArgumentParser:
    """Flags accepted by every subcommand."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report errors",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug messages",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show tool output and verbose build output",
    )
    parser.add_argument(
        "--log",
        dest="log_file",
        type=Path,
        default=None,
        help="Also write messages to this log file",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill an external tool after this many seconds (default: no timeout)",
    )
    return parser


def _add_build_dir_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-O",
        "--outdir",
        dest="output_dir",
        type=Path,
        default=None,
        help="Output directory for build artifacts",
    )
    parser.add_argument(
        "--intdir",
        dest="intermediate_dir",
        type=Path,
        default=None,
        help="Directory for intermediate build files",
    )
    parser.add_argument(
        "-g",
        "--generator",
        default="Ninja",
        help="CMake generator (default: Ninja)",
    )
    parser.add_argument(
        "--clean",
        action="store_true",
        help="Remove build artifacts instead of building",
    )
    parser.add_argument(
        "-r",
        "--rebuild",
        action="store_true",
        help="Remove build artifacts, then build",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=1,
        help="Number of parallel compile jobs (default: 1)",
    )
    parser.add_argument(
        "--update-rte",
        action="store_true",
        help="Update the RTE directory and files",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the ctxbuild argument parser."""
    parser = argparse.ArgumentParser(
        prog="ctxbuild",
        description="ctxbuild - build orchestration for embedded solutions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ctxbuild {__version__}",
    )

    common = _common_parser()
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        parents=[common],
        help="Build the contexts of a solution",
    )
    build_parser.add_argument(
        "input_file",
        type=Path,
        help=f"Solution file (*{SOLUTION_SUFFIX})",
    )
    build_parser.add_argument(
        "-c",
        "--context",
        dest="contexts",
        action="append",
        default=[],
        help="Context to build, <project>.<build-type>+<target> (repeatable)",
    )
    build_parser.add_argument(
        "-f",
        "--filter",
        default="",
        help="Only build contexts containing this text",
    )
    build_parser.add_argument(
        "--schema",
        action="store_true",
        help="Validate solution files against their schema",
    )
    build_parser.add_argument(
        "-p",
        "--packs",
        action="store_true",
        help="Download and install missing packs",
    )
    build_parser.add_argument(
        "-t",
        "--toolchain",
        default="",
        help="Toolchain to use, <name>@<version>",
    )
    build_parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=1,
        help="Number of contexts built in parallel (default: 1)",
    )
    build_parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop scheduling contexts after the first failure",
    )
    _add_build_dir_arguments(build_parser)

    # List command
    list_parser = subparsers.add_parser(
        "list",
        parents=[common],
        help="List contexts, toolchains, packs or environment",
    )
    list_parser.add_argument(
        "topic",
        choices=LIST_TOPICS,
        help="What to list",
    )
    list_parser.add_argument(
        "input_file",
        nargs="?",
        type=Path,
        default=None,
        help=f"Solution file (*{SOLUTION_SUFFIX}), optional for environment",
    )
    list_parser.add_argument(
        "-f",
        "--filter",
        default="",
        help="Only list entries containing this text",
    )
    list_parser.add_argument(
        "--schema",
        action="store_true",
        help="Validate solution files against their schema",
    )
    list_parser.add_argument(
        "-m",
        "--missing",
        action="store_true",
        help="List only missing packs",
    )

    # Build project descriptor command
    cprj_parser = subparsers.add_parser(
        "buildcprj",
        parents=[common],
        help="Build a single project descriptor (*.cprj)",
    )
    cprj_parser.add_argument(
        "cprj_file",
        type=Path,
        help=f"Project descriptor (*{CPRJ_SUFFIX})",
    )
    _add_build_dir_arguments(cprj_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """ctxbuild - build orchestration for embedded solutions."""
    parser = create_parser()
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    common = CommonArgs(
        quiet=parsed_args.quiet,
        debug=parsed_args.debug,
        verbose=parsed_args.verbose,
        log_file=parsed_args.log_file,
        timeout=parsed_args.timeout,
    )
    setup_logging(quiet=common.quiet, debug=common.debug, log_file=common.log_file)

    if parsed_args.command == "build":
        build_args = BuildArgs(
            input_file=parsed_args.input_file,
            common=common,
            contexts=parsed_args.contexts,
            filter=parsed_args.filter,
            schema=parsed_args.schema,
            packs=parsed_args.packs,
            output_dir=parsed_args.output_dir,
            intermediate_dir=parsed_args.intermediate_dir,
            toolchain=parsed_args.toolchain,
            generator=parsed_args.generator,
            clean=parsed_args.clean,
            rebuild=parsed_args.rebuild,
            jobs=parsed_args.jobs,
            workers=parsed_args.workers,
            fail_fast=parsed_args.fail_fast,
            update_rte=parsed_args.update_rte,
        )
        sys.exit(build_command(build_args))
    elif parsed_args.command == "list":
        list_args = ListArgs(
            topic=parsed_args.topic,
            input_file=parsed_args.input_file,
            common=common,
            filter=parsed_args.filter,
            schema=parsed_args.schema,
            missing=parsed_args.missing,
        )
        sys.exit(list_command(list_args))
    elif parsed_args.command == "buildcprj":
        cprj_args = BuildCprjArgs(
            cprj_file=parsed_args.cprj_file,
            common=common,
            output_dir=parsed_args.output_dir,
            intermediate_dir=parsed_args.intermediate_dir,
            generator=parsed_args.generator,
            clean=parsed_args.clean,
            rebuild=parsed_args.rebuild,
            jobs=parsed_args.jobs,
            update_rte=parsed_args.update_rte,
        )
        sys.exit(buildcprj_command(cprj_args))


if __name__ == "__main__":
    main()

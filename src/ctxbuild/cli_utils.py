"""CLI utility functions for ctxbuild.

This module provides common utilities used across CLI commands including:
- Logging setup from the verbosity flags
- Error handling and formatting
- Build summary banners
- Input path validation
"""

import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from ctxbuild.build import BuildResult
from ctxbuild.exceptions import BuildFailedError, CtxBuildError

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 3


def setup_logging(
    quiet: bool = False,
    debug: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Configure the root logger from the CLI verbosity flags.

    Level is INFO by default, ERROR with quiet and DEBUG with debug (debug
    wins when both are given). A log file gets a rotating file handler; its
    parent directories are created when missing.

    Args:
        quiet: Only report errors
        debug: Report debug messages
        log_file: Optional file receiving a copy of every record
    """
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO

    logger = logging.getLogger()
    logger.setLevel(level)

    # Drop handlers from a previous invocation in the same process
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Build failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        if message:
            print()
            print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_ctxbuild_error(error: CtxBuildError) -> int:
        """Report an engine error and return the exit code.

        Args:
            error: The error raised by the engine

        Returns:
            Process exit code (1)
        """
        if isinstance(error, BuildFailedError):
            ErrorFormatter.print_error("Build failed!", str(error))
        else:
            ErrorFormatter.print_error(f"Error: {type(error).__name__}", str(error))
        return 1

    @staticmethod
    def handle_file_not_found(error: FileNotFoundError) -> int:
        ErrorFormatter.print_error("Error: File not found", str(error))
        return 1

    @staticmethod
    def handle_keyboard_interrupt() -> int:
        ErrorFormatter.print_warning("Build interrupted")
        return 130  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> int:
        """Report an unexpected error, with traceback in verbose mode.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback

        Returns:
            Process exit code (1)
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            print("Traceback:")
            print(traceback.format_exc())

        return 1


class BannerFormatter:
    """Formats build summaries inside bordered banners."""

    DEFAULT_WIDTH = 60
    DEFAULT_BORDER_CHAR = "="

    @staticmethod
    def format_banner(
        lines: List[str],
        width: int = DEFAULT_WIDTH,
        border_char: str = DEFAULT_BORDER_CHAR,
    ) -> str:
        """Format lines between a top and bottom border, indented by two spaces."""
        border = border_char * width
        return "\n".join([border] + [f"  {line}" for line in lines] + [border])

    @staticmethod
    def summary_lines(result: BuildResult) -> List[str]:
        """Describe every context of a build result, one line each."""
        lines = []
        for context_result in result.results:
            if context_result.success:
                status = "OK"
            elif context_result.skipped:
                status = "SKIPPED"
            else:
                status = f"FAILED ({context_result.stage})"
            lines.append(f"{context_result.context}: {status}")
        lines.append(f"Build time: {result.build_time:.2f}s")
        return lines

    @staticmethod
    def print_summary(result: BuildResult, width: int = DEFAULT_WIDTH) -> None:
        print()
        print(BannerFormatter.format_banner(BannerFormatter.summary_lines(result), width=width))


class PathValidator:
    """Validates input files given on the command line."""

    @staticmethod
    def validate_input_file(path: Path, suffix: str) -> Optional[str]:
        """Check that an input file exists and has the expected suffix.

        Args:
            path: Path to validate
            suffix: Expected file name suffix (e.g., ".csolution.yml")

        Returns:
            Error message, or None when the path is valid
        """
        if not path.exists():
            return f"Path does not exist: {path}"
        if not path.is_file():
            return f"Path is not a file: {path}"
        if not path.name.endswith(suffix):
            return f"Expected a {suffix} file: {path}"
        return None

"""
Listing of solution facts reported by csolution.

This module queries the solution-model processor (`csolution list ...`) for
the contexts, toolchains, packs and environment of a solution, and parses the
newline-delimited answers into ordered lists of strings.

The order reported by csolution is the canonical order; results are never
re-sorted here.
"""

import logging
import re
import sys
from typing import List, Optional, TextIO

from ctxbuild.config import BuilderOptions, InstallConfig
from ctxbuild.exceptions import ConfigNotFoundError, ToolInvocationError
from ctxbuild.runner import Runner

logger = logging.getLogger(__name__)

SOLUTION_TOOL = "csolution"
NOT_FOUND = "<Not Found>"

_VERSION_PATTERN = re.compile(r"(\d+\.\d+(?:\.\d+)*[^\s]*)")


def split_lines(output: str) -> List[str]:
    """Split tool output on CRLF or LF.

    Lines are stripped of surrounding whitespace and blank lines are dropped
    wherever they occur, not only at the end.
    """
    return [line.strip() for line in re.split(r"\r?\n", output) if line.strip()]


def filter_items(items: List[str], pattern: str) -> List[str]:
    """Keep the items containing pattern, in their original order.

    An empty pattern keeps everything. Matching is case sensitive.
    """
    if not pattern:
        return list(items)
    return [item for item in items if pattern in item]


class ListingService:
    """Answers list queries about a solution through csolution.

    Example usage:
        service = ListingService(runner, install_config, options, "app.csolution.yml")
        contexts = service._list_contexts(quiet=True)
        service.list_toolchains()  # prints one toolchain per line
    """

    def __init__(
        self,
        runner: Runner,
        install_config: InstallConfig,
        options: Optional[BuilderOptions] = None,
        input_file: str = "",
        output: Optional[TextIO] = None,
    ):
        """
        Initialize the listing service.

        Args:
            runner: Runner used to invoke csolution
            install_config: Resolved install configuration
            options: Builder options (filter and schema flags are used)
            input_file: Path to the *.csolution.yml file (optional for environment)
            output: Stream the public list_* methods print to (default: stdout)
        """
        self.runner = runner
        self.install_config = install_config
        self.options = options if options is not None else BuilderOptions()
        self.input_file = input_file
        self.output = output

    def _run_list(
        self,
        noun: str,
        quiet: bool,
        extra_args: Optional[List[str]] = None,
        use_filter: bool = True,
    ) -> List[str]:
        """Invoke `csolution list <noun>` and split its output into lines."""
        tool = self.install_config.tool_path(SOLUTION_TOOL)

        args = ["list", noun]
        if self.input_file:
            args.append(f"--solution={self.input_file}")
        if use_filter and self.options.filter:
            args.append(f"--filter={self.options.filter}")
        if self.options.schema:
            args.append("--schema")
        if extra_args:
            args.extend(extra_args)

        output = self.runner.execute(str(tool), quiet, *args)
        return split_lines(output)

    def _list_contexts(self, quiet: bool = True, use_filter: bool = True) -> List[str]:
        """Get the contexts of the solution in upstream order."""
        contexts = self._run_list("contexts", quiet, use_filter=use_filter)
        return filter_items(contexts, self.options.filter) if use_filter else contexts

    def _list_toolchains(self, quiet: bool = True) -> List[str]:
        """Get the `<name>@<version>` toolchains in upstream order."""
        toolchains = self._run_list("toolchains", quiet)
        return filter_items(toolchains, self.options.filter)

    def _list_packs(
        self,
        quiet: bool = True,
        missing: bool = False,
        context: Optional[str] = None,
        use_filter: bool = True,
    ) -> List[str]:
        """Get the packs used by the solution.

        Args:
            quiet: Capture tool output only
            missing: Only report packs that are not installed
            context: Restrict the query to one context
            use_filter: Apply the configured filter to the pack names
        """
        extra_args = []
        if missing:
            extra_args.append("--missing")
        if context:
            extra_args.append(f"--context={context}")
        packs = self._run_list("packs", quiet, extra_args, use_filter)
        return filter_items(packs, self.options.filter) if use_filter else packs

    def _list_environment(self, quiet: bool = True) -> List[str]:
        """Get the tool environment followed by the cmake and ninja versions.

        Raises:
            ConfigNotFoundError: If the install configuration is not set
        """
        if not self.install_config.is_valid():
            raise ConfigNotFoundError("Install configuration is not set, cannot detect environment")

        env_lines = self._run_list("environment", quiet, use_filter=False)
        env_lines.append(f"cmake={self._detect_version('cmake')}")
        env_lines.append(f"ninja={self._detect_version('ninja')}")
        return env_lines

    def _detect_version(self, tool: str) -> str:
        """Ask a PATH tool for its version, or report it as not found."""
        try:
            output = self.runner.execute(tool, True, "--version")
        except ToolInvocationError as e:
            logger.debug("Version detection for %s failed: %s", tool, e)
            return NOT_FOUND

        match = _VERSION_PATTERN.search(output)
        return match.group(1) if match else NOT_FOUND

    def _print(self, items: List[str]) -> None:
        stream = self.output if self.output is not None else sys.stdout
        for item in items:
            print(item, file=stream)

    def list_contexts(self) -> None:
        """Print the contexts of the solution."""
        self._print(self._list_contexts(quiet=True))

    def list_toolchains(self) -> None:
        """Print the toolchains available for the solution."""
        self._print(self._list_toolchains(quiet=True))

    def list_packs(self, missing: bool = False) -> None:
        """Print the packs used by the solution."""
        self._print(self._list_packs(quiet=True, missing=missing))

    def list_environment(self) -> None:
        """Print the tool environment."""
        self._print(self._list_environment(quiet=True))

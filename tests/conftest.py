"""Shared fixtures for the ctxbuild test suite.

The external tools are never run: `RunnerMock` stands in for them and the
install configuration points at empty stub binaries in a temporary tool root.
"""

import platform
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from ctxbuild.config import BuilderOptions, InstallConfig, resolve_install_config
from ctxbuild.exceptions import ToolInvocationError
from ctxbuild.runner import Runner

BIN_EXTN = ".exe" if platform.system() == "Windows" else ""

LIST_OUTPUTS = {
    "contexts": "test.Debug+CM0\r\ntest.Release+CM0",
    "toolchains": "AC5@5.6.7\nAC6@6.18.0\nGCC@11.2.1\nIAR@8.50.6\n",
    "packs": "ARM::test:0.0.1\r\nARM::test2:0.0.2",
    "environment": "CMSIS_PACK_ROOT=C:/Path/Packs\nCMSIS_COMPILER_ROOT=C:/Test/etc\n",
}

KNOWN_TOOLS = {"csolution", "cbuildgen", "cpackget", "cmake", "ninja"}

IDX_FIXTURE = """\
build-idx:
  generated-by: csolution version 2.0.0
  csolution: Test.csolution.yml
  cprojects:
    - cproject: cm0plus/HelloWorld_cm0plus.cproject.yml
    - cproject: cm4/HelloWorld_cm4.cproject.yml
  cbuilds:
    - cbuild: cm0plus/HelloWorld_cm0plus.Debug+FRDM-K32L3A6.cbuild.yml
      project: HelloWorld_cm0plus
      configuration: .Debug+FRDM-K32L3A6
    - cbuild: cm0plus/HelloWorld_cm0plus.Release+FRDM-K32L3A6.cbuild.yml
      project: HelloWorld_cm0plus
      configuration: .Release+FRDM-K32L3A6
    - cbuild: cm4/HelloWorld_cm4.Debug+FRDM-K32L3A6.cbuild.yml
      project: HelloWorld_cm4
      configuration: .Debug+FRDM-K32L3A6
    - cbuild: cm4/HelloWorld_cm4.Release+FRDM-K32L3A6.cbuild.yml
      project: HelloWorld_cm4
      configuration: .Release+FRDM-K32L3A6
"""


def tool_name(program: str) -> str:
    name = Path(program).name
    if name.endswith(".exe"):
        name = name[:-4]
    return name


class RunnerMock(Runner):
    """Records invocations and answers like the external tools would.

    `csolution list <noun>` answers from `list_outputs`; any tool can be given
    a handler `callable(*args) -> str` that may also raise.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.list_outputs: Dict[str, str] = dict(LIST_OUTPUTS)
        self.handlers: Dict[str, Callable[..., str]] = {}

    def execute(self, program: str, quiet: bool, *args: str) -> str:
        name = tool_name(program)
        self.calls.append((name, args))

        if name in self.handlers:
            return self.handlers[name](*args)
        if name == "csolution" and args and args[0] == "list":
            return self.list_outputs.get(args[1], "")
        if name in KNOWN_TOOLS:
            return ""
        raise ToolInvocationError("invalid command", program=program)

    def calls_to(self, name: str) -> List[Tuple[str, ...]]:
        return [args for tool, args in self.calls if tool == name]


def write_build_index(directory: Path, contexts: List[str], name: str = "test") -> Path:
    """Write a build index and one descriptor per context, as csolution convert would."""
    directory.mkdir(parents=True, exist_ok=True)
    lines = ["build-idx:", "  generated-by: csolution version 2.0.0", "  cbuilds:"]
    for context in contexts:
        project = context.split(".")[0]
        lines.append(f"    - cbuild: {project}/{context}.cbuild.yml")
        cprj = directory / project / f"{context}.cprj"
        cprj.parent.mkdir(parents=True, exist_ok=True)
        cprj.write_text("<cprj/>\n")
    index = directory / f"{name}.cbuild-idx.yml"
    index.write_text("\n".join(lines) + "\n")
    return index


def option_value(args: Tuple[str, ...], option: str) -> Optional[str]:
    prefix = f"{option}="
    for arg in args:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


@pytest.fixture
def runner() -> RunnerMock:
    return RunnerMock()


@pytest.fixture
def tool_root(tmp_path) -> Path:
    """Tool installation with empty stub binaries."""
    root = tmp_path / "tools"
    for directory in ("bin", "etc", "packs"):
        (root / directory).mkdir(parents=True)
    for tool in ("csolution", "cbuildgen", "cpackget"):
        (root / "bin" / f"{tool}{BIN_EXTN}").write_text("")
    return root


@pytest.fixture
def install_config(tool_root) -> InstallConfig:
    return resolve_install_config(
        {
            "CMSIS_BUILD_ROOT": str(tool_root / "bin"),
            "CMSIS_PACK_ROOT": str(tool_root / "packs"),
        }
    )


@pytest.fixture
def options() -> BuilderOptions:
    return BuilderOptions()


@pytest.fixture
def solution_file(tmp_path) -> Path:
    path = tmp_path / "solution" / "test.csolution.yml"
    path.parent.mkdir(parents=True)
    path.write_text("solution:\n  projects:\n    - project: test.cproject.yml\n")
    return path


@pytest.fixture
def idx_file(tmp_path) -> Path:
    """Build index declaring four HelloWorld contexts."""
    path = tmp_path / "run" / "Test.cbuild-idx.yml"
    path.parent.mkdir(parents=True)
    path.write_text(IDX_FIXTURE)
    return path


@pytest.fixture
def convert_writes_index(runner, solution_file):
    """Make `csolution convert` produce a build index next to the solution.

    Returns the list of converted contexts, in call order.
    """
    converted: List[str] = []

    def convert(*args: str) -> str:
        if args[0] != "convert":
            return runner.list_outputs.get(args[1], "")
        context = option_value(args, "--context")
        converted.append(context)
        output = option_value(args, "--output")
        directory = Path(output) if output else solution_file.parent
        write_build_index(directory, list(dict.fromkeys(converted)))
        return ""

    runner.handlers["csolution"] = convert
    return converted


@pytest.fixture
def cbuildgen_writes_cmakelists(runner):
    """Make `cbuildgen cmake` produce CMakeLists.txt in the intermediate directory."""

    def cbuildgen(*args: str) -> str:
        int_dir = Path(option_value(args, "--intdir"))
        int_dir.mkdir(parents=True, exist_ok=True)
        (int_dir / "CMakeLists.txt").write_text("project(test)\n")
        return ""

    runner.handlers["cbuildgen"] = cbuildgen

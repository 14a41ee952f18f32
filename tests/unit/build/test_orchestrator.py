"""
Unit tests for BuildOrchestrator.

Tests the complete per-context pipeline including:
- Context selection
- Descriptor generation through csolution convert
- Missing pack installation
- Descriptor lookup in the build index
- Native build and failure aggregation
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from ctxbuild.build import BuildOrchestrator
from ctxbuild.config import BuilderOptions, InstallConfig
from ctxbuild.exceptions import (
    BuildFailedError,
    ConfigNotFoundError,
    ContextNotFoundError,
    NativeBuildError,
    NoContextSelectedError,
    ToolInvocationError,
)

CONTEXTS = ["test.Debug+CM0", "test.Release+CM0"]


@pytest.fixture
def make_orchestrator(runner, install_config, solution_file):
    """Create an orchestrator for the test solution."""

    def make(options=None, config=None):
        return BuildOrchestrator(
            runner=runner,
            install_config=config if config is not None else install_config,
            options=options if options is not None else BuilderOptions(),
            input_file=solution_file,
        )

    return make


class TestBuildOrchestratorInit:
    """Test BuildOrchestrator initialization."""

    def test_components_share_runner_and_options(self, make_orchestrator, runner):
        options = BuilderOptions(filter="Debug")
        orchestrator = make_orchestrator(options)

        assert orchestrator.listing.runner is runner
        assert orchestrator.selector.options is options
        assert orchestrator.native_builder.options is options

    def test_installer_quiet_unless_verbose(self, make_orchestrator):
        assert make_orchestrator().installer.quiet
        assert not make_orchestrator(BuilderOptions(verbose=True)).installer.quiet

    def test_index_path_next_to_solution(self, make_orchestrator, solution_file):
        assert make_orchestrator().index_path == solution_file.parent / "test.cbuild-idx.yml"

    def test_index_path_in_output_dir(self, make_orchestrator, tmp_path):
        orchestrator = make_orchestrator(BuilderOptions(output_dir=tmp_path / "out"))
        assert orchestrator.index_path == tmp_path / "out" / "test.cbuild-idx.yml"


class TestBuildPreconditions:
    """Test errors raised before any context is built."""

    def test_zero_config_raises(self, make_orchestrator, runner):
        with pytest.raises(ConfigNotFoundError):
            make_orchestrator(config=InstallConfig()).build()
        assert runner.calls == []

    def test_missing_solution_raises(self, runner, install_config, tmp_path):
        orchestrator = BuildOrchestrator(runner, install_config, input_file=tmp_path / "missing.csolution.yml")
        with pytest.raises(FileNotFoundError):
            orchestrator.build()

    def test_no_context_raises(self, make_orchestrator, runner):
        runner.list_outputs["contexts"] = ""
        with pytest.raises(NoContextSelectedError):
            make_orchestrator().build()

    def test_unknown_context_raises_before_generating(self, make_orchestrator, runner):
        options = BuilderOptions(contexts=["test.Debug+CM3"])

        with pytest.raises(ContextNotFoundError):
            make_orchestrator(options).build()

        assert all(args[0] == "list" for args in runner.calls_to("csolution"))


class TestBuildSuccess:
    """Test successful builds."""

    def test_builds_all_contexts(
        self, make_orchestrator, runner, solution_file, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        result = make_orchestrator().build()

        assert result.success
        assert [r.context for r in result.results] == CONTEXTS
        assert all(r.stage == "done" for r in result.results)
        assert convert_writes_index == CONTEXTS
        assert result.results[0].cprj_path == solution_file.parent / "test" / "test.Debug+CM0.cprj"
        assert len(runner.calls_to("cbuildgen")) == 2

    def test_convert_arguments(
        self, make_orchestrator, runner, solution_file, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        options = BuilderOptions(
            contexts=["test.Debug+CM0"], toolchain="GCC@11.2.1", schema=True, update_rte=True
        )

        make_orchestrator(options).build()

        convert = [args for args in runner.calls_to("csolution") if args[0] == "convert"][0]
        assert f"--solution={solution_file}" in convert
        assert "--context=test.Debug+CM0" in convert
        assert "--toolchain=GCC@11.2.1" in convert
        assert "--schema" in convert
        assert "--update-rte" in convert

    def test_output_dir_receives_index_and_builds(
        self, make_orchestrator, runner, tmp_path, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        out = tmp_path / "out"
        options = BuilderOptions(output_dir=out, intermediate_dir=tmp_path / "tmp")

        result = make_orchestrator(options).build()

        assert result.success
        assert (out / "test.cbuild-idx.yml").is_file()
        assert (tmp_path / "tmp" / "test.Release+CM0" / "CMakeLists.txt").is_file()

    def test_packs_installed_before_resolve(
        self, make_orchestrator, runner, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        result = make_orchestrator(BuilderOptions(packs=True)).build()

        assert result.success
        assert [args[1] for args in runner.calls_to("cpackget")] == ["ARM::test:0.0.1", "ARM::test2:0.0.2"]
        tools = [tool for tool, _ in runner.calls]
        assert tools.index("cpackget") < tools.index("cbuildgen")

    def test_packs_not_installed_by_default(
        self, make_orchestrator, runner, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        make_orchestrator().build()
        assert runner.calls_to("cpackget") == []

    def test_parallel_workers_keep_selection_order(
        self, make_orchestrator, runner, tmp_path, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        options = BuilderOptions(
            contexts=list(reversed(CONTEXTS)),
            workers=2,
            output_dir=tmp_path / "out",
            intermediate_dir=tmp_path / "tmp",
        )

        result = make_orchestrator(options).build()

        assert result.success
        assert [r.context for r in result.results] == list(reversed(CONTEXTS))

    def test_install_missing_packs_for_solution(self, make_orchestrator, runner):
        installed = make_orchestrator().install_missing_packs()

        assert installed == ["ARM::test:0.0.1", "ARM::test2:0.0.2"]
        assert not any(
            arg.startswith("--context") for arg in runner.calls_to("csolution")[0]
        )


class TestBuildFailure:
    """Test failure handling and aggregation."""

    def test_explicit_context_without_index_fails_at_resolve(self, make_orchestrator):
        options = BuilderOptions(contexts=["test.Debug+CM0"])

        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator(options).build()

        error = exc_info.value
        assert error.failed_contexts == ["test.Debug+CM0"]
        assert error.result.results[0].stage == "resolve"

    def test_all_failures_reported_together(self, make_orchestrator):
        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator().build()

        error = exc_info.value
        assert error.failed_contexts == CONTEXTS
        for context in CONTEXTS:
            assert context in str(error)

    def test_continues_after_failure(
        self, make_orchestrator, runner, convert_writes_index, cbuildgen_writes_cmakelists
    ):
        generate = runner.handlers["cbuildgen"]

        def fail_debug(*args):
            if Path(args[1]).name.startswith("test.Debug"):
                raise ToolInvocationError("cbuildgen exited with code 1", program="cbuildgen", returncode=1)
            return generate(*args)

        runner.handlers["cbuildgen"] = fail_debug

        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator().build()

        result = exc_info.value.result
        assert exc_info.value.failed_contexts == ["test.Debug+CM0"]
        assert result.results[0].stage == "build"
        assert result.results[1].success

    def test_fail_fast_skips_remaining(self, make_orchestrator, convert_writes_index):
        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator(BuilderOptions(fail_fast=True)).build()

        result = exc_info.value.result
        assert result.failed_contexts == ["test.Debug+CM0"]
        assert result.skipped_contexts == ["test.Release+CM0"]
        assert convert_writes_index == ["test.Debug+CM0"]
        assert "Not attempted: test.Release+CM0" in str(exc_info.value)

    def test_generate_failure_stage(self, make_orchestrator, runner):
        def fail_convert(*args):
            if args[0] == "convert":
                raise ToolInvocationError("csolution exited with code 1", program="csolution", returncode=1)
            return runner.list_outputs.get(args[1], "")

        runner.handlers["csolution"] = fail_convert

        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator().build()

        assert [r.stage for r in exc_info.value.result.results] == ["generate", "generate"]

    def test_pack_failure_stage(self, make_orchestrator, runner, convert_writes_index):
        def fail(*args):
            raise ToolInvocationError("cpackget exited with code 1", program="cpackget", returncode=1)

        runner.handlers["cpackget"] = fail

        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator(BuilderOptions(packs=True)).build()

        assert exc_info.value.result.results[0].stage == "packs"

    def test_native_build_error_recorded(self, make_orchestrator, convert_writes_index):
        orchestrator = make_orchestrator(BuilderOptions(contexts=["test.Release+CM0"]))
        orchestrator.native_builder.build_cprj = Mock(side_effect=NativeBuildError("boom"))

        with pytest.raises(BuildFailedError) as exc_info:
            orchestrator.build()

        context_result = exc_info.value.result.results[0]
        assert context_result.stage == "build"
        assert context_result.message == "boom"
        assert context_result.cprj_path is not None
        orchestrator.native_builder.build_cprj.assert_called_once_with(
            context_result.cprj_path, "test.Release+CM0"
        )

    def test_unreadable_index_fails_every_context(self, make_orchestrator, runner, solution_file):
        def convert_binary_index(*args):
            if args[0] != "convert":
                return runner.list_outputs.get(args[1], "")
            (solution_file.parent / "test.cbuild-idx.yml").write_bytes(b"build-idx:\n  csolution: \xff\n")
            return ""

        runner.handlers["csolution"] = convert_binary_index

        with pytest.raises(BuildFailedError) as exc_info:
            make_orchestrator().build()

        assert exc_info.value.failed_contexts == CONTEXTS
        assert [r.stage for r in exc_info.value.result.results] == ["resolve", "resolve"]

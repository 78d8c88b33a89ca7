"""Unit tests for individual repair graph nodes and routers."""
from unittest.mock import MagicMock

import pytest

from autofix_bot.agents.action_parser import ActionProtocolParser
from autofix_bot.agents.exceptions import ProviderFailure
from autofix_bot.models import RepairAttempt, RepairOutcome, RepairStatus, RunResult
from autofix_bot.orchestrator.graph import (
    NO_COMMAND_MESSAGE,
    REPAIR_RUN_TIMEOUT,
    abandon_node,
    abort_node,
    exhausted_node,
    make_determine_command_node,
    make_fix_node,
    make_run_node,
    route_after_determine,
    route_after_fix,
    route_after_run,
    success_node,
)
from autofix_bot.orchestrator.state import make_initial_state
from autofix_bot.storage import InvalidPath

FIX_REPLY = "EXPLANATION:\nDefined x\n\nFILE: app.py\n```python\nx = 1\nprint(x)\n```"


# ---------------------------------------------------------------------------
# Helpers / shared fixtures
# ---------------------------------------------------------------------------

def failed_run(stderr="NameError: name 'x' is not defined") -> RunResult:
    return RunResult(stdout="", stderr=stderr, exit_failed=True)


def state_after_run(run: RunResult, attempt_index: int = 1, **overrides):
    state = make_initial_state("demo", "python app.py")
    state.update(attempt_index=attempt_index, last_run=run, **overrides)
    return state


@pytest.fixture
def project(memory_store):
    memory_store.write_file("demo", "app.py", "print(x)")
    return memory_store


# ---------------------------------------------------------------------------
# determine_command_node
# ---------------------------------------------------------------------------

class TestDetermineCommandNode:
    def test_explicit_command_is_kept(self, project):
        node = make_determine_command_node(project)
        assert node(make_initial_state("demo", "python app.py")) == {}

    def test_detects_command(self, project):
        node = make_determine_command_node(project)
        assert node(make_initial_state("demo")) == {"command": "python app.py"}

    def test_no_rule_matches(self, memory_store):
        memory_store.write_file("demo", "index.html", "<p>hi</p>")
        result = make_determine_command_node(memory_store)(make_initial_state("demo"))
        assert result == {"message": NO_COMMAND_MESSAGE}

    def test_missing_project(self, memory_store):
        result = make_determine_command_node(memory_store)(make_initial_state("ghost"))
        assert "not found" in result["message"]
        assert "command" not in result


# ---------------------------------------------------------------------------
# run_node
# ---------------------------------------------------------------------------

class TestRunNode:
    def test_runs_synchronously_in_workspace(self, fs_store):
        runner = MagicMock()
        runner.run.return_value = RunResult(stdout="ok")
        node = make_run_node(runner, fs_store)

        result = node(make_initial_state("demo", "python app.py"))

        assert result["attempt_index"] == 1
        assert result["last_run"].stdout == "ok"
        assert result["fix_found"] is False
        runner.run.assert_called_once_with(
            "python app.py",
            working_directory=fs_store.workspace_path("demo"),
            timeout=REPAIR_RUN_TIMEOUT,
            key="demo",
            allow_background=False,
        )


# ---------------------------------------------------------------------------
# fix_node
# ---------------------------------------------------------------------------

class TestFixNode:
    def _node(self, provider, store):
        return make_fix_node(provider, store, ActionProtocolParser(allow_fallbacks=False))

    def test_applies_fix(self, project, mock_provider):
        mock_provider.complete.return_value = FIX_REPLY
        result = self._node(mock_provider, project)(state_after_run(failed_run()))

        assert result["fix_found"] is True
        detected, fixed = result["attempts"]
        assert detected.outcome == RepairOutcome.ERROR_DETECTED
        assert "NameError" in detected.command_output
        assert fixed.outcome == RepairOutcome.FIX_APPLIED
        assert fixed.applied_files == ["app.py"]
        assert fixed.explanation == "Defined x"
        assert project.read_file("demo", "app.py") == "x = 1\nprint(x)"

    def test_prompt_includes_files_and_error(self, project, mock_provider):
        mock_provider.complete.return_value = FIX_REPLY
        self._node(mock_provider, project)(state_after_run(failed_run()))
        prompt = mock_provider.complete.call_args.args[0]
        assert "FILE: app.py\n```\nprint(x)\n```" in prompt
        assert "NameError" in prompt
        assert "RUN COMMAND: python app.py" in prompt

    def test_no_fix_found(self, project, mock_provider):
        mock_provider.complete.return_value = "I am not sure what is wrong. " * 50
        result = self._node(mock_provider, project)(state_after_run(failed_run()))

        assert result["fix_found"] is False
        assert result["attempts"][-1].outcome == RepairOutcome.NO_FIX_FOUND
        assert len(result["attempts"][-1].command_output) == 500
        assert project.read_file("demo", "app.py") == "print(x)"

    def test_strict_parser_ignores_fallback_formats(self, project, mock_provider):
        mock_provider.complete.return_value = "app.py\n```\nx = 1\n```"
        result = self._node(mock_provider, project)(state_after_run(failed_run()))
        assert result["fix_found"] is False

    def test_provider_failure_sets_error(self, project, mock_provider):
        mock_provider.complete.side_effect = ProviderFailure("HF error", 503, "loading")
        result = self._node(mock_provider, project)(state_after_run(failed_run()))
        assert "HF error" in result["error"]
        assert [a.outcome for a in result["attempts"]] == [RepairOutcome.ERROR_DETECTED]

    def test_write_failure_skips_file(self, project, mock_provider):
        mock_provider.complete.return_value = (
            "FILE: app.py\n```\nx = 1\n```\nFILE: other.py\n```\ny = 2\n```"
        )
        original_write = project.write_file

        def flaky_write(proj, path, content):
            if path == "app.py":
                raise InvalidPath("read-only")
            original_write(proj, path, content)

        project.write_file = flaky_write
        result = self._node(mock_provider, project)(state_after_run(failed_run()))
        assert result["fix_found"] is True
        assert result["attempts"][-1].applied_files == ["other.py"]

    def test_error_output_is_truncated(self, project, mock_provider):
        mock_provider.complete.return_value = FIX_REPLY
        result = self._node(mock_provider, project)(state_after_run(failed_run("E" * 10000)))
        assert len(result["attempts"][0].command_output) == 3000


# ---------------------------------------------------------------------------
# Terminal nodes
# ---------------------------------------------------------------------------

class TestTerminalNodes:
    def test_success_node_first_try(self):
        result = success_node(state_after_run(RunResult(stdout="hello\n")))
        assert result["status"] == RepairStatus.SUCCESS
        assert "no fixes needed" in result["message"]
        assert result["final_output"] == "hello\n"
        assert result["attempts"][0].outcome == RepairOutcome.SUCCESS

    def test_success_node_counts_fixes(self):
        fixed = RepairAttempt(index=1, outcome=RepairOutcome.FIX_APPLIED, applied_files=["a.py"])
        state = state_after_run(RunResult(stdout="ok"), attempt_index=2, attempts=[fixed])
        assert "after 1 fix(es)" in success_node(state)["message"]

    def test_exhausted_after_budget(self):
        fixed = RepairAttempt(index=5, outcome=RepairOutcome.FIX_APPLIED)
        state = state_after_run(failed_run(), attempt_index=5, attempts=[fixed])
        result = exhausted_node(state)
        assert result["status"] == RepairStatus.EXHAUSTED
        assert "after 5 attempts" in result["message"]

    def test_exhausted_after_no_fix(self):
        no_fix = RepairAttempt(index=2, outcome=RepairOutcome.NO_FIX_FOUND)
        state = state_after_run(failed_run(), attempt_index=2, attempts=[no_fix])
        assert "could not generate a fix on attempt 2" in exhausted_node(state)["message"]

    def test_abandon_node(self):
        state = make_initial_state("demo")
        state["message"] = NO_COMMAND_MESSAGE
        result = abandon_node(state)
        assert result["status"] == RepairStatus.ABANDONED
        assert result["message"] == NO_COMMAND_MESSAGE

    def test_abort_node(self):
        state = state_after_run(failed_run(), error="HF error (status 503)")
        result = abort_node(state)
        assert result["status"] == RepairStatus.ABORTED
        assert "HF error (status 503)" in result["message"]


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

class TestRouters:
    def test_route_after_determine(self):
        assert route_after_determine(make_initial_state("demo", "go run .")) == "run"
        assert route_after_determine(make_initial_state("demo")) == "abandon"

    def test_route_after_run(self):
        assert route_after_run(state_after_run(RunResult(stdout="ok"))) == "success"
        assert route_after_run(state_after_run(failed_run())) == "fix"

    def test_route_after_fix(self):
        assert route_after_fix(state_after_run(failed_run(), error="boom")) == "abort"
        assert route_after_fix(state_after_run(failed_run(), fix_found=False)) == "exhausted"
        assert route_after_fix(state_after_run(failed_run(), fix_found=True)) == "run"
        assert (
            route_after_fix(state_after_run(failed_run(), attempt_index=5, fix_found=True))
            == "exhausted"
        )

"""Tests for the workspace service facade."""

import shlex
import sys
from unittest.mock import MagicMock

import pytest

from autofix_bot.agents.exceptions import AgentError
from autofix_bot.models import ChatAction, RepairStatus, RunResult
from autofix_bot.runtime import PreviewServerRegistry
from autofix_bot.service import PREVIEW_UNAVAILABLE_MESSAGE, WorkspaceService

PYTHON = shlex.quote(sys.executable)


@pytest.fixture
def service(fs_store, mock_provider, registry, runner):
    service = WorkspaceService(fs_store, mock_provider, registry=registry, runner=runner)
    yield service
    service.shutdown()


def _live_handle():
    handle = MagicMock()
    handle.poll.return_value = None
    return handle


# ---------------------------------------------------------------------------
# Commands and processes
# ---------------------------------------------------------------------------

class TestCommands:
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell semantics")
    def test_run_command_in_project_workspace(self, service, fs_store):
        fs_store.write_file("demo", "hello.py", "print('from project')")
        result = service.run_command(f"{PYTHON} hello.py", project="demo")
        assert result.exit_failed is False
        assert result.stdout.strip() == "from project"

    def test_run_command_uses_default_key(self, fs_store, mock_provider):
        runner = MagicMock()
        runner.run.return_value = RunResult(stdout="ok")
        service = WorkspaceService(fs_store, mock_provider, runner=runner)
        service.run_command("echo ok")
        runner.run.assert_called_once_with("echo ok", working_directory=None, key="default")

    def test_run_command_invalid_project(self, service):
        result = service.run_command("echo hi", project="../escape")
        assert result.exit_failed is True

    def test_kill_untracked(self, service):
        result = service.kill_process(424242)
        assert result.success is False
        assert "not tracked" in result.error

    def test_list_processes(self, service, registry, tmp_path):
        registry.register("demo", _live_handle(), 11)
        (tmp_path / "site").mkdir()
        service.previews.host_project("web", tmp_path / "site", port=0)

        processes = service.list_processes()

        assert processes[0].pid == 11
        assert processes[0].name == "Background process (demo)"
        assert processes[1].pid is None
        assert processes[1].name.startswith("Preview server: web (port ")


# ---------------------------------------------------------------------------
# Auto-repair
# ---------------------------------------------------------------------------

class TestAutoRepair:
    def test_delegates_to_controller(self, fs_store, mock_provider):
        runner = MagicMock()
        runner.run.return_value = RunResult(stdout="fine")
        fs_store.write_file("demo", "main.py", "print('fine')")
        service = WorkspaceService(fs_store, mock_provider, runner=runner)

        result = service.start_auto_repair("demo")

        assert result.status == RepairStatus.SUCCESS
        assert runner.run.call_args.kwargs["working_directory"] == fs_store.workspace_path("demo")

    def test_requires_provider(self, fs_store):
        service = WorkspaceService(fs_store)
        with pytest.raises(AgentError):
            service.start_auto_repair("demo")


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

class TestPreview:
    def test_host_and_stop(self, service):
        hosted = service.host_preview("demo", port=0)
        assert hosted.success is True
        assert hosted.message == "Project hosted successfully"
        assert hosted.url.startswith("http://localhost:")

        again = service.host_preview("demo")
        assert again.message == "Project already hosted"
        assert again.url == hosted.url

        assert service.stop_preview("demo").success is True
        assert service.stop_preview("demo").success is False

    def test_unavailable_without_workspace(self, memory_store, mock_provider):
        service = WorkspaceService(memory_store, mock_provider, previews=PreviewServerRegistry())
        result = service.host_preview("demo")
        assert result.success is False
        assert result.message == PREVIEW_UNAVAILABLE_MESSAGE

    def test_missing_project_directory(self, service):
        result = service.host_preview("ghost")
        assert result.success is False


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class TestChat:
    def test_read_intent_is_filled(self, service, fs_store):
        fs_store.write_file("demo", "app.py", "print('x')")
        outcome = service.chat("open app.py", project="demo")
        assert outcome.action == ChatAction.READ_FILE
        assert outcome.content == "print('x')"

    def test_read_missing_file(self, service):
        outcome = service.chat("open ghost.py", project="demo")
        assert outcome.action == ChatAction.PLAIN_RESPONSE
        assert "not found" in outcome.response

    def test_read_outside_project_is_refused(self, service, tmp_path):
        (tmp_path / "projects" / "secret.txt").write_text("token")
        outcome = service.chat("show ../secret.txt", project="demo")
        assert outcome.action == ChatAction.PLAIN_RESPONSE
        assert "Could not read `../secret.txt`" in outcome.response
        assert outcome.content is None

    def test_delete_outside_project_is_refused(self, service, tmp_path):
        secret = tmp_path / "projects" / "secret.txt"
        secret.write_text("token")
        outcome = service.chat("delete ../secret.txt", project="demo")
        assert outcome.action == ChatAction.PLAIN_RESPONSE
        assert secret.exists()

    def test_requires_provider(self, fs_store):
        with pytest.raises(AgentError):
            WorkspaceService(fs_store).chat("hello", project="demo")


# ---------------------------------------------------------------------------
# Code assistance
# ---------------------------------------------------------------------------

class TestCodeAssist:
    def test_analyze_explain_generate(self, service, mock_provider):
        mock_provider.complete.side_effect = ["issues", "explanation", "code"]
        assert service.analyze_code("x = 1", "a.py") == "issues"
        assert service.explain_code("x = 1", "a.py") == "explanation"
        assert service.generate_code("a parser") == "code"
        assert mock_provider.complete.call_count == 3

    def test_requires_provider(self, fs_store):
        service = WorkspaceService(fs_store)
        for call in (
            lambda: service.analyze_code("x"),
            lambda: service.explain_code("x"),
            lambda: service.generate_code("x"),
        ):
            with pytest.raises(AgentError):
                call()


class TestShutdown:
    def test_kills_processes_and_stops_previews(self, service, registry):
        handle = _live_handle()
        registry.register("demo", handle, 12)
        service.host_preview("demo", port=0)

        service.shutdown()

        handle.terminate.assert_called_once()
        assert service.list_processes() == []

"""Tests for orchestrator state and repair prompt construction."""
import pytest

from autofix_bot.orchestrator.prompts import (
    MAX_FILE_CHARS,
    MAX_PROMPT_FILES,
    build_repair_prompt,
    truncate,
)
from autofix_bot.orchestrator.state import MAX_ATTEMPTS, make_initial_state


class TestMakeInitialState:
    """Tests for the make_initial_state factory function."""

    def test_make_initial_state_defaults(self):
        """All 11 keys present with correct defaults."""
        state = make_initial_state("demo")

        assert state["project"] == "demo"
        assert state["command"] is None
        assert state["max_attempts"] == MAX_ATTEMPTS == 5
        assert state["attempt_index"] == 0
        assert state["last_run"] is None
        assert state["fix_found"] is False
        assert state["attempts"] == []
        assert state["status"] is None
        assert state["message"] == ""
        assert state["final_output"] is None
        assert state["error"] is None
        assert len(state) == 11

    def test_blank_command_means_detect(self):
        """A whitespace-only command is treated as no command."""
        assert make_initial_state("demo", "   ")["command"] is None
        assert make_initial_state("demo", " python app.py ")["command"] == "python app.py"

    @pytest.mark.parametrize(
        "requested, expected",
        [(0, 1), (-3, 1), (3, 3), (MAX_ATTEMPTS, MAX_ATTEMPTS), (10, MAX_ATTEMPTS), (50, MAX_ATTEMPTS)],
    )
    def test_max_attempts_is_clamped(self, requested, expected):
        assert make_initial_state("demo", max_attempts=requested)["max_attempts"] == expected


class TestRepairPrompt:
    def test_contains_command_error_and_format(self):
        prompt = build_repair_prompt({"app.py": "print(x)"}, "python app.py", "NameError: x")
        assert "RUN COMMAND: python app.py" in prompt
        assert "NameError: x" in prompt
        assert "FILE: app.py\n```\nprint(x)\n```" in prompt
        assert "EXPLANATION:" in prompt
        assert "DATA" in prompt

    def test_limits_files_and_truncates_content(self):
        files = {f"f{i}.py": "x" * (MAX_FILE_CHARS + 500) for i in range(MAX_PROMPT_FILES + 5)}
        prompt = build_repair_prompt(files, "python f0.py", "err")
        assert f"FILE: f{MAX_PROMPT_FILES - 1}.py" in prompt
        assert f"FILE: f{MAX_PROMPT_FILES}.py" not in prompt
        assert "x" * (MAX_FILE_CHARS + 1) not in prompt

    def test_truncate(self):
        assert truncate("abcdef", 3) == "abc"
        assert truncate("ab", 3) == "ab"

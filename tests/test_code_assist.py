"""Tests for the one-shot code-assist prompts."""

import pytest

from autofix_bot.agents.code_assist import CodeAssistant
from autofix_bot.agents.exceptions import ProviderFailure


@pytest.fixture
def assistant(mock_provider):
    return CodeAssistant(mock_provider)


class TestCodeAssistant:
    def test_analyze_prompt(self, assistant, mock_provider):
        mock_provider.complete.return_value = "Unused import on line 1"
        reply = assistant.analyze("import os\nprint(1)", "app.py")

        assert reply == "Unused import on line 1"
        prompt = mock_provider.complete.call_args.args[0]
        assert prompt.startswith("Analyze this code (app.py). Provide issues and suggestions:")
        assert prompt.endswith("import os\nprint(1)")

    def test_explain_prompt_defaults_filename(self, assistant, mock_provider):
        assistant.explain("x = 1")
        prompt = mock_provider.complete.call_args.args[0]
        assert prompt == "Explain this code (file) in plain language:\n\nx = 1"

    def test_generate_prompt(self, assistant, mock_provider):
        assistant.generate("a fizzbuzz function")
        mock_provider.complete.assert_called_once_with("Generate code: a fizzbuzz function")

    def test_provider_failure_propagates(self, assistant, mock_provider):
        mock_provider.complete.side_effect = ProviderFailure("HF error", 500)
        with pytest.raises(ProviderFailure):
            assistant.analyze("x")

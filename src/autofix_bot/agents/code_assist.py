"""One-shot code assistance: analyze, explain and generate."""

import logging

from autofix_bot.agents.completion import Completer

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "file"

ANALYZE_PROMPT = "Analyze this code ({filename}). Provide issues and suggestions:\n\n{code}"
EXPLAIN_PROMPT = "Explain this code ({filename}) in plain language:\n\n{code}"
GENERATE_PROMPT = "Generate code: {prompt}"


class CodeAssistant:
    """Wraps a completion provider with the editor's code-assist prompts.

    Replies are returned verbatim; ProviderFailure propagates.
    """

    def __init__(self, provider: Completer) -> None:
        self.provider = provider

    def analyze(self, code: str, filename: str | None = None) -> str:
        logger.info("Analyzing %s", filename or DEFAULT_FILENAME)
        return self.provider.complete(
            ANALYZE_PROMPT.format(filename=filename or DEFAULT_FILENAME, code=code)
        )

    def explain(self, code: str, filename: str | None = None) -> str:
        logger.info("Explaining %s", filename or DEFAULT_FILENAME)
        return self.provider.complete(
            EXPLAIN_PROMPT.format(filename=filename or DEFAULT_FILENAME, code=code)
        )

    def generate(self, prompt: str) -> str:
        return self.provider.complete(GENERATE_PROMPT.format(prompt=prompt))

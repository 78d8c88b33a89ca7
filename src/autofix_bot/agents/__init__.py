"""Agent components for the autofix bot."""

from autofix_bot.agents.exceptions import AgentError, ParseEmpty, ProviderFailure
from autofix_bot.agents.action_parser import ActionProtocolParser, parse_action_directive
from autofix_bot.agents.chat_dispatcher import ChatActionDispatcher, classify_instruction
from autofix_bot.agents.code_assist import CodeAssistant
from autofix_bot.agents.completion import Completer, CompletionProvider

__all__ = [
    "ActionProtocolParser",
    "AgentError",
    "ChatActionDispatcher",
    "CodeAssistant",
    "Completer",
    "CompletionProvider",
    "ParseEmpty",
    "ProviderFailure",
    "classify_instruction",
    "parse_action_directive",
]

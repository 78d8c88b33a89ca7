"""Process supervision: registry, command runner and preview servers."""

from autofix_bot.runtime.command_runner import CommandRunner, normalize_command
from autofix_bot.runtime.exceptions import (
    CommandTimeout,
    PreviewUnavailable,
    ProcessNotFound,
    SpawnFailure,
    SupervisionError,
)
from autofix_bot.runtime.preview import PreviewServerRegistry
from autofix_bot.runtime.process_registry import DEFAULT_KEY, ProcessRegistry

__all__ = [
    "CommandRunner",
    "CommandTimeout",
    "DEFAULT_KEY",
    "PreviewServerRegistry",
    "PreviewUnavailable",
    "ProcessNotFound",
    "ProcessRegistry",
    "SpawnFailure",
    "SupervisionError",
    "normalize_command",
]

"""Data models for the autofix bot."""

from autofix_bot.models.chat_models import (
    ChatAction,
    ChatIntent,
    ChatIntentKind,
    ChatOutcome,
    ChatTurn,
)
from autofix_bot.models.directive_models import ActionDirective, FileEdit
from autofix_bot.models.process_models import (
    KillResult,
    PreviewResult,
    PreviewServerRecord,
    ProcessInfo,
    ProcessRecord,
)
from autofix_bot.models.repair_models import (
    RepairAttempt,
    RepairOutcome,
    RepairResult,
    RepairStatus,
    RunResult,
)

__all__ = [
    "ActionDirective",
    "ChatAction",
    "ChatIntent",
    "ChatIntentKind",
    "ChatOutcome",
    "ChatTurn",
    "FileEdit",
    "KillResult",
    "PreviewResult",
    "PreviewServerRecord",
    "ProcessInfo",
    "ProcessRecord",
    "RepairAttempt",
    "RepairOutcome",
    "RepairResult",
    "RepairStatus",
    "RunResult",
]

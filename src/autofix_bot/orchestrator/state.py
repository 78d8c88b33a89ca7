"""State definition for the LangGraph repair loop."""

import operator
from typing import Annotated, TypedDict

from autofix_bot.models import RepairAttempt, RepairStatus, RunResult

MAX_ATTEMPTS = 5


class RepairState(TypedDict):
    """State for one auto-repair run.

    ``attempts`` accumulates across nodes (operator.add reducer); all other
    fields are overwritten by the node that returns them.
    """

    # Input
    project: str
    command: str | None
    max_attempts: int

    # Loop progress
    attempt_index: int
    last_run: RunResult | None
    fix_found: bool

    # Audit trail (accumulating reducer)
    attempts: Annotated[list[RepairAttempt], operator.add]

    # Terminal
    status: RepairStatus | None
    message: str
    final_output: str | None
    error: str | None


def make_initial_state(
    project: str,
    command: str | None = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> RepairState:
    """Create the initial state for a repair run.

    Args:
        project: Project whose program is repaired.
        command: Explicit run command; None lets the loop pick one.
        max_attempts: Loop bound, clamped to 1..MAX_ATTEMPTS.
    """
    clamped = max(1, min(max_attempts, MAX_ATTEMPTS))
    return {
        "project": project,
        "command": command.strip() if command and command.strip() else None,
        "max_attempts": clamped,
        "attempt_index": 0,
        "last_run": None,
        "fix_found": False,
        "attempts": [],
        "status": None,
        "message": "",
        "final_output": None,
        "error": None,
    }

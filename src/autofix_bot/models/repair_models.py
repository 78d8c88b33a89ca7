"""Models for command runs and the auto-repair loop."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RepairOutcome(str, Enum):
    """Outcome recorded for one step of the repair loop."""

    SUCCESS = "success"
    ERROR_DETECTED = "error_detected"
    FIX_APPLIED = "fix_applied"
    NO_FIX_FOUND = "no_fix_found"


class RepairStatus(str, Enum):
    """Terminal state of a whole repair run."""

    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    ABANDONED = "abandoned"
    ABORTED = "aborted"  # Completion provider failed mid-run


class RepairAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)  # 1-based loop iteration
    outcome: RepairOutcome
    command_output: str = ""  # Truncated run output or provider reply
    applied_files: list[str] = Field(default_factory=list)
    explanation: str | None = None


class RepairResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    success: bool
    status: RepairStatus
    message: str
    command: str | None = None
    attempts: list[RepairAttempt] = Field(default_factory=list)
    final_output: str | None = None
    error: str | None = None


class RunResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    stdout: str = ""
    stderr: str = ""
    exit_failed: bool = False
    timed_out: bool = False
    background: bool = False
    pid: int | None = None
    port: int | None = None
    url: str | None = None
    message: str | None = None  # Synthesized banner for background runs

    @property
    def output(self) -> str:
        """Text shown to the user for this run."""
        if self.message:
            return self.message
        first, second = (self.stderr, self.stdout) if self.exit_failed else (self.stdout, self.stderr)
        if first:
            return first
        if second:
            return second
        if self.exit_failed:
            return "Command failed with no output"
        return "Command executed successfully"

    @property
    def combined_output(self) -> str:
        """stdout and stderr together, for error analysis."""
        parts = [part.rstrip("\n") for part in (self.stdout, self.stderr) if part.strip()]
        return "\n".join(parts)

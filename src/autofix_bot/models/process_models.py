"""Models for tracked processes and preview servers."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProcessRecord(BaseModel):
    """A spawned background process owned by the process registry."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str  # Owning project, or "default"
    pid: int
    handle: Any = Field(default=None, exclude=True, repr=False)
    process_group: bool = False  # Leader of its own session (POSIX)


class PreviewServerRecord(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    project: str
    port: int
    server: Any = Field(default=None, exclude=True, repr=False)

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"


class ProcessInfo(BaseModel):
    pid: int | None  # None for in-process preview servers
    name: str


class KillResult(BaseModel):
    success: bool
    message: str | None = None
    error: str | None = None


class PreviewResult(BaseModel):
    success: bool
    message: str
    url: str | None = None

"""Models for structured actions extracted from generated text."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

QUOTE_CHARS = "\"'"


class FileEdit(BaseModel):
    """A single whole-file write requested by the assistant."""

    model_config = ConfigDict(frozen=True)

    path: str  # Relative path inside the project
    content: str  # Complete new file content

    @field_validator("path")
    @classmethod
    def _clean_path(cls, value: str) -> str:
        cleaned = value.strip().strip(QUOTE_CHARS).strip()
        if not cleaned:
            raise ValueError("FileEdit.path must not be empty")
        return cleaned


class ActionDirective(BaseModel):
    """Explanation plus ordered file edits parsed from one reply."""

    model_config = ConfigDict(frozen=True)

    explanation: str = ""
    file_edits: tuple[FileEdit, ...] = Field(default_factory=tuple)

    @property
    def has_edits(self) -> bool:
        return len(self.file_edits) > 0

    def effective_files(self) -> dict[str, str]:
        """Map path -> content; a repeated path keeps its last content."""
        files: dict[str, str] = {}
        for edit in self.file_edits:
            files[edit.path] = edit.content
        return files

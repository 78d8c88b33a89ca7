"""Models for chat turns and dispatcher outcomes."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from autofix_bot.models.directive_models import FileEdit


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_message: str
    ai_response: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ChatAction(str, Enum):
    READ_FILE = "read_file"
    DELETE_FILE = "delete_file"
    AUTO_FIX = "auto_fix"
    WRITE_FILE = "write_file"
    WRITE_MULTIPLE_FILES = "write_multiple_files"
    PLAIN_RESPONSE = "plain_response"


class ChatOutcome(BaseModel):
    """What the dispatcher decided and did for one instruction."""

    model_config = ConfigDict(frozen=False)

    action: ChatAction
    response: str
    path: str | None = None
    content: str | None = None
    files: list[FileEdit] = Field(default_factory=list)


class ChatIntentKind(str, Enum):
    SELECT_PROJECT = "select_project"
    DELETE_FILE = "delete_file"
    READ_FILE = "read_file"
    AUTO_FIX = "auto_fix"
    FILE_EDIT = "file_edit"
    GENERAL = "general"


class ChatIntent(BaseModel):
    """Classification of one chat instruction."""

    model_config = ConfigDict(frozen=True)

    kind: ChatIntentKind
    path: str | None = None  # File named by delete/read phrasing

"""Content stores for project files and chat transcripts."""

from autofix_bot.storage.content_store import (
    ContentStore,
    FileSystemContentStore,
    InMemoryContentStore,
)
from autofix_bot.storage.exceptions import ContentStoreError, InvalidPath, NotFound

__all__ = [
    "ContentStore",
    "ContentStoreError",
    "FileSystemContentStore",
    "InMemoryContentStore",
    "InvalidPath",
    "NotFound",
]

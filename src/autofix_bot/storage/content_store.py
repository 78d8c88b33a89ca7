"""Content stores for project files and chat transcripts."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from autofix_bot.models import ChatTurn
from autofix_bot.storage.exceptions import InvalidPath, NotFound

logger = logging.getLogger(__name__)

TRANSCRIPT_DIR = ".autofix_transcripts"
IGNORED_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", TRANSCRIPT_DIR})


@runtime_checkable
class ContentStore(Protocol):
    """Persistence contract used by the dispatcher, repair loop and service."""

    def list_project_files(self, project: str) -> list[str]: ...

    def read_file(self, project: str, path: str) -> str: ...

    def write_file(self, project: str, path: str, content: str) -> None: ...

    def delete_file(self, project: str, path: str) -> None: ...

    def append_chat_turn(self, project: str, user_message: str, ai_response: str) -> None: ...

    def load_chat_history(self, project: str) -> list[ChatTurn]: ...

    def workspace_path(self, project: str) -> Path | None: ...


def _normalize_path(path: str) -> str:
    """Return a clean relative posix path or raise InvalidPath."""
    cleaned = path.strip().replace("\\", "/").lstrip("/")
    parts = [part for part in cleaned.split("/") if part not in ("", ".")]
    if not parts or ".." in parts:
        raise InvalidPath(f"Invalid file path: '{path}'")
    return "/".join(parts)


class InMemoryContentStore:
    """Dict-backed store; projects have no on-disk workspace."""

    def __init__(self) -> None:
        self._files: dict[str, dict[str, str]] = {}
        self._history: dict[str, list[ChatTurn]] = {}
        self._lock = threading.Lock()

    def create_project(self, project: str) -> None:
        with self._lock:
            self._files.setdefault(project, {})

    def list_project_files(self, project: str) -> list[str]:
        with self._lock:
            if project not in self._files:
                raise NotFound(f"Project '{project}' not found")
            return sorted(self._files[project])

    def read_file(self, project: str, path: str) -> str:
        key = _normalize_path(path)
        with self._lock:
            files = self._files.get(project)
            if files is None or key not in files:
                raise NotFound(f"File '{path}' not found in project '{project}'")
            return files[key]

    def write_file(self, project: str, path: str, content: str) -> None:
        key = _normalize_path(path)
        with self._lock:
            self._files.setdefault(project, {})[key] = content

    def delete_file(self, project: str, path: str) -> None:
        key = _normalize_path(path)
        with self._lock:
            files = self._files.get(project)
            if files is None or key not in files:
                raise NotFound(f"File '{path}' not found in project '{project}'")
            del files[key]

    def append_chat_turn(self, project: str, user_message: str, ai_response: str) -> None:
        with self._lock:
            self._history.setdefault(project, []).append(
                ChatTurn(user_message=user_message, ai_response=ai_response)
            )

    def load_chat_history(self, project: str) -> list[ChatTurn]:
        with self._lock:
            return list(self._history.get(project, []))

    def workspace_path(self, project: str) -> Path | None:
        return None


class FileSystemContentStore:
    """Projects are directories under root; transcripts are JSON files."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _project_dir(self, project: str) -> Path:
        project_dir = (self.root / project).resolve()
        if project_dir == self.root or not project_dir.is_relative_to(self.root):
            raise InvalidPath(f"Invalid project name: '{project}'")
        return project_dir

    def _file_path(self, project: str, path: str) -> Path:
        project_dir = self._project_dir(project)
        target = (project_dir / _normalize_path(path)).resolve()
        if not target.is_relative_to(project_dir):
            raise InvalidPath(
                f"Path traversal attempt detected: '{path}' resolves outside of project."
            )
        return target

    def _transcript_path(self, project: str) -> Path:
        self._project_dir(project)
        return self.root / TRANSCRIPT_DIR / f"{project}.json"

    def create_project(self, project: str) -> None:
        self._project_dir(project).mkdir(parents=True, exist_ok=True)

    def list_project_files(self, project: str) -> list[str]:
        project_dir = self._project_dir(project)
        if not project_dir.is_dir():
            raise NotFound(f"Project '{project}' not found")
        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(project_dir):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                files.append(full.relative_to(project_dir).as_posix())
        return files

    def read_file(self, project: str, path: str) -> str:
        target = self._file_path(project, path)
        if not target.is_file():
            raise NotFound(f"File '{path}' not found in project '{project}'")
        return target.read_text(encoding="utf-8", errors="replace")

    def write_file(self, project: str, path: str, content: str) -> None:
        target = self._file_path(project, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s/%s (%d chars)", project, path, len(content))

    def delete_file(self, project: str, path: str) -> None:
        target = self._file_path(project, path)
        if not target.is_file():
            raise NotFound(f"File '{path}' not found in project '{project}'")
        target.unlink()

    def append_chat_turn(self, project: str, user_message: str, ai_response: str) -> None:
        transcript = self._transcript_path(project)
        with self._lock:
            turns = self._read_transcript(transcript)
            turns.append(ChatTurn(user_message=user_message, ai_response=ai_response))
            transcript.parent.mkdir(parents=True, exist_ok=True)
            payload = [turn.model_dump(mode="json") for turn in turns]
            transcript.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def load_chat_history(self, project: str) -> list[ChatTurn]:
        transcript = self._transcript_path(project)
        with self._lock:
            return self._read_transcript(transcript)

    def _read_transcript(self, transcript: Path) -> list[ChatTurn]:
        if not transcript.exists():
            return []
        try:
            raw = json.loads(transcript.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable transcript %s: %s", transcript, exc)
            return []
        return [ChatTurn.model_validate(item) for item in raw]

    def workspace_path(self, project: str) -> Path | None:
        project_dir = self._project_dir(project)
        return project_dir if project_dir.is_dir() else None

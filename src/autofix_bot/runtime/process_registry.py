"""In-memory table of spawned background processes."""

import logging
import os
import signal
import subprocess
import threading
from typing import Any

from autofix_bot.models import KillResult, ProcessRecord
from autofix_bot.runtime.exceptions import ProcessNotFound

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"
KILL_GRACE_SECONDS = 5


class ProcessRegistry:
    """Tracks background processes by owning key.

    Several processes may share a key; every handle stays tracked until its
    process exits or is killed. The registry is the only component that
    terminates or reaps the handles it holds. All access is lock-guarded.
    """

    def __init__(self) -> None:
        self._records: dict[int, ProcessRecord] = {}
        self._lock = threading.RLock()

    def register(
        self,
        key: str,
        handle: Any,
        pid: int,
        process_group: bool = False,
    ) -> ProcessRecord:
        record = ProcessRecord(
            key=key or DEFAULT_KEY,
            pid=pid,
            handle=handle,
            process_group=process_group,
        )
        with self._lock:
            self._records[pid] = record
        logger.info("Registered process %d for '%s'", pid, record.key)
        return record

    def find(self, pid: int) -> ProcessRecord | None:
        with self._lock:
            return self._records.get(pid)

    def find_by_key(self, key: str) -> list[ProcessRecord]:
        with self._lock:
            return [record for record in self._records.values() if record.key == key]

    def list_all(self) -> list[ProcessRecord]:
        with self._lock:
            return list(self._records.values())

    def remove(self, key: str, pid: int | None = None) -> list[ProcessRecord]:
        """Drop the records of ``key`` (only ``pid`` when given)."""
        with self._lock:
            doomed = [
                record
                for record in self._records.values()
                if record.key == key and (pid is None or record.pid == pid)
            ]
            for record in doomed:
                del self._records[record.pid]
        return doomed

    def kill(self, pid: int) -> KillResult:
        """Terminate a tracked process; never raises.

        Untracked pids are reported as ProcessNotFound and leave the
        registry unchanged. The record is taken out before terminating so
        the lock is not held while waiting; it is put back if the kill fails.
        """
        with self._lock:
            record = self._records.pop(pid, None)
        if record is None:
            error = ProcessNotFound(f"Process {pid} is not tracked")
            return KillResult(success=False, error=f"Could not kill process: {error}")

        try:
            _terminate(record)
        except (OSError, ProcessNotFound, subprocess.TimeoutExpired) as exc:
            logger.warning("Failed to kill process %d: %s", pid, exc)
            with self._lock:
                self._records.setdefault(pid, record)
            return KillResult(success=False, error=f"Could not kill process: {exc}")
        logger.info("Killed process %d for '%s'", pid, record.key)
        return KillResult(success=True, message=f"Process {pid} killed")

    def kill_all(self) -> list[KillResult]:
        return [self.kill(record.pid) for record in self.list_all()]


def _signal(record: ProcessRecord, sig: int) -> None:
    if record.process_group:
        os.killpg(record.pid, sig)
    elif sig == signal.SIGTERM:
        record.handle.terminate()
    else:
        record.handle.kill()


def _terminate(record: ProcessRecord) -> None:
    """Terminate then reap a Popen handle, escalating to SIGKILL."""
    handle = record.handle
    if handle is None:
        raise ProcessNotFound(f"Process {record.pid} has no handle")
    if handle.poll() is not None:
        raise ProcessNotFound(f"Process {record.pid} already exited")
    _signal(record, signal.SIGTERM)
    try:
        handle.wait(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        _signal(record, getattr(signal, "SIGKILL", signal.SIGTERM))
        handle.wait(timeout=KILL_GRACE_SECONDS)

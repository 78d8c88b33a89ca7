"""Command runner: bounded synchronous runs and detached background servers."""

import logging
import os
import re
import shlex
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, IO

from autofix_bot.models import RunResult
from autofix_bot.runtime.exceptions import CommandTimeout, SpawnFailure
from autofix_bot.runtime.process_registry import DEFAULT_KEY, ProcessRegistry

logger = logging.getLogger(__name__)

# Constants
DEFAULT_TIMEOUT = 30
MAX_OUTPUT_CHARS = 5 * 1024 * 1024
SETTLE_SECONDS = 2.0
READY_POLL_SECONDS = 0.05
DRAIN_JOIN_SECONDS = 1.0
DEFAULT_PORT = 8000
ENTRY_POINT_FILES = ("app.py", "main.py", "manage.py", "server.js")

PYTHON_PREFIX_RE = re.compile(r"^\s*python(?=\s|$)")
STATIC_SERVER_RE = re.compile(r"http\.server|\bserve\b")
RUN_WORD_RE = re.compile(r"\brun\b")
READY_RE = re.compile(
    r"listening on|listening at|running on|serving http|server started|"
    r"started server|ready on|ready in|development server at",
    re.IGNORECASE,
)
COMMAND_PORT_RE = re.compile(r"(?<!\d)(\d{4,5})\s*$")
OUTPUT_PORT_RE = re.compile(
    r"(?:\bport\s+|localhost:|127\.0\.0\.1:|0\.0\.0\.0:|\[::\]:)(\d{2,5})\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class LongRunningRule:
    """A named predicate that marks a command as a long-lived server."""

    name: str
    matches: Callable[[str], bool]


LONG_RUNNING_RULES: tuple[LongRunningRule, ...] = (
    LongRunningRule("static-file-server", lambda cmd: bool(STATIC_SERVER_RE.search(cmd))),
    LongRunningRule(
        "run-entry-point",
        lambda cmd: bool(RUN_WORD_RE.search(cmd))
        and any(name in cmd for name in ENTRY_POINT_FILES),
    ),
)


def long_running_rule(command: str) -> LongRunningRule | None:
    """Return the first rule classifying ``command`` as long-running."""
    for rule in LONG_RUNNING_RULES:
        if rule.matches(command):
            return rule
    return None


def normalize_command(command: str, platform: str | None = None) -> str:
    """Rewrite a leading bare ``python`` to this platform's interpreter."""
    if not PYTHON_PREFIX_RE.match(command):
        return command
    platform = platform or sys.platform
    interpreter = "py" if platform == "win32" else shlex.quote(sys.executable)
    return PYTHON_PREFIX_RE.sub(lambda _match: interpreter, command, count=1).lstrip()


def detect_port(command: str, output: str = "") -> int:
    """Port from a trailing number in the command, else the output, else 8000."""
    match = COMMAND_PORT_RE.search(command.strip())
    if match:
        return int(match.group(1))
    match = OUTPUT_PORT_RE.search(output)
    if match:
        return int(match.group(1))
    return DEFAULT_PORT


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    return text if len(text) <= limit else text[:limit]


def _session_kwargs() -> dict:
    if os.name == "posix":
        return {"start_new_session": True}
    return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}


def _kill_tree(proc: subprocess.Popen) -> None:
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except OSError as exc:
        logger.debug("Kill of %d failed: %s", proc.pid, exc)


class OutputBuffer:
    """Thread-safe output accumulator capped at ``limit`` characters."""

    def __init__(self, limit: int = MAX_OUTPUT_CHARS) -> None:
        self.limit = limit
        self.truncated = False
        self.ready = threading.Event()
        self._chunks: list[str] = []
        self._size = 0
        self._lock = threading.Lock()

    def append(self, text: str) -> None:
        if READY_RE.search(text):
            self.ready.set()
        with self._lock:
            room = self.limit - self._size
            if room <= 0:
                self.truncated = True
                return
            if len(text) > room:
                text = text[:room]
                self.truncated = True
            self._chunks.append(text)
            self._size += len(text)

    def text(self) -> str:
        with self._lock:
            return "".join(self._chunks)


def _drain(stream: IO[str], buffer: OutputBuffer) -> None:
    # Keeps reading past the cap so the child never blocks on a full pipe
    for line in iter(stream.readline, ""):
        buffer.append(line)
    stream.close()


class CommandRunner:
    """Runs shell commands for a project and tracks the ones that stay up."""

    def __init__(
        self,
        registry: ProcessRegistry,
        default_timeout: float = DEFAULT_TIMEOUT,
        settle_seconds: float = SETTLE_SECONDS,
        platform: str | None = None,
    ) -> None:
        self.registry = registry
        self.default_timeout = default_timeout
        self.settle_seconds = settle_seconds
        self.platform = platform or sys.platform

    def run(
        self,
        command: str,
        working_directory: str | os.PathLike[str] | None = None,
        timeout: float | None = None,
        key: str = DEFAULT_KEY,
        allow_background: bool = True,
    ) -> RunResult:
        """Run ``command`` and report its output; never raises for run failures.

        Long-running commands (see LONG_RUNNING_RULES) are started detached and
        registered under ``key``; everything else runs under ``timeout``.
        """
        command = command.strip()
        if not command:
            return RunResult(stderr="No command given", exit_failed=True)

        shell_command = normalize_command(command, self.platform)
        cwd = os.fspath(working_directory) if working_directory is not None else None
        rule = long_running_rule(command) if allow_background else None

        try:
            if rule is not None:
                logger.info("Starting '%s' in background (%s)", command, rule.name)
                return self._spawn_background(command, shell_command, cwd, key or DEFAULT_KEY)
            return self._run_sync(shell_command, cwd, timeout or self.default_timeout)
        except SpawnFailure as exc:
            logger.warning("Could not start '%s': %s", command, exc)
            return RunResult(stderr=str(exc), exit_failed=True)

    def _run_sync(self, shell_command: str, cwd: str | None, timeout: float) -> RunResult:
        try:
            returncode, stdout, stderr = self._execute(shell_command, cwd, timeout)
        except CommandTimeout as exc:
            logger.warning("%s", exc)
            return RunResult(
                stdout=exc.stdout,
                stderr=f"{exc.stderr}\n{exc}" if exc.stderr else str(exc),
                exit_failed=True,
                timed_out=True,
            )
        return RunResult(stdout=stdout, stderr=stderr, exit_failed=returncode != 0)

    def _execute(
        self,
        shell_command: str,
        cwd: str | None,
        timeout: float,
    ) -> tuple[int, str, str]:
        """Run to completion under a wall-clock bound.

        Raises:
            CommandTimeout: The bound elapsed; the process tree was killed.
            SpawnFailure: The shell could not be started.
        """
        try:
            proc = subprocess.Popen(
                shell_command,
                shell=True,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                **_session_kwargs(),
            )
        except OSError as exc:
            raise SpawnFailure(f"Failed to start command: {exc}") from exc

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_tree(proc)
            stdout, stderr = proc.communicate()
            raise CommandTimeout(
                f"Command timed out after {timeout:g}s",
                stdout=truncate_output(stdout or ""),
                stderr=truncate_output(stderr or ""),
            )
        return proc.returncode, truncate_output(stdout or ""), truncate_output(stderr or "")

    def _spawn_background(
        self,
        command: str,
        shell_command: str,
        cwd: str | None,
        key: str,
    ) -> RunResult:
        try:
            proc = subprocess.Popen(
                shell_command,
                shell=True,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                **_session_kwargs(),
            )
        except OSError as exc:
            raise SpawnFailure(f"Error starting server: {exc}") from exc

        buffer = OutputBuffer()
        readers = [
            threading.Thread(target=_drain, args=(stream, buffer), daemon=True)
            for stream in (proc.stdout, proc.stderr)
        ]
        for reader in readers:
            reader.start()

        self._wait_until_ready(proc, buffer)

        if proc.poll() is not None:
            for reader in readers:
                reader.join(DRAIN_JOIN_SECONDS)
            output = buffer.text()
            failed = proc.returncode != 0
            logger.info("'%s' exited during startup with code %s", command, proc.returncode)
            return RunResult(
                stdout=output,
                stderr="Command failed to start" if failed and not output else "",
                exit_failed=failed,
            )

        self.registry.register(key, proc, proc.pid, process_group=os.name == "posix")
        threading.Thread(
            target=self._watch, args=(proc, key), daemon=True
        ).start()

        output = buffer.text()
        port = detect_port(command, output)
        url = f"http://localhost:{port}"
        message = (
            "Server started successfully!\n\n"
            "Access your server at:\n"
            f"   - http://127.0.0.1:{port}\n"
            f"   - {url}\n\n"
            f"Server is running with PID: {proc.pid}\n"
        )
        if output:
            message += f"\nServer output:\n{output}"
        return RunResult(
            stdout=output,
            background=True,
            pid=proc.pid,
            port=port,
            url=url,
            message=message,
        )

    def _wait_until_ready(self, proc: subprocess.Popen, buffer: OutputBuffer) -> None:
        """Wait for a ready line, process exit, or the settle window.

        Without a ready line this is the fixed-delay heuristic: a slow server
        that prints nothing within the window reports no startup output.
        """
        deadline = time.monotonic() + self.settle_seconds
        while time.monotonic() < deadline:
            if buffer.ready.wait(READY_POLL_SECONDS):
                return
            if proc.poll() is not None:
                return

    def _watch(self, proc: subprocess.Popen, key: str) -> None:
        returncode = proc.wait()
        self.registry.remove(key, proc.pid)
        logger.info("Background process %d for '%s' exited with %s", proc.pid, key, returncode)

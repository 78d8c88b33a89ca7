"""Per-project static preview servers."""

import functools
import logging
import os
import random
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer

from autofix_bot.models import PreviewServerRecord
from autofix_bot.runtime.exceptions import PreviewUnavailable

logger = logging.getLogger(__name__)

PREVIEW_HOST = "127.0.0.1"
PREVIEW_PORT_RANGE = (3000, 3999)


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:
        logger.debug("preview %s - %s", self.address_string(), format % args)


class PreviewServerRegistry:
    """At most one static file server per project."""

    def __init__(self, host: str = PREVIEW_HOST) -> None:
        self.host = host
        self._servers: dict[str, PreviewServerRecord] = {}
        self._lock = threading.Lock()

    def get(self, project: str) -> PreviewServerRecord | None:
        with self._lock:
            return self._servers.get(project)

    def host_project(
        self,
        project: str,
        directory: str | os.PathLike[str],
        port: int | None = None,
    ) -> tuple[PreviewServerRecord, bool]:
        """Serve ``directory`` for ``project``.

        Returns:
            (record, created); created is False when a server already existed.

        Raises:
            PreviewUnavailable: If the directory is missing or the port is taken.
        """
        with self._lock:
            existing = self._servers.get(project)
            if existing is not None:
                return existing, False

            if not os.path.isdir(directory):
                raise PreviewUnavailable(f"Project directory not found: {directory}")

            requested = port if port is not None else random.randint(*PREVIEW_PORT_RANGE)
            handler = functools.partial(_QuietHandler, directory=os.fspath(directory))
            try:
                server = ThreadingHTTPServer((self.host, requested), handler)
            except OSError as exc:
                raise PreviewUnavailable(
                    f"Could not bind preview server to port {requested}: {exc}"
                ) from exc

            thread = threading.Thread(
                target=server.serve_forever,
                name=f"preview-{project}",
                daemon=True,
            )
            thread.start()
            record = PreviewServerRecord(
                project=project, port=server.server_address[1], server=server
            )
            self._servers[project] = record

        logger.info("Preview server for %s on port %d", project, record.port)
        return record, True

    def stop(self, project: str) -> PreviewServerRecord | None:
        with self._lock:
            record = self._servers.pop(project, None)
        if record is not None:
            record.server.shutdown()
            record.server.server_close()
            logger.info("Preview server for %s stopped", project)
        return record

    def list_all(self) -> list[PreviewServerRecord]:
        with self._lock:
            return list(self._servers.values())

    def stop_all(self) -> None:
        for record in self.list_all():
            self.stop(record.project)

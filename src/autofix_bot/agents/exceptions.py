"""Exceptions for agent operations."""

MAX_ERROR_BODY = 500


class AgentError(Exception):
    """Base exception for all agent operations."""


class ProviderFailure(AgentError):
    """Raised when the completion provider call fails (transport, auth, non-2xx)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body[:MAX_ERROR_BODY] if body else None
        detail = message
        if status_code is not None:
            detail = f"{detail} (status {status_code})"
        if self.body:
            detail = f"{detail}: {self.body}"
        super().__init__(detail)


class ParseEmpty(AgentError):
    """Raised when a reply holds no actionable file directive."""

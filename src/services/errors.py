"""Shared service-layer error types.

Provides error types raised by the record store client and understood by
the rate-limited executor. Centralised here to avoid circular imports
between service modules.
"""

from dataclasses import dataclass


@dataclass(eq=False)
class RecordStoreError(Exception):
    """Error returned by the record store (Notion API).

    Attributes:
        status_code: HTTP status code, or 0 for transport failures.
        message: Human-readable error message.
        code: Notion error code (e.g. "validation_error"), if provided.
    """

    status_code: int
    message: str
    code: str | None = None

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.status_code:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


@dataclass(eq=False)
class ThrottledError(RecordStoreError):
    """The record store rejected the call for exceeding its rate limit.

    Attributes:
        retry_after: Server-suggested wait in seconds, if the response
            carried a numeric Retry-After hint.
    """

    retry_after: float | None = None

"""Exception types shared by the proxy routes, upstream callers and chat client."""

from __future__ import annotations

from typing import Any


class ProxyError(Exception):
    """An error the proxy answers itself instead of relaying an upstream body.

    Rendered by the application exception handler as
    ``{"error": {"code": status_code, "message": message}}`` so callers can
    read ``error.message`` the same way they read upstream Gemini errors.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def to_body(self) -> dict[str, Any]:
        return error_body(self.status_code, self.message)


class UpstreamDecodeError(Exception):
    """The upstream answered with a body that is not valid JSON."""


class ChatSessionError(Exception):
    """Base class for errors raised by :class:`ChatSession` before any request is made."""


class EmptyMessageError(ChatSessionError):
    """The message to send is empty after stripping whitespace."""


class SendInProgressError(ChatSessionError):
    """A send was issued while a previous one is still awaiting its reply."""


class ProxyUnavailableError(ChatSessionError):
    """The availability check reported that the proxy has no API key configured."""


def error_body(code: int, message: str) -> dict[str, Any]:
    """Build an error descriptor in the same shape Gemini uses."""
    return {"error": {"code": code, "message": message}}

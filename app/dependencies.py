"""Centralized FastAPI dependencies for use with Depends()."""

from typing import Annotated

import httpx
from fastapi import Depends, status

from app.config import settings
from app.errors import ProxyError
from app.services.gemini_client import InMemoryUpstreamCaller, UpstreamCaller
from app.services.retry import RetryPolicy

MISSING_KEY_MESSAGE = (
    "API Key not configured on the server. Please set the GEMINI_API_KEY environment variable."
)

_chat_caller: UpstreamCaller = InMemoryUpstreamCaller()
_image_caller: UpstreamCaller = InMemoryUpstreamCaller()
_retry_policy = RetryPolicy(
    max_attempts=settings.retry_max_attempts,
    base_delay=settings.retry_base_delay,
)


def init_production_deps(
    http_client: httpx.AsyncClient,
    api_key: str,
    base_url: str,
    chat_model: str,
    image_model: str,
) -> None:
    """Swap the in-memory test doubles for real Gemini REST callers."""
    global _chat_caller, _image_caller  # noqa: PLW0603

    from app.services.gemini_client import GeminiRestClient

    _chat_caller = GeminiRestClient(http_client, api_key, chat_model, base_url)
    _image_caller = GeminiRestClient(http_client, api_key, image_model, base_url)


def get_api_key() -> str:
    """Return the configured secret key (empty string when missing)."""
    return settings.gemini_api_key


def require_api_key(api_key: Annotated[str, Depends(get_api_key)]) -> str:
    """Reject the request as a server misconfiguration when no key is set.

    Routes declare this before anything that reads the body so the check
    always runs first.

    Raises:
        ProxyError: 500 if the key is missing.
    """
    if not api_key:
        raise ProxyError(status.HTTP_500_INTERNAL_SERVER_ERROR, MISSING_KEY_MESSAGE)
    return api_key


def get_chat_caller() -> UpstreamCaller:
    """Return the upstream caller for the text model.

    Defaults to InMemoryUpstreamCaller for development and testing.
    Swapped to the REST client by ``init_production_deps()``.
    """
    return _chat_caller


def get_image_caller() -> UpstreamCaller:
    """Return the upstream caller for the image model."""
    return _image_caller


def get_retry_policy() -> RetryPolicy:
    """Return the shared retry policy (stateless between calls)."""
    return _retry_policy


__all__ = [
    "get_api_key",
    "get_chat_caller",
    "get_image_caller",
    "get_retry_policy",
    "init_production_deps",
    "require_api_key",
]

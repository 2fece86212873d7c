"""Gemini REST upstream callers with protocol-based swappable implementations.

Production code uses ``GeminiRestClient``, which POSTs to the public
``generateContent`` endpoint over a shared ``httpx.AsyncClient`` with the API
key as a query parameter.  The raw REST API is used rather than an SDK
because the proxy relays upstream bodies verbatim, errors included.

Tests use ``InMemoryUpstreamCaller``, which records payloads and replays a
scripted list of results without network access.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

import httpx

from app.services.upstream import UpstreamResult, post_json

SYSTEM_INSTRUCTION = (
    "You are a world-class, fact-checked AI assistant. Use Google Search to ground "
    "your answers in real-time information. You must cite your sources when using "
    "search results."
)


class UpstreamCaller(Protocol):
    """Protocol for a single upstream ``generateContent`` call."""

    async def generate(self, payload: dict[str, Any]) -> UpstreamResult:
        """POST ``payload`` once and return the decoded body with its status."""
        ...


def build_chat_payload(contents: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap the conversation with search grounding and the system instruction."""
    return {
        "contents": contents,
        "tools": [{"google_search": {}}],
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
    }


def build_image_payload(prompt: str) -> dict[str, Any]:
    """Single text part plus the directive asking for an image modality back."""
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"responseModalities": ["IMAGE"]},
    }


class GeminiRestClient:
    """Production caller for one Gemini model over the REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/models/{model}:generateContent"

    async def generate(self, payload: dict[str, Any]) -> UpstreamResult:
        """POST to ``models/{model}:generateContent?key=...``."""
        return await post_json(self._http, self.url, payload, params={"key": self._api_key})


class InMemoryUpstreamCaller:
    """Test double that records payloads and replays scripted results.

    Results are consumed in order; the last one repeats once the script runs
    out.  A scripted exception instance is raised instead of returned.
    """

    def __init__(self, results: Iterable[UpstreamResult | BaseException] | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.results: list[UpstreamResult | BaseException] = list(
            results
            if results is not None
            else [UpstreamResult(200, {"candidates": [{"content": {"parts": [{"text": "test answer"}]}}]})]
        )

    async def generate(self, payload: dict[str, Any]) -> UpstreamResult:
        """Record the payload and return (or raise) the next scripted result."""
        self.calls.append(payload)
        index = min(len(self.calls), len(self.results)) - 1
        result = self.results[index]
        if isinstance(result, BaseException):
            raise result
        return result

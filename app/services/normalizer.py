"""Normalize Gemini ``generateContent`` bodies into answers, sources and images.

Every field of the response is optional in practice (safety blocks return no
parts, errors return no candidates, proxies may return a bare ``error``
string), so all access goes through ``_dig`` and nothing here raises for any
JSON-compatible input.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

from app.schemas.conversation import Source

MALFORMED_RESPONSE_MESSAGE = "Received an empty or malformed response."
UNEXPECTED_ERROR_PREFIX = "An unexpected error occurred: "


@dataclass
class NormalizedAnswer:
    """Answer text and cited sources extracted from one response body."""

    text: str
    sources: list[Source] = field(default_factory=list)
    is_error: bool = False


@dataclass(frozen=True)
class GeneratedImage:
    """An inline image returned by the image model (base64 payload)."""

    mime_type: str
    data: str

    def as_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def _dig(value: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(value, list) or not -len(value) <= step < len(value):
                return None
        elif not isinstance(value, dict):
            return None
        value = value[step] if isinstance(step, int) else value.get(step)
    return value


def _first_candidate(body: Any) -> Any:
    return _dig(body, "candidates", 0)


def error_message(body: Any) -> str | None:
    """Return ``error.message`` (or a bare string ``error``) if present."""
    error = _dig(body, "error")
    if isinstance(error, str):
        return error or None
    message = _dig(error, "message")
    if isinstance(message, str) and message:
        return message
    return None


def extract_text(body: Any) -> str | None:
    """Text of the first part of the first candidate, if any."""
    text = _dig(_first_candidate(body), "content", "parts", 0, "text")
    if isinstance(text, str) and text:
        return text
    return None


def extract_sources(body: Any) -> list[Source]:
    """Map grounding attributions to sources, deduplicated by uri.

    Attributions without a uri are dropped whatever their title.  The first
    occurrence of each uri wins and the upstream order is preserved.
    """
    attributions = _dig(_first_candidate(body), "groundingMetadata", "groundingAttributions")
    if not isinstance(attributions, list):
        return []

    sources: list[Source] = []
    seen: set[str] = set()
    for attribution in attributions:
        uri = _dig(attribution, "web", "uri")
        if not isinstance(uri, str) or not uri or uri in seen:
            continue
        title = _dig(attribution, "web", "title")
        seen.add(uri)
        sources.append(Source(uri=uri, title=title if isinstance(title, str) else None))
    return sources


def normalize_answer(body: Any) -> NormalizedAnswer:
    """Build the assistant's reply from a chat response body.

    Falls back to the body's error message, then to a generic message, when
    there is no candidate text.
    """
    sources = extract_sources(body)
    text = extract_text(body)
    if text is not None:
        return NormalizedAnswer(text=text, sources=sources)

    detail = error_message(body) or MALFORMED_RESPONSE_MESSAGE
    return NormalizedAnswer(text=UNEXPECTED_ERROR_PREFIX + detail, sources=sources, is_error=True)


def extract_image(body: Any) -> GeneratedImage | None:
    """Return the first inline image part of the first candidate, if any."""
    parts = _dig(_first_candidate(body), "content", "parts")
    if not isinstance(parts, list):
        return None
    for part in parts:
        inline = _dig(part, "inlineData")
        if inline is None:
            inline = _dig(part, "inline_data")
        data = _dig(inline, "data")
        if not isinstance(data, str) or not data:
            continue
        mime_type = _dig(inline, "mimeType") or _dig(inline, "mime_type")
        return GeneratedImage(
            mime_type=mime_type if isinstance(mime_type, str) else "image/png",
            data=data,
        )
    return None

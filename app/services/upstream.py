"""Single JSON POST over httpx, returning the decoded body with its status code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from app.errors import UpstreamDecodeError, error_body


@dataclass(frozen=True)
class UpstreamResult:
    """Decoded body and HTTP status of one upstream call.

    ``synthesized`` marks results built locally (e.g. after the body could not
    be decoded on every attempt) rather than received from the upstream.
    """

    status_code: int
    body: Any
    synthesized: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def error(cls, status_code: int, message: str) -> UpstreamResult:
        """Build a synthesized result carrying an error descriptor."""
        return cls(status_code=status_code, body=error_body(status_code, message), synthesized=True)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: Any,
    params: dict[str, str] | None = None,
) -> UpstreamResult:
    """POST ``payload`` as JSON and decode the JSON response body.

    Non-2xx statuses are returned, not raised: callers decide what a status
    means.

    Raises:
        UpstreamDecodeError: The response body is not valid JSON, or its
            content encoding (gzip, deflate, ...) could not be decoded.
        httpx.TransportError: Connection failures and timeouts.
    """
    try:
        resp = await client.post(url, json=payload, params=params)
    except httpx.DecodingError as exc:
        raise UpstreamDecodeError(f"Could not decode response body: {exc}") from exc
    try:
        body = resp.json()
    except ValueError as exc:
        raise UpstreamDecodeError(
            f"Could not decode response body (HTTP {resp.status_code}): {exc}"
        ) from exc
    return UpstreamResult(status_code=resp.status_code, body=body)

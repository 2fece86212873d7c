"""Helpers shared by the chat and image proxy routes."""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from fastapi import Request, status
from pydantic import BaseModel, ValidationError

from app.errors import ProxyError
from app.services.gemini_client import UpstreamCaller
from app.services.retry import RetryPolicy
from app.services.upstream import UpstreamResult

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_json_body(request: Request, model: type[ModelT]) -> ModelT:
    """Parse the request body into ``model``.

    The body is read inside the route (not as a FastAPI body parameter) so
    that the API key dependency always runs before any body validation.

    Raises:
        ProxyError: 400 on invalid JSON or a body that does not fit ``model``.
    """
    raw = await request.body()
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        message = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'body'}: {err['msg']}" for err in errors
        )
        raise ProxyError(status.HTTP_400_BAD_REQUEST, f"Invalid request body: {message}") from exc


async def relay_upstream(
    policy: RetryPolicy,
    caller: UpstreamCaller,
    payload: dict[str, Any],
    *,
    route: str,
) -> UpstreamResult:
    """Run one upstream call under the retry policy.

    Raises:
        ProxyError: 502 if the upstream cannot be reached at all.
    """
    try:
        result = await policy.run(lambda: caller.generate(payload))
    except httpx.TransportError as exc:
        logger.error("upstream_unreachable", route=route, error=str(exc))
        raise ProxyError(
            status.HTTP_502_BAD_GATEWAY, f"Could not reach the upstream model: {exc}"
        ) from exc

    logger.info("upstream_relayed", route=route, status_code=result.status_code)
    return result

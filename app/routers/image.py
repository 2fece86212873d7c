"""Image proxy: turns ``{instances: {prompt}}`` into an image-modality Gemini call."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.dependencies import get_image_caller, get_retry_policy, require_api_key
from app.errors import ProxyError
from app.routers.common import read_json_body, relay_upstream
from app.schemas.chat import ImageProxyRequest
from app.services.gemini_client import UpstreamCaller, build_image_payload
from app.services.retry import RetryPolicy

router = APIRouter(prefix="/api", tags=["image"])


@router.post("/image")
async def generate_image(
    request: Request,
    api_key: Annotated[str, Depends(require_api_key)],
    caller: Annotated[UpstreamCaller, Depends(get_image_caller)],
    policy: Annotated[RetryPolicy, Depends(get_retry_policy)],
) -> JSONResponse:
    """Generate an image for the prompt and relay the upstream body verbatim.

    Raises:
        ProxyError: 400 if the prompt is missing or empty (no upstream call).
    """
    body = await read_json_body(request, ImageProxyRequest)
    prompt = body.prompt
    if prompt is None:
        raise ProxyError(status.HTTP_400_BAD_REQUEST, "Missing image generation prompt.")

    result = await relay_upstream(policy, caller, build_image_payload(prompt), route="image")
    return JSONResponse(content=result.body, status_code=result.status_code)

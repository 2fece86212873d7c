"""Chat proxy: key existence check and grounded ``generateContent`` relay.

The browser never sees the API key.  It sends the conversation to
``POST /api/chat``; the proxy adds Google Search grounding and the system
instruction, calls Gemini under the retry policy and relays the final status
and body unchanged, upstream errors included.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from app.dependencies import get_chat_caller, get_retry_policy, require_api_key
from app.routers.common import read_json_body, relay_upstream
from app.schemas.chat import ChatProxyRequest
from app.services.gemini_client import UpstreamCaller, build_chat_payload
from app.services.retry import RetryPolicy

router = APIRouter(prefix="/api", tags=["chat"])

ApiKey = Annotated[str, Depends(require_api_key)]


@router.api_route("/chat", methods=["GET", "HEAD"])
async def chat_available(api_key: ApiKey) -> Response:
    """Tell the client whether chat can be enabled.

    200 with no body when the key is configured; the ``require_api_key``
    dependency answers 500 otherwise.
    """
    return Response(status_code=status.HTTP_200_OK)


@router.post("/chat")
async def chat(
    request: Request,
    api_key: ApiKey,
    caller: Annotated[UpstreamCaller, Depends(get_chat_caller)],
    policy: Annotated[RetryPolicy, Depends(get_retry_policy)],
) -> JSONResponse:
    """Forward the conversation to the text model and relay its answer."""
    body = await read_json_body(request, ChatProxyRequest)
    payload = build_chat_payload(body.forwarded_contents())
    result = await relay_upstream(policy, caller, payload, route="chat")
    return JSONResponse(content=result.body, status_code=result.status_code)

"""Tests for the Gemini REST caller, payload builders and the in-memory double.

All tests are mock-based -- no real Gemini API calls are made.
"""

import json

import httpx
import pytest
from conftest import candidate_body

from app.errors import UpstreamDecodeError
from app.services.gemini_client import (
    SYSTEM_INSTRUCTION,
    GeminiRestClient,
    InMemoryUpstreamCaller,
    build_chat_payload,
    build_image_payload,
)
from app.services.upstream import UpstreamResult, post_json

# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def test_chat_payload_adds_grounding_and_system_instruction() -> None:
    contents = [{"role": "user", "parts": [{"text": "hello"}]}]

    payload = build_chat_payload(contents)

    assert payload["contents"] == contents
    assert payload["tools"] == [{"google_search": {}}]
    assert payload["systemInstruction"] == {"parts": [{"text": SYSTEM_INSTRUCTION}]}


def test_image_payload_requests_image_modality() -> None:
    payload = build_image_payload("a red fox")

    assert payload == {
        "contents": [{"parts": [{"text": "a red fox"}]}],
        "generationConfig": {"responseModalities": ["IMAGE"]},
    }


def test_system_instruction_asks_for_citations() -> None:
    assert "cite your sources" in SYSTEM_INSTRUCTION


# ---------------------------------------------------------------------------
# GeminiRestClient
# ---------------------------------------------------------------------------


async def test_rest_client_posts_to_model_endpoint_with_key() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=candidate_body("hi"))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        caller = GeminiRestClient(
            http, "secret-key", "gemini-test-model", base_url="https://upstream.test/v1beta/"
        )
        result = await caller.generate({"contents": []})

    assert result == UpstreamResult(200, candidate_body("hi"))
    req = captured[0]
    assert req.method == "POST"
    assert req.url.path == "/v1beta/models/gemini-test-model:generateContent"
    assert req.url.params["key"] == "secret-key"
    assert req.headers["content-type"] == "application/json"
    assert json.loads(req.content) == {"contents": []}


async def test_rest_client_returns_error_status_without_raising() -> None:
    error = {"error": {"code": 400, "message": "API key not valid.", "status": "INVALID_ARGUMENT"}}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json=error)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        result = await GeminiRestClient(http, "k", "m").generate({})

    assert result.status_code == 400
    assert result.body == error
    assert not result.ok


async def test_post_json_raises_decode_error_on_non_json() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(UpstreamDecodeError, match="HTTP 502"):
            await post_json(http, "https://upstream.test/x", {})


async def test_post_json_empty_body_is_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(UpstreamDecodeError):
            await post_json(http, "https://upstream.test/x", {})


# ---------------------------------------------------------------------------
# InMemoryUpstreamCaller
# ---------------------------------------------------------------------------


async def test_in_memory_caller_replays_script_and_repeats_last() -> None:
    first = UpstreamResult(429, {})
    last = UpstreamResult(200, candidate_body())
    caller = InMemoryUpstreamCaller([first, last])

    results = [await caller.generate({"n": i}) for i in range(3)]

    assert results == [first, last, last]
    assert caller.calls == [{"n": 0}, {"n": 1}, {"n": 2}]


async def test_in_memory_caller_raises_scripted_exception() -> None:
    caller = InMemoryUpstreamCaller([UpstreamDecodeError("bad body")])

    with pytest.raises(UpstreamDecodeError):
        await caller.generate({})
    assert len(caller.calls) == 1


async def test_in_memory_caller_default_response() -> None:
    result = await InMemoryUpstreamCaller().generate({})
    assert result.body["candidates"][0]["content"]["parts"][0]["text"] == "test answer"


async def test_post_json_content_decoding_failure_is_decode_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(UpstreamDecodeError, match="bad gzip"):
            await post_json(http, "https://upstream.test/x", {})

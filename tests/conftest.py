"""Shared test fixtures: in-memory upstream callers, fake sleep, and ASGI test clients."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from app.dependencies import get_api_key, get_chat_caller, get_image_caller, get_retry_policy
from app.main import app
from app.services.gemini_client import InMemoryUpstreamCaller
from app.services.retry import RetryPolicy
from app.services.upstream import UpstreamResult

TEST_API_KEY = "test-key"


def candidate_body(text: str = "test answer", attributions: list[dict] | None = None) -> dict:
    """Build a minimal successful ``generateContent`` body."""
    candidate: dict = {"content": {"role": "model", "parts": [{"text": text}]}}
    if attributions is not None:
        candidate["groundingMetadata"] = {"groundingAttributions": attributions}
    return {"candidates": [candidate]}


def rate_limited() -> UpstreamResult:
    return UpstreamResult(
        429,
        {"error": {"code": 429, "message": "Resource has been exhausted.", "status": "RESOURCE_EXHAUSTED"}},
    )


class FakeSleep:
    """Records requested backoff delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def retry_policy(fake_sleep: FakeSleep) -> RetryPolicy:
    """Five attempts, 1s base delay, no real waiting."""
    return RetryPolicy(max_attempts=5, base_delay=1.0, sleep=fake_sleep)


@pytest.fixture
def chat_caller() -> InMemoryUpstreamCaller:
    """Create a fresh in-memory text model caller for test inspection."""
    return InMemoryUpstreamCaller([UpstreamResult(200, candidate_body())])


@pytest.fixture
def image_caller() -> InMemoryUpstreamCaller:
    """Create a fresh in-memory image model caller for test inspection."""
    body = {
        "candidates": [
            {"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": "aGVsbG8="}}]}}
        ]
    }
    return InMemoryUpstreamCaller([UpstreamResult(200, body)])


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
async def client(
    api_key: str,
    chat_caller: InMemoryUpstreamCaller,
    image_caller: InMemoryUpstreamCaller,
    retry_policy: RetryPolicy,
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient against the app with dependencies overridden.

    Override ``api_key`` with ``""`` in a test module to exercise the
    missing-key path.
    """
    app.dependency_overrides[get_api_key] = lambda: api_key
    app.dependency_overrides[get_chat_caller] = lambda: chat_caller
    app.dependency_overrides[get_image_caller] = lambda: image_caller
    app.dependency_overrides[get_retry_policy] = lambda: retry_policy
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

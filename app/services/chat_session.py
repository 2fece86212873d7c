"""Client-side conversation state for talking to the chat proxy.

``ChatSession`` owns an append-only list of ``ConversationTurn`` objects.
Each ``send`` appends the user's turn, posts the whole conversation to the
proxy through the session's own ``RetryPolicy`` and appends exactly one
assistant turn, whatever happens upstream: the normalized answer, the
upstream error message, or a fixed message once retries are exhausted.

Only one send may be in flight at a time; a second concurrent ``send``
raises ``SendInProgressError`` instead of interleaving turns.  Image
generation is independent and can run as a background task next to a send.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from app.errors import (
    EmptyMessageError,
    ProxyUnavailableError,
    SendInProgressError,
    UpstreamDecodeError,
)
from app.schemas.chat import ChatProxyRequest
from app.schemas.conversation import ConversationTurn, Role
from app.services.normalizer import GeneratedImage, extract_image, normalize_answer
from app.services.retry import RetryPolicy
from app.services.upstream import UpstreamResult, post_json

logger = structlog.get_logger()

DEFAULT_GREETING = (
    "Hello! I am a grounded AI assistant. Ask me anything, and I will use Google "
    "Search to provide up-to-date, sourced information."
)
RETRIES_EXHAUSTED_MESSAGE = (
    "Error: Could not connect to the AI model after multiple retries. "
    "Please check your API key."
)
CANCELLED_MESSAGE = "Error: The request was cancelled before the AI model replied."


def default_client_policy(**kwargs: Any) -> RetryPolicy:
    """Retry policy for the client side: connection failures are transient too."""
    return RetryPolicy(retry_on=(UpstreamDecodeError, httpx.TransportError), **kwargs)


class ChatSession:
    """A single conversation with the proxy.

    Args:
        http_client: Client whose ``base_url`` points at the proxy.
        retry_policy: Policy for proxy calls; defaults to
            ``default_client_policy()``.
        greeting: Assistant turn the conversation starts with (``None`` for none).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        *,
        greeting: str | None = DEFAULT_GREETING,
        chat_path: str = "/api/chat",
        image_path: str = "/api/image",
    ) -> None:
        self._http = http_client
        self._retry = retry_policy or default_client_policy()
        self._chat_path = chat_path
        self._image_path = image_path
        self._turns: list[ConversationTurn] = []
        self._in_flight = False
        self._background: set[asyncio.Task[GeneratedImage | None]] = set()
        self.available: bool | None = None
        if greeting:
            self._turns.append(ConversationTurn(role=Role.ASSISTANT, text=greeting))

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def check_availability(self) -> bool:
        """Ask the proxy whether its API key is configured (HEAD the chat route)."""
        try:
            resp = await self._http.head(self._chat_path)
        except httpx.HTTPError as exc:
            logger.warning("proxy_availability_check_failed", error=str(exc))
            self.available = False
        else:
            self.available = resp.status_code == 200
        return self.available

    def build_request(self) -> ChatProxyRequest:
        """Reframe the whole conversation as the proxy's request body."""
        return ChatProxyRequest(contents=[turn.to_content() for turn in self._turns])

    async def send(self, text: str) -> ConversationTurn:
        """Send a user message and return the assistant turn appended for it.

        Raises:
            EmptyMessageError: ``text`` is blank.
            SendInProgressError: another send has not finished yet.
            ProxyUnavailableError: the last availability check failed.
        """
        query = text.strip()
        if not query:
            raise EmptyMessageError("message is empty")
        if self._in_flight:
            raise SendInProgressError("a message is already being sent")
        if self.available is False:
            raise ProxyUnavailableError("the chat proxy has no API key configured")

        self._in_flight = True
        try:
            self._turns.append(ConversationTurn(role=Role.USER, text=query))
            payload = self.build_request().model_dump()
            try:
                reply = await self._request_reply(payload)
            except asyncio.CancelledError:
                self._turns.append(ConversationTurn(role=Role.ASSISTANT, text=CANCELLED_MESSAGE))
                raise
            self._turns.append(reply)
            return reply
        finally:
            self._in_flight = False

    async def _request_reply(self, payload: dict[str, Any]) -> ConversationTurn:
        try:
            result = await self._retry.run(lambda: post_json(self._http, self._chat_path, payload))
        except httpx.HTTPError:
            logger.exception("chat_request_failed")
            return ConversationTurn(role=Role.ASSISTANT, text=RETRIES_EXHAUSTED_MESSAGE)

        if self._retry.is_exhausted(result):
            logger.warning("chat_retries_exhausted", status_code=result.status_code)
            return ConversationTurn(role=Role.ASSISTANT, text=RETRIES_EXHAUSTED_MESSAGE)

        answer = normalize_answer(result.body)
        if answer.is_error:
            logger.warning("chat_answer_missing", status_code=result.status_code)
            return ConversationTurn(role=Role.ASSISTANT, text=answer.text)
        return ConversationTurn(role=Role.ASSISTANT, text=answer.text, sources=tuple(answer.sources))

    async def generate_image(self, prompt: str) -> GeneratedImage | None:
        """Ask the image proxy for an image; ``None`` if none came back."""
        body = {"instances": {"prompt": prompt}}
        result: UpstreamResult = await self._retry.run(
            lambda: post_json(self._http, self._image_path, body)
        )
        if not result.ok:
            logger.warning("image_generation_failed", status_code=result.status_code)
            return None
        return extract_image(result.body)

    def start_image_generation(self, prompt: str) -> asyncio.Task[GeneratedImage | None]:
        """Run ``generate_image`` in the background without blocking sends.

        Failures are logged and surface only through the returned task.
        """
        task = asyncio.create_task(self.generate_image(prompt))
        self._background.add(task)
        task.add_done_callback(self._on_image_done)
        return task

    def _on_image_done(self, task: asyncio.Task[GeneratedImage | None]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background_image_generation_failed", error=str(exc))

"""Request schemas for the chat and image proxy endpoints.

The chat body mirrors Gemini's ``contents`` array so it can be forwarded
as-is; the image body keeps the ``instances.prompt`` shape older clients
send to the ``:predict`` style endpoint.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Part(BaseModel):
    """A single message part; non-text parts (``inlineData`` etc.) pass through."""

    model_config = ConfigDict(extra="allow")

    text: str | None = None


class Content(BaseModel):
    """One conversation entry as the upstream model expects it.

    Unknown keys are kept so the proxy forwards exactly what the client sent.
    """

    model_config = ConfigDict(extra="allow")

    role: Literal["user", "model"] | None = None
    parts: list[Part] = Field(min_length=1)


class ChatProxyRequest(BaseModel):
    """Body of ``POST /api/chat``: the full conversation so far."""

    contents: list[Content] = Field(min_length=1)

    def forwarded_contents(self) -> list[dict[str, Any]]:
        """The ``contents`` as received: unset fields omitted, extra keys kept."""
        return self.model_dump(exclude_unset=True)["contents"]


class ImageInstances(BaseModel):
    prompt: str | None = None


class ImageProxyRequest(BaseModel):
    """Body of ``POST /api/image``."""

    instances: ImageInstances | None = None

    @property
    def prompt(self) -> str | None:
        if self.instances is None or not self.instances.prompt:
            return None
        return self.instances.prompt

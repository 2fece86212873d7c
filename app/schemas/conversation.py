"""Conversation data model held by the chat client.

Turns are frozen once created; the conversation itself is an append-only
sequence owned by ``ChatSession``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.chat import Content, Part


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Source(BaseModel):
    """A web page the upstream model cited for a grounded answer."""

    model_config = ConfigDict(frozen=True)

    uri: str = Field(min_length=1)
    title: str | None = None

    @property
    def label(self) -> str:
        return self.title or self.uri


class ConversationTurn(BaseModel):
    """One message in the conversation, from the user or the assistant."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    sources: tuple[Source, ...] = ()

    @model_validator(mode="after")
    def _unique_source_uris(self) -> ConversationTurn:
        uris = [source.uri for source in self.sources]
        if len(uris) != len(set(uris)):
            raise ValueError("source uris must be unique within a turn")
        return self

    def to_content(self) -> Content:
        """Reframe the turn for the upstream model (assistant -> model)."""
        role = "user" if self.role is Role.USER else "model"
        return Content(role=role, parts=[Part(text=self.text)])

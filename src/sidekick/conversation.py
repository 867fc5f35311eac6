"""Conversation and request context types."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from .stream import ResponseStream


@dataclass(frozen=True)
class TurnRequest:
    message: str
    type: str = "user"


@dataclass(frozen=True)
class Turn:
    id: str
    request: TurnRequest


@dataclass(frozen=True)
class Conversation:
    """Ordered turns of one conversation."""

    session_id: str
    turns: tuple[Turn, ...] = ()

    @classmethod
    def single_turn(cls, message: str) -> Conversation:
        """Create a fresh conversation whose only turn is a user message."""
        return cls(session_id=uuid.uuid4().hex, turns=(Turn(id=uuid.uuid4().hex, request=TurnRequest(message)),))


@dataclass(frozen=True)
class ChatRequest:
    """The user request that is being answered."""

    prompt: str
    location: str = "panel"
    model: str | None = None


@dataclass(frozen=True)
class PromptContext:
    """Request-scoped context handed to a tool for one invocation."""

    request: ChatRequest | None = None
    stream: ResponseStream | None = None
    conversation: Conversation | None = None

"""Shared loop dataclasses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class FetchResponseType(StrEnum):
    """Outcome of one model fetch. Everything but SUCCESS is a failure."""

    SUCCESS = "Success"
    FAILURE = "Failure"
    RATE_LIMITED = "RateLimited"
    NETWORK_ERROR = "NetworkError"
    BAD_REQUEST = "BadRequest"
    LENGTH = "Length"
    CANCELED = "Canceled"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON arguments; anything that is not an object raises ValueError."""
        value = json.loads(self.arguments or "{}")
        if not isinstance(value, dict):
            raise ValueError(f"tool arguments must be a JSON object, got {type(value).__name__}")
        return value


@dataclass(frozen=True)
class FetchResponse:
    type: FetchResponseType
    reason: str | None = None
    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.type is FetchResponseType.SUCCESS

    @classmethod
    def success(cls, text: str, tool_calls: tuple[ToolCall, ...] = ()) -> FetchResponse:
        return cls(FetchResponseType.SUCCESS, text=text, tool_calls=tool_calls)

    @classmethod
    def failure(cls, reason: str, kind: FetchResponseType = FetchResponseType.FAILURE) -> FetchResponse:
        return cls(kind, reason=reason)


@dataclass(frozen=True)
class ToolCallRound:
    """One model reply and the tool calls it made."""

    id: str
    response: str
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class LoopResult:
    """Loop output for one delegation."""

    response: FetchResponse
    rounds: tuple[ToolCallRound, ...] = ()
    round: ToolCallRound | None = None
    tool_call_results: dict[str, str] = field(default_factory=dict)

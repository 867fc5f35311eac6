"""Activity stream that surfaces progress to whoever drives a tool."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class StreamPartKind(StrEnum):
    """Every kind of part a response stream can carry."""

    MARKDOWN = "markdown"
    PROGRESS = "progress"
    PREPARE_TOOL_INVOCATION = "prepare_tool_invocation"
    TEXT_EDIT = "text_edit"
    NOTEBOOK_EDIT = "notebook_edit"
    WARNING = "warning"


@dataclass(frozen=True)
class StreamPart:
    """One pushed event."""

    kind: StreamPartKind
    content: str = ""
    data: dict[str, Any] = field(default_factory=dict)


StreamCallback = Callable[[StreamPart], None]
StreamPredicate = Callable[[StreamPart], bool]


class ResponseStream:
    """Push-based stream of `StreamPart` values delivered to one callback."""

    def __init__(self, callback: StreamCallback) -> None:
        self._callback = callback

    def push(self, part: StreamPart) -> None:
        self._callback(part)

    def markdown(self, text: str) -> None:
        self.push(StreamPart(StreamPartKind.MARKDOWN, text))

    def progress(self, message: str) -> None:
        self.push(StreamPart(StreamPartKind.PROGRESS, message))

    def warning(self, message: str) -> None:
        self.push(StreamPart(StreamPartKind.WARNING, message))

    def prepare_tool_invocation(self, tool_name: str) -> None:
        self.push(StreamPart(StreamPartKind.PREPARE_TOOL_INVOCATION, tool_name, {"tool_name": tool_name}))

    def text_edit(self, path: str, edits: list[dict[str, Any]]) -> None:
        self.push(StreamPart(StreamPartKind.TEXT_EDIT, path, {"path": path, "edits": edits}))

    def notebook_edit(self, path: str, edits: list[dict[str, Any]]) -> None:
        self.push(StreamPart(StreamPartKind.NOTEBOOK_EDIT, path, {"path": path, "edits": edits}))

    @classmethod
    def filter(cls, stream: ResponseStream, predicate: StreamPredicate) -> ResponseStream:
        """Project `stream` onto the parts accepted by `predicate`.

        Parts are forwarded synchronously and in the order they are pushed.
        """

        def _forward(part: StreamPart) -> None:
            if predicate(part):
                stream.push(part)

        return cls(_forward)

"""Uniform contract every registered tool implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from ..cancellation import CancellationToken
from ..conversation import PromptContext

InputT = TypeVar("InputT", bound=BaseModel)


class ToolMode(StrEnum):
    PARTIAL_CONTEXT = "partial_context"
    FULL_CONTEXT = "full_context"


@dataclass(frozen=True)
class PreparedInvocation:
    """What the caller shows while the tool runs."""

    invocation_message: str


@dataclass(frozen=True)
class ToolInvocationOptions(Generic[InputT]):
    """Arguments of one tool invocation.

    `context` is scoped to this invocation only; tools must not keep it.
    """

    input: InputT
    context: PromptContext | None = None
    tool_call_id: str | None = None


@dataclass(frozen=True)
class ToolResult:
    parts: tuple[str, ...] = field(default_factory=tuple)
    is_error: bool = False

    @classmethod
    def from_text(cls, text: str, *, is_error: bool = False) -> ToolResult:
        return cls(parts=(text,), is_error=is_error)

    @property
    def text(self) -> str:
        return "".join(self.parts)


class AgentTool(ABC, Generic[InputT]):
    """Base class for tools the registry can expose to a model."""

    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]

    def schema(self) -> dict[str, Any]:
        """OpenAI function-tool schema built from the input model."""
        parameters = self.input_model.model_json_schema()
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    def parse_input(self, raw: Mapping[str, Any]) -> InputT:
        return self.input_model.model_validate(dict(raw))  # type: ignore[return-value]

    def prepare_invocation(self, params: InputT) -> PreparedInvocation | None:
        return None

    async def resolve_input(self, params: InputT, context: PromptContext | None, mode: ToolMode) -> InputT:
        return params

    @abstractmethod
    async def invoke(self, options: ToolInvocationOptions[InputT], token: CancellationToken) -> ToolResult:
        """Run the tool."""

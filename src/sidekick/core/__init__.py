"""Loop engine, model client and prompt rendering."""

from .client import ModelClient, OpenAIModelClient
from .loop import LoopConfig, SubagentToolCallingLoop, ToolCallingLoop
from .prompt import PromptBudget
from .types import FetchResponse, FetchResponseType, LoopResult, ToolCall, ToolCallRound

__all__ = [
    "FetchResponse",
    "FetchResponseType",
    "LoopConfig",
    "LoopResult",
    "ModelClient",
    "OpenAIModelClient",
    "PromptBudget",
    "SubagentToolCallingLoop",
    "ToolCall",
    "ToolCallRound",
    "ToolCallingLoop",
]

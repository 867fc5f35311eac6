"""Render templates that turn loop state into chat messages."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..conversation import Conversation
from ..errors import UnknownPromptTemplateError
from .types import ToolCallRound

EXECUTION_SUBAGENT_TEMPLATE = "execution_subagent"
TRUNCATION_MARKER = "\n\n[output truncated: middle content removed]\n\n"
OMITTED_RESULT = "[output omitted to fit context]"
MISSING_RESULT = "[no result recorded]"


@dataclass(frozen=True)
class PromptBudget:
    """Character limits applied while rendering."""

    max_chars: int = 120_000
    tool_result_max_chars: int = 16_000


@dataclass(frozen=True)
class PromptRenderContext:
    conversation: Conversation
    rounds: tuple[ToolCallRound, ...] = ()
    tool_call_results: Mapping[str, str] = field(default_factory=dict)


PromptTemplate = Callable[[PromptRenderContext, PromptBudget], list[dict[str, Any]]]


def truncate_middle(text: str, limit: int) -> str:
    """Keep the head and tail of `text` so the result fits in `limit` characters."""
    if len(text) <= limit:
        return text
    head_len = (limit - len(TRUNCATION_MARKER)) // 2
    tail_len = limit - len(TRUNCATION_MARKER) - head_len
    if head_len <= 0 or tail_len <= 0:
        return text[:limit]
    return f"{text[:head_len]}{TRUNCATION_MARKER}{text[-tail_len:]}"


def render_execution_subagent_prompt(ctx: PromptRenderContext, budget: PromptBudget) -> list[dict[str, Any]]:
    """Render the execution instruction followed by the tool-call history.

    The instruction is taken from the first conversation turn and is always
    kept whole. Each tool result is capped at `budget.tool_result_max_chars`;
    if the prompt is still over `budget.max_chars`, results of the oldest
    rounds are replaced with a placeholder, oldest first. The newest round is
    never dropped.
    """
    instruction = ctx.conversation.turns[0].request.message if ctx.conversation.turns else ""
    results = {
        call.id: truncate_middle(ctx.tool_call_results.get(call.id, MISSING_RESULT), budget.tool_result_max_chars)
        for tool_round in ctx.rounds
        for call in tool_round.tool_calls
    }

    total = len(instruction) + sum(len(tool_round.response) for tool_round in ctx.rounds) + sum(
        len(text) for text in results.values()
    )
    for tool_round in ctx.rounds[:-1]:
        if total <= budget.max_chars:
            break
        for call in tool_round.tool_calls:
            total -= len(results[call.id]) - len(OMITTED_RESULT)
            results[call.id] = OMITTED_RESULT

    messages: list[dict[str, Any]] = [{"role": "user", "content": instruction}]
    for tool_round in ctx.rounds:
        assistant: dict[str, Any] = {"role": "assistant", "content": tool_round.response or None}
        if tool_round.tool_calls:
            assistant["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in tool_round.tool_calls
            ]
        messages.append(assistant)
        for call in tool_round.tool_calls:
            messages.append({"role": "tool", "tool_call_id": call.id, "content": results[call.id]})
    return messages


PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    EXECUTION_SUBAGENT_TEMPLATE: render_execution_subagent_prompt,
}


def get_prompt_template(name: str) -> PromptTemplate:
    try:
        return PROMPT_TEMPLATES[name]
    except KeyError:
        raise UnknownPromptTemplateError(f"Unknown prompt template: {name}") from None

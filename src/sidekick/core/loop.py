"""Bounded tool-calling loop used by delegated agents."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from ..cancellation import CancellationToken
from ..conversation import ChatRequest, Conversation, PromptContext
from ..errors import CancellationRequestedError
from ..stream import ResponseStream
from ..tools.base import ToolInvocationOptions, ToolMode
from ..tools.registry import ToolRegistry
from .client import ModelClient
from .prompt import PromptBudget, PromptRenderContext, get_prompt_template
from .types import FetchResponse, LoopResult, ToolCall, ToolCallRound


@dataclass(frozen=True)
class LoopConfig:
    """Everything one loop run needs. Built once per delegation."""

    tool_call_limit: int
    conversation: Conversation
    request: ChatRequest
    location: str
    prompt_text: str
    allowed_tools: frozenset[str]
    render_template: str

    def __post_init__(self) -> None:
        if self.tool_call_limit < 1:
            raise ValueError("tool_call_limit must be positive")


class ToolCallingLoop(Protocol):
    async def run(self, stream: ResponseStream | None, token: CancellationToken) -> LoopResult: ...


class SubagentToolCallingLoop:
    """Runs up to `tool_call_limit` rounds of model fetch plus one tool call."""

    def __init__(
        self,
        config: LoopConfig,
        *,
        registry: ToolRegistry,
        client: ModelClient,
        budget: PromptBudget | None = None,
    ) -> None:
        self._config = config
        self._registry = registry.restrict_to(config.allowed_tools)
        self._client = client
        self._budget = budget or PromptBudget()
        self._render = get_prompt_template(config.render_template)

    async def run(self, stream: ResponseStream | None, token: CancellationToken) -> LoopResult:
        config = self._config
        context = PromptContext(request=config.request, stream=stream, conversation=config.conversation)
        tools = self._registry.model_tools()
        rounds: list[ToolCallRound] = []
        results: dict[str, str] = {}
        response = FetchResponse.success("")

        for round_index in range(1, config.tool_call_limit + 1):
            token.raise_if_cancelled()
            logger.info("loop.round.start round={} limit={}", round_index, config.tool_call_limit)
            messages = self._render(
                PromptRenderContext(conversation=config.conversation, rounds=tuple(rounds), tool_call_results=results),
                self._budget,
            )
            response = await self._client.fetch(messages, tools=tools, token=token)
            token.raise_if_cancelled()
            if not response.is_success:
                logger.warning("loop.round.error round={} type={} reason={}", round_index, response.type, response.reason)
                return _result(response, rounds, results)

            tool_calls = response.tool_calls
            if len(tool_calls) > 1:
                logger.warning("loop.round.extra_tool_calls round={} dropped={}", round_index, len(tool_calls) - 1)
                tool_calls = tool_calls[:1]
            rounds.append(ToolCallRound(id=uuid.uuid4().hex, response=response.text, tool_calls=tool_calls))
            if stream is not None and response.text:
                stream.markdown(response.text)
            if not tool_calls:
                break

            for call in tool_calls:
                results[call.id] = await self._invoke_tool(call, context, token)
        else:
            logger.warning("loop.tool_call_limit limit={}", config.tool_call_limit)

        logger.info("loop.finish rounds={}", len(rounds))
        return _result(response, rounds, results)

    async def _invoke_tool(self, call: ToolCall, context: PromptContext, token: CancellationToken) -> str:
        descriptor = self._registry.get(call.name)
        if descriptor is None:
            logger.warning("loop.tool.refused name={}", call.name)
            return f"error: tool '{call.name}' is not available to this agent"

        tool = descriptor.tool
        try:
            params = tool.parse_input(call.parsed_arguments())
        except ValueError as exc:
            return f"error: invalid arguments for '{call.name}': {exc!s}"

        params = await tool.resolve_input(params, context, ToolMode.FULL_CONTEXT)
        if context.stream is not None:
            context.stream.prepare_tool_invocation(call.name)
            prepared = tool.prepare_invocation(params)
            if prepared is not None:
                context.stream.progress(prepared.invocation_message)

        options = ToolInvocationOptions(input=params, context=context, tool_call_id=call.id)
        try:
            result = await self._registry.execute(call.name, options=options, token=token)
        except CancellationRequestedError:
            raise
        except Exception as exc:
            return f"error: {exc!s}"
        if result.is_error:
            logger.warning("loop.tool.failed name={} call_id={}", call.name, call.id)
        return result.text


def _result(response: FetchResponse, rounds: list[ToolCallRound], results: dict[str, str]) -> LoopResult:
    return LoopResult(
        response=response,
        rounds=tuple(rounds),
        round=rounds[-1] if rounds else None,
        tool_call_results=dict(results),
    )

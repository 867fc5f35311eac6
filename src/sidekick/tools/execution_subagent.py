"""Execution subagent: delegate one command to a loop restricted to the terminal tool.

The subagent gets a self-contained instruction (command, objective and a JSON
output contract), may call only ``run_in_terminal``, is capped at
``SUBAGENT_TOOL_CALL_LIMIT`` rounds, and reports back a single text result.
Only tool-preparation and edit parts of its activity reach the caller's stream.
"""

from __future__ import annotations

import contextlib
import uuid
from collections.abc import Callable, Generator
from contextvars import ContextVar
from typing import ClassVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..cancellation import CancellationToken
from ..conversation import Conversation, PromptContext
from ..core.loop import LoopConfig, ToolCallingLoop
from ..core.prompt import EXECUTION_SUBAGENT_TEMPLATE
from ..core.types import LoopResult
from ..errors import MissingContextError
from ..stream import ResponseStream, StreamPart, StreamPartKind
from .base import AgentTool, PreparedInvocation, ToolInvocationOptions, ToolResult
from .names import ToolName

SUBAGENT_TOOL_CALL_LIMIT = 25
SUBAGENT_ALLOWED_TOOLS: frozenset[str] = frozenset({ToolName.RUN_IN_TERMINAL.value})
SUBAGENT_STREAM_KINDS: frozenset[StreamPartKind] = frozenset({
    StreamPartKind.PREPARE_TOOL_INVOCATION,
    StreamPartKind.TEXT_EDIT,
    StreamPartKind.NOTEBOOK_EDIT,
})
FAILURE_MESSAGE_TEMPLATE = "The search subagent request failed with this message:\n{kind}: {reason}"

LoopFactory = Callable[[LoopConfig], ToolCallingLoop]

_delegation_context: ContextVar[str] = ContextVar("delegation")


def current_delegation() -> str:
    """Get the id of the delegation running in this context."""
    return _delegation_context.get("-")


@contextlib.contextmanager
def _delegation_scope() -> Generator[str, None, None]:
    delegation_id = uuid.uuid4().hex[:8]
    reset_token = _delegation_context.set(delegation_id)
    try:
        yield delegation_id
    finally:
        _delegation_context.reset(reset_token)


class ExecutionSubagentParams(BaseModel):
    """Delegate a command to a subagent and extract what the objective asks for."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(..., description="Natural language query describing what to execute")
    objective: str = Field(..., description="What is to be determined from the command output")
    description: str = Field(..., description="User-visible description shown while invoking")


def build_execution_instruction(params: ExecutionSubagentParams) -> str:
    return "\n".join([
        f"Command: {params.command}",
        f"Objective: {params.objective}",
        "",
        "You are a specialized execution subagent. Your task is to execute the above command and extract "
        "relevant excerpts of its output according to the purpose described in the objective.",
        "You have access to just one tool:",
        f"- {ToolName.RUN_IN_TERMINAL.value}: Executes a command in the terminal and returns the output.",
        "",
        "After completing the execution, return ONLY a valid JSON array of the most relevant execution output "
        "excerpts in this exact format:",
        "[",
        "  {",
        '    "output": "Excerpt of the command output here",',
        '    "return_code": 0',
        "  }",
        "]",
        "",
        "Include only the most relevant excerpts that would help satisfy the objective.",
        'The "return_code" field should capture the command\'s return code.',
        'The "output" can be an empty string if there is no relevant output.',
        "Do not include any explanation or additional text, only the JSON array.",
        "",
    ])


def build_loop_config(instruction: str, params: ExecutionSubagentParams, context: PromptContext) -> LoopConfig:
    if context.request is None:
        raise MissingContextError("execution_subagent needs a request in its prompt context")
    return LoopConfig(
        tool_call_limit=SUBAGENT_TOOL_CALL_LIMIT,
        conversation=Conversation.single_turn(instruction),
        request=context.request,
        location=context.request.location,
        prompt_text=params.command,
        allowed_tools=SUBAGENT_ALLOWED_TOOLS,
        render_template=EXECUTION_SUBAGENT_TEMPLATE,
    )


def _is_forwarded(part: StreamPart) -> bool:
    return part.kind in SUBAGENT_STREAM_KINDS


def filter_subagent_stream(stream: ResponseStream | None) -> ResponseStream | None:
    if stream is None:
        return None
    return ResponseStream.filter(stream, _is_forwarded)


def interpret_loop_result(result: LoopResult) -> str:
    if result.response.is_success:
        if result.rounds:
            return result.rounds[-1].response
        if result.round is not None:
            return result.round.response
        return ""
    return FAILURE_MESSAGE_TEMPLATE.format(kind=result.response.type.value, reason=result.response.reason)


class ExecutionSubagentTool(AgentTool[ExecutionSubagentParams]):
    name: ClassVar[str] = ToolName.EXECUTION_SUBAGENT
    description: ClassVar[str] = (
        "Run a command in an isolated subagent and return only the output excerpts relevant to an objective.\n"
        "The result is a JSON array of {output, return_code} objects."
    )
    input_model: ClassVar[type[BaseModel]] = ExecutionSubagentParams

    def __init__(self, loop_factory: LoopFactory) -> None:
        self._loop_factory = loop_factory

    def prepare_invocation(self, params: ExecutionSubagentParams) -> PreparedInvocation:
        return PreparedInvocation(invocation_message=params.description)

    async def invoke(
        self,
        options: ToolInvocationOptions[ExecutionSubagentParams],
        token: CancellationToken,
    ) -> ToolResult:
        context = options.context
        if context is None or context.request is None:
            raise MissingContextError("execution_subagent was invoked without a request context")

        with _delegation_scope() as delegation_id:
            instruction = build_execution_instruction(options.input)
            config = build_loop_config(instruction, options.input, context)
            stream = filter_subagent_stream(context.stream)

            logger.info(
                "execution_subagent.start id={} command={!r} limit={}",
                delegation_id,
                options.input.command,
                config.tool_call_limit,
            )
            loop = self._loop_factory(config)
            result = await loop.run(stream, token)
            logger.info(
                "execution_subagent.finish id={} type={} rounds={}",
                delegation_id,
                result.response.type,
                len(result.rounds),
            )
            return ToolResult.from_text(interpret_loop_result(result))

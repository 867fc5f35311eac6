import asyncio
from dataclasses import dataclass, field

import pytest

from sidekick.cancellation import CancellationToken
from sidekick.conversation import ChatRequest, PromptContext
from sidekick.core.loop import LoopConfig
from sidekick.core.prompt import EXECUTION_SUBAGENT_TEMPLATE
from sidekick.core.types import FetchResponse, FetchResponseType, LoopResult, ToolCall, ToolCallRound
from sidekick.errors import CancellationRequestedError, MissingContextError
from sidekick.stream import ResponseStream, StreamPart, StreamPartKind
from sidekick.tools.base import ToolInvocationOptions, ToolMode
from sidekick.tools.execution_subagent import (
    SUBAGENT_ALLOWED_TOOLS,
    SUBAGENT_TOOL_CALL_LIMIT,
    ExecutionSubagentParams,
    ExecutionSubagentTool,
    build_execution_instruction,
    build_loop_config,
    current_delegation,
    filter_subagent_stream,
    interpret_loop_result,
)

LS_PARAMS = ExecutionSubagentParams(
    command="ls -la",
    objective="list files in current directory",
    description="Listing files",
)
LS_ANSWER = '[{"output":"file1\\nfile2","return_code":0}]'


@dataclass
class FakeLoop:
    result: LoopResult | None = None
    parts: list[StreamPart] = field(default_factory=list)
    error: Exception | None = None
    seen_stream: ResponseStream | None = None
    seen_delegation: str | None = None

    async def run(self, stream: ResponseStream | None, token: CancellationToken) -> LoopResult:
        self.seen_stream = stream
        self.seen_delegation = current_delegation()
        if stream is not None:
            for part in self.parts:
                stream.push(part)
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


@dataclass
class RecordingFactory:
    loop: FakeLoop
    configs: list[LoopConfig] = field(default_factory=list)

    def __call__(self, config: LoopConfig) -> FakeLoop:
        self.configs.append(config)
        return self.loop


def _context(stream: ResponseStream | None = None) -> PromptContext:
    return PromptContext(request=ChatRequest(prompt="outer prompt", location="terminal"), stream=stream)


def _success(*responses: str) -> LoopResult:
    rounds = tuple(ToolCallRound(id=f"r{idx}", response=text) for idx, text in enumerate(responses))
    return LoopResult(response=FetchResponse.success(responses[-1] if responses else ""), rounds=rounds)


def test_instruction_embeds_command_objective_and_output_contract() -> None:
    instruction = build_execution_instruction(LS_PARAMS)

    assert instruction.startswith("Command: ls -la\nObjective: list files in current directory\n")
    assert "You have access to just one tool:" in instruction
    assert "- run_in_terminal:" in instruction
    assert '"output"' in instruction
    assert '"return_code": 0' in instruction
    assert "only the JSON array" in instruction
    assert "empty string" in instruction


def test_instruction_is_deterministic() -> None:
    same = ExecutionSubagentParams(command="ls -la", objective="list files in current directory", description="x")

    assert build_execution_instruction(LS_PARAMS) == build_execution_instruction(LS_PARAMS)
    assert build_execution_instruction(LS_PARAMS) == build_execution_instruction(same)


def test_instruction_keeps_values_verbatim() -> None:
    params = ExecutionSubagentParams(command="grep -r '{x}' .", objective="find {braces}\nand lines", description="d")

    instruction = build_execution_instruction(params)

    assert "Command: grep -r '{x}' ." in instruction
    assert "Objective: find {braces}\nand lines" in instruction


@pytest.mark.parametrize(
    "params",
    [
        LS_PARAMS,
        ExecutionSubagentParams(command="", objective="", description=""),
        ExecutionSubagentParams(command="make test " * 200, objective="count failures", description="Testing"),
    ],
)
def test_loop_config_has_fixed_budget_and_single_tool(params: ExecutionSubagentParams) -> None:
    config = build_loop_config(build_execution_instruction(params), params, _context())

    assert config.tool_call_limit == SUBAGENT_TOOL_CALL_LIMIT == 25
    assert config.allowed_tools == frozenset({"run_in_terminal"})
    assert len(config.allowed_tools) == 1
    assert config.render_template == EXECUTION_SUBAGENT_TEMPLATE
    assert config.prompt_text == params.command
    assert config.location == "terminal"
    assert config.request.prompt == "outer prompt"


def test_loop_config_wraps_instruction_as_only_turn() -> None:
    instruction = build_execution_instruction(LS_PARAMS)

    first = build_loop_config(instruction, LS_PARAMS, _context())
    second = build_loop_config(instruction, LS_PARAMS, _context())

    assert len(first.conversation.turns) == 1
    assert first.conversation.turns[0].request.message == instruction
    assert first.conversation.turns[0].request.type == "user"
    assert first.conversation is not second.conversation
    assert first.conversation.session_id != second.conversation.session_id


def test_loop_config_requires_request() -> None:
    with pytest.raises(MissingContextError):
        build_loop_config("instruction", LS_PARAMS, PromptContext(request=None))


def test_allowlist_is_single_terminal_tool() -> None:
    assert SUBAGENT_ALLOWED_TOOLS == frozenset({"run_in_terminal"})


def test_stream_filter_keeps_ordered_subsequence() -> None:
    received: list[StreamPart] = []
    outer = ResponseStream(received.append)
    parts = [
        StreamPart(StreamPartKind.MARKDOWN, "thinking"),
        StreamPart(StreamPartKind.PREPARE_TOOL_INVOCATION, "run_in_terminal"),
        StreamPart(StreamPartKind.PROGRESS, "Running `ls`"),
        StreamPart(StreamPartKind.TEXT_EDIT, "a.py"),
        StreamPart(StreamPartKind.WARNING, "careful"),
        StreamPart(StreamPartKind.NOTEBOOK_EDIT, "b.ipynb"),
        StreamPart(StreamPartKind.PREPARE_TOOL_INVOCATION, "run_in_terminal"),
    ]

    filtered = filter_subagent_stream(outer)
    assert filtered is not None
    for part in parts:
        filtered.push(part)

    assert received == [parts[1], parts[3], parts[5], parts[6]]


def test_stream_filter_without_outer_stream_is_none() -> None:
    assert filter_subagent_stream(None) is None


def test_interpret_success_uses_last_round() -> None:
    assert interpret_loop_result(_success("first", "second", LS_ANSWER)) == LS_ANSWER


def test_interpret_success_falls_back_to_round() -> None:
    result = LoopResult(
        response=FetchResponse.success(""),
        rounds=(),
        round=ToolCallRound(id="r", response="fallback"),
    )

    assert interpret_loop_result(result) == "fallback"


def test_interpret_success_without_rounds_is_empty() -> None:
    assert interpret_loop_result(LoopResult(response=FetchResponse.success(""))) == ""


def test_interpret_failure_formats_kind_and_reason() -> None:
    result = LoopResult(response=FetchResponse(FetchResponseType.FAILURE, reason="rate limited"))

    assert interpret_loop_result(result) == (
        "The search subagent request failed with this message:\nFailure: rate limited"
    )


@pytest.mark.parametrize(
    ("kind", "reason"),
    [
        (FetchResponseType.RATE_LIMITED, "slow down"),
        (FetchResponseType.NETWORK_ERROR, "no route"),
        (FetchResponseType.LENGTH, "too long"),
    ],
)
def test_interpret_failure_ignores_partial_rounds(kind: FetchResponseType, reason: str) -> None:
    result = LoopResult(
        response=FetchResponse.failure(reason, kind),
        rounds=(ToolCallRound(id="r", response="partial", tool_calls=(ToolCall(id="c", name="run_in_terminal"),)),),
    )

    assert interpret_loop_result(result) == (
        f"The search subagent request failed with this message:\n{kind.value}: {reason}"
    )


def test_prepare_invocation_shows_description() -> None:
    tool = ExecutionSubagentTool(RecordingFactory(FakeLoop()))

    prepared = tool.prepare_invocation(LS_PARAMS)

    assert prepared.invocation_message == "Listing files"


@pytest.mark.asyncio
async def test_resolve_input_returns_params_without_storing_context() -> None:
    tool = ExecutionSubagentTool(RecordingFactory(FakeLoop()))
    before = dict(vars(tool))

    resolved = await tool.resolve_input(LS_PARAMS, _context(), ToolMode.FULL_CONTEXT)

    assert resolved == LS_PARAMS
    assert vars(tool) == before


@pytest.mark.asyncio
async def test_invoke_returns_last_round_text() -> None:
    factory = RecordingFactory(FakeLoop(result=_success(LS_ANSWER)))
    tool = ExecutionSubagentTool(factory)

    result = await tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=_context()), CancellationToken.none())

    assert result.text == LS_ANSWER
    assert result.parts == (LS_ANSWER,)
    assert len(factory.configs) == 1
    assert factory.configs[0].conversation.turns[0].request.message == build_execution_instruction(LS_PARAMS)


@pytest.mark.asyncio
async def test_invoke_converts_fetch_failure_to_text() -> None:
    loop = FakeLoop(result=LoopResult(response=FetchResponse(FetchResponseType.FAILURE, reason="rate limited")))
    tool = ExecutionSubagentTool(RecordingFactory(loop))

    result = await tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=_context()), CancellationToken.none())

    assert result.text == "The search subagent request failed with this message:\nFailure: rate limited"


@pytest.mark.asyncio
@pytest.mark.parametrize("context", [None, PromptContext(request=None)])
async def test_invoke_without_context_fails_fast(context: PromptContext | None) -> None:
    factory = RecordingFactory(FakeLoop(result=_success("x")))
    tool = ExecutionSubagentTool(factory)

    with pytest.raises(MissingContextError):
        await tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=context), CancellationToken.none())
    assert factory.configs == []


@pytest.mark.asyncio
async def test_invoke_propagates_cancellation() -> None:
    tool = ExecutionSubagentTool(RecordingFactory(FakeLoop(error=CancellationRequestedError("stop"))))

    with pytest.raises(CancellationRequestedError):
        await tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=_context()), CancellationToken.none())


@pytest.mark.asyncio
async def test_invoke_forwards_only_whitelisted_parts() -> None:
    received: list[StreamPart] = []
    loop = FakeLoop(
        result=_success("done"),
        parts=[
            StreamPart(StreamPartKind.MARKDOWN, "inner text"),
            StreamPart(StreamPartKind.PREPARE_TOOL_INVOCATION, "run_in_terminal"),
            StreamPart(StreamPartKind.PROGRESS, "Running `ls`"),
            StreamPart(StreamPartKind.TEXT_EDIT, "a.py"),
        ],
    )
    tool = ExecutionSubagentTool(RecordingFactory(loop))

    await tool.invoke(
        ToolInvocationOptions(input=LS_PARAMS, context=_context(ResponseStream(received.append))),
        CancellationToken.none(),
    )

    assert [part.kind for part in received] == [StreamPartKind.PREPARE_TOOL_INVOCATION, StreamPartKind.TEXT_EDIT]


@pytest.mark.asyncio
async def test_invoke_without_outer_stream_runs_silently() -> None:
    loop = FakeLoop(result=_success("done"), parts=[StreamPart(StreamPartKind.TEXT_EDIT, "a.py")])
    tool = ExecutionSubagentTool(RecordingFactory(loop))

    result = await tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=_context()), CancellationToken.none())

    assert result.text == "done"
    assert loop.seen_stream is None


@pytest.mark.asyncio
async def test_invoke_binds_delegation_id_for_logging() -> None:
    loop = FakeLoop(result=_success("done"))
    tool = ExecutionSubagentTool(RecordingFactory(loop))

    await tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=_context()), CancellationToken.none())

    assert loop.seen_delegation not in (None, "-")
    assert current_delegation() == "-"


@pytest.mark.asyncio
async def test_concurrent_invocations_use_their_own_context() -> None:
    factory = RecordingFactory(FakeLoop(result=_success("done")))
    tool = ExecutionSubagentTool(factory)
    first = PromptContext(request=ChatRequest(prompt="a", location="panel"))
    second = PromptContext(request=ChatRequest(prompt="b", location="editor"))

    await asyncio.gather(
        tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=first), CancellationToken.none()),
        tool.invoke(ToolInvocationOptions(input=LS_PARAMS, context=second), CancellationToken.none()),
    )

    assert sorted(config.location for config in factory.configs) == ["editor", "panel"]
    assert factory.configs[0].conversation is not factory.configs[1].conversation

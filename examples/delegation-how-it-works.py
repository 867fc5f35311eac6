"""Simple sidekick delegation examples - what the outer agent sees.

This module demonstrates the essential delegation behaviour without a model provider:
1. A delegation that runs one terminal command and answers
2. Which stream parts reach the outer agent
3. How a failed model call is reported
"""

from __future__ import annotations

import asyncio
import json
import tempfile
from pathlib import Path

from sidekick import DelegationRuntime, ExecutionSubagentParams
from sidekick.cancellation import CancellationToken
from sidekick.config import Settings
from sidekick.core.types import FetchResponse, FetchResponseType, ToolCall
from sidekick.stream import ResponseStream, StreamPart

# ============================================================================
# SCRIPTED MODEL
# ============================================================================


class ScriptedClient:
    """Replays canned model responses in order."""

    def __init__(self, *responses: FetchResponse) -> None:
        self.responses = list(responses)

    async def fetch(self, messages, *, tools, token: CancellationToken) -> FetchResponse:
        print(f"  model sees {len(messages)} message(s), tools={[tool['function']['name'] for tool in tools]}")
        return self.responses.pop(0)


def ls_then_answer() -> ScriptedClient:
    return ScriptedClient(
        FetchResponse.success(
            "I'll list the workspace.",
            (ToolCall(id="call-1", name="run_in_terminal", arguments=json.dumps({"command": "ls"})),),
        ),
        FetchResponse.success('[{"output": "notes.txt", "return_code": 0}]'),
    )


PARAMS = ExecutionSubagentParams(
    command="ls",
    objective="Which files are in the workspace?",
    description="Listing files",
)

# ============================================================================
# DELEGATION PATTERNS
# ============================================================================


async def demonstrate_basic_delegation(workspace: Path) -> None:
    """Run one delegation and print the subagent's final answer."""
    print("\nBasic Delegation")
    print("=" * 30)

    runtime = DelegationRuntime(Settings(workspace_path=workspace), client=ls_then_answer())
    answer = await runtime.delegate(PARAMS)
    print(f"Answer: {answer}")


async def demonstrate_stream_filter(workspace: Path) -> None:
    """Show that only progress labels and tool-preparation parts reach the outer stream."""
    print("\nStream Filter")
    print("=" * 30)

    seen: list[StreamPart] = []
    runtime = DelegationRuntime(Settings(workspace_path=workspace), client=ls_then_answer())
    await runtime.delegate(PARAMS, stream=ResponseStream(seen.append))

    for part in seen:
        print(f"  outer stream <- {part.kind}: {part.content}")
    print("The subagent's own markdown and progress never left the delegation.")


async def demonstrate_failure(workspace: Path) -> None:
    """A failed model call becomes a plain text result."""
    print("\nFailure Reporting")
    print("=" * 30)

    client = ScriptedClient(FetchResponse.failure("quota exhausted", FetchResponseType.RATE_LIMITED))
    runtime = DelegationRuntime(Settings(workspace_path=workspace), client=client)
    print(await runtime.delegate(PARAMS))


async def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        workspace = Path(tmp)
        (workspace / "notes.txt").write_text("hello\n", encoding="utf-8")

        await demonstrate_basic_delegation(workspace)
        await demonstrate_stream_filter(workspace)
        await demonstrate_failure(workspace)


if __name__ == "__main__":
    asyncio.run(main())

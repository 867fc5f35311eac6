"""Shell command execution tool."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import signal
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field

from ..cancellation import CancellationToken
from ..errors import CancellationRequestedError
from .base import AgentTool, PreparedInvocation, ToolInvocationOptions, ToolResult
from .names import ToolName


class RunInTerminalInput(BaseModel):
    """Run a shell command."""

    command: str = Field(..., description="Shell command to run")
    explanation: str = Field(default="", description="One sentence on why the command is run")


class RunInTerminalTool(AgentTool[RunInTerminalInput]):
    """Run a command with bash in the workspace and return its combined output and exit code."""

    name: ClassVar[str] = ToolName.RUN_IN_TERMINAL
    description: ClassVar[str] = (
        "Executes a command in the terminal and returns the output.\n"
        "The result starts with 'exit=<code>' followed by stdout and stderr."
    )
    input_model: ClassVar[type[BaseModel]] = RunInTerminalInput

    def __init__(self, workspace_path: Path, *, timeout_seconds: int = 60) -> None:
        self._workspace_path = workspace_path
        self._timeout_seconds = timeout_seconds

    def prepare_invocation(self, params: RunInTerminalInput) -> PreparedInvocation:
        return PreparedInvocation(invocation_message=f"Running `{params.command}`")

    async def invoke(self, options: ToolInvocationOptions[RunInTerminalInput], token: CancellationToken) -> ToolResult:
        token.raise_if_cancelled()
        bash_executable = shutil.which("bash") or "bash"
        try:
            process = await asyncio.create_subprocess_exec(
                bash_executable,
                "-lc",
                options.input.command,
                cwd=str(self._workspace_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            return ToolResult.from_text(f"error: {exc!s}", is_error=True)

        communicate = asyncio.ensure_future(process.communicate())
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {communicate, cancelled},
                timeout=self._timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancelled.cancel()

        if communicate not in done:
            await _kill(process, communicate)
            if token.is_cancellation_requested:
                raise CancellationRequestedError("Command was cancelled.")
            return ToolResult.from_text(f"error: timeout after {self._timeout_seconds}s", is_error=True)

        stdout, _ = communicate.result()
        output = (stdout or b"").decode("utf-8", errors="replace").strip()
        returncode = process.returncode
        return ToolResult.from_text(f"exit={returncode}\n{output or '(empty)'}", is_error=returncode != 0)


async def _kill(process: asyncio.subprocess.Process, communicate: asyncio.Future[tuple[bytes, bytes]]) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            os.killpg(process.pid, signal.SIGKILL)
    await asyncio.wait({communicate})

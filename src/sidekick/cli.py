"""sidekick command line."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path

import typer
from rich.console import Console

from .cancellation import CancellationTokenSource
from .config import get_settings
from .errors import CancellationRequestedError, ConfigurationError
from .logging_utils import configure_logging
from .runtime import DelegationRuntime
from .stream import ResponseStream, StreamPart, StreamPartKind
from .tools.execution_subagent import ExecutionSubagentParams

app = typer.Typer(name="sidekick", help="Hand one command to a bounded execution subagent.", add_completion=False)
console = Console(stderr=True)


def build_runtime(workspace: Path | None, *, model: str | None = None, max_tokens: int | None = None) -> DelegationRuntime:
    settings = get_settings(workspace_path=workspace, model=model, max_tokens=max_tokens)
    return DelegationRuntime(settings)


def _render_part(part: StreamPart) -> None:
    if part.kind is StreamPartKind.PREPARE_TOOL_INVOCATION:
        console.print(f"[dim]> {part.content}[/dim]")
    elif part.kind is StreamPartKind.PROGRESS:
        console.print(f"[cyan]{part.content}[/cyan]")
    elif part.kind is StreamPartKind.WARNING:
        console.print(f"[yellow]{part.content}[/yellow]")
    else:
        console.print(part.content, markup=False)


async def _run_delegation(runtime: DelegationRuntime, params: ExecutionSubagentParams) -> str:
    source = CancellationTokenSource()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
        loop.add_signal_handler(signal.SIGINT, source.cancel)
    try:
        return await runtime.delegate(params, stream=ResponseStream(_render_part), token=source.token)
    finally:
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def run(
    command: str = typer.Argument(..., help="Command to execute"),
    objective: str = typer.Option(..., "--objective", "-o", help="What to determine from the output"),
    description: str = typer.Option(..., "--description", "-d", help="Label shown while running"),
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Directory the command runs in"),
    model: str | None = typer.Option(None, "--model", help="Model override"),
    max_tokens: int | None = typer.Option(None, "--max-tokens", help="Max tokens override"),
) -> None:
    """Delegate COMMAND to the execution subagent and print its answer."""
    runtime = build_runtime(workspace, model=model, max_tokens=max_tokens)
    configure_logging(profile="chat", level=runtime.settings.log_level)
    try:
        _ = runtime.client
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    params = ExecutionSubagentParams(command=command, objective=objective, description=description)
    try:
        result = asyncio.run(_run_delegation(runtime, params))
    except CancellationRequestedError as exc:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(130) from exc
    typer.echo(result)


@app.command()
def tools(
    name: str | None = typer.Argument(None, help="Show the full description and schema of one tool"),
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Workspace directory"),
) -> None:
    """List the registered tools, or describe NAME."""
    runtime = build_runtime(workspace)
    if name is not None:
        try:
            typer.echo(runtime.registry.detail(name))
        except KeyError as exc:
            console.print(f"[red]Unknown tool: {name}[/red]")
            raise typer.Exit(1) from exc
        return
    for row in runtime.registry.compact_rows():
        typer.echo(row)

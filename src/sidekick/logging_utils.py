"""Runtime logging helpers."""

from __future__ import annotations

import sys
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "chat": "[{extra[delegation]}] {message}",
    "default": (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[delegation]} | {message}"
    ),
}
_CONFIGURED: tuple[LogProfile, str] | None = None


def _build_chat_handler() -> Handler:
    # stdout carries the delegation result only
    return RichHandler(
        console=Console(stderr=True),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default", level: str = "INFO") -> None:
    """Configure process-level logging once per profile and level.

    Both profiles write to stderr. ``chat`` renders through rich next to the
    CLI's own progress output; ``default`` is the plain line format.
    """
    from sidekick.tools.execution_subagent import current_delegation

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["delegation"] = current_delegation()

    global _CONFIGURED
    resolved_level = level.upper()
    if _CONFIGURED == (profile, resolved_level):
        return

    logger.remove()
    sink: Handler | object = _build_chat_handler() if profile == "chat" else sys.stderr
    logger.add(
        sink,  # type: ignore[arg-type]
        level=resolved_level,
        format=_PROFILE_FORMATS[profile],
        backtrace=False,
        diagnose=False,
    )
    logger.configure(patcher=inject_context)
    _CONFIGURED = (profile, resolved_level)

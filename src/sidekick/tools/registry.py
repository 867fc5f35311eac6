"""Unified tool registry."""

from __future__ import annotations

import builtins
import json
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from ..cancellation import CancellationToken
from ..errors import CancellationRequestedError
from .base import AgentTool, ToolInvocationOptions, ToolResult


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed.

    Unlike textwrap.shorten, this function can cut in the middle of a word,
    ensuring long strings without spaces are still truncated properly.
    """
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    short_description: str
    detail: str
    tool: AgentTool[Any]


class ToolRegistry:
    """Registry of tools, optionally limited to an allowlist of names."""

    def __init__(self, allowed: Iterable[str] | None = None) -> None:
        self._allowed = frozenset(allowed) if allowed is not None else None
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, tool: AgentTool[Any], *, detail: str = "") -> None:
        if self._allowed is not None and tool.name not in self._allowed:
            return
        self._tools[tool.name] = ToolDescriptor(
            name=tool.name,
            short_description=tool.description.strip().splitlines()[0] if tool.description.strip() else "",
            detail=detail or tool.description,
            tool=tool,
        )

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def descriptors(self) -> builtins.list[ToolDescriptor]:
        return sorted(self._tools.values(), key=lambda item: item.name)

    def restrict_to(self, names: Iterable[str]) -> ToolRegistry:
        """Return a new registry holding only the tools named in `names`."""
        restricted = ToolRegistry(names)
        for descriptor in self.descriptors():
            restricted.register(descriptor.tool, detail=descriptor.detail)
        return restricted

    def compact_rows(self) -> builtins.list[str]:
        return [f"{descriptor.name}: {descriptor.short_description}" for descriptor in self.descriptors()]

    def detail(self, name: str) -> str:
        descriptor = self.get(name)
        if descriptor is None:
            raise KeyError(name)

        return (
            f"name: {descriptor.name}\n"
            f"description: {descriptor.short_description}\n"
            f"detail: {descriptor.detail}\n"
            f"schema: {json.dumps(descriptor.tool.schema(), ensure_ascii=False)}"
        )

    def model_tools(self) -> builtins.list[dict[str, Any]]:
        return [descriptor.tool.schema() for descriptor in self.descriptors()]

    def _log_tool_call(self, name: str, kwargs: dict[str, Any], call_id: str | None) -> None:
        params: list[str] = []
        for key, value in kwargs.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            value = _shorten_text(rendered, width=30, placeholder="...")
            if value.startswith('"') and not value.endswith('"'):
                value = value + '"'
            params.append(f"{key}={value}")
        params_str = ", ".join(params)
        logger.info(
            "tool.call.start name={} call_id={} {{ {} }}",
            name,
            call_id or "-",
            params_str,
        )

    async def execute(
        self,
        name: str,
        *,
        options: ToolInvocationOptions[Any],
        token: CancellationToken,
    ) -> ToolResult:
        descriptor = self.get(name)
        if descriptor is None:
            raise KeyError(name)

        self._log_tool_call(name, options.input.model_dump(), options.tool_call_id)
        start = time.monotonic()
        try:
            return await descriptor.tool.invoke(options, token)
        except CancellationRequestedError:
            logger.info("tool.call.cancelled name={}", name)
            raise
        except Exception:
            logger.exception("tool.call.error name={}", name)
            raise
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)

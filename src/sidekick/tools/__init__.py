"""Tools package for sidekick."""

from .base import AgentTool, PreparedInvocation, ToolInvocationOptions, ToolMode, ToolResult
from .names import ToolName
from .registry import ToolDescriptor, ToolRegistry
from .terminal import RunInTerminalTool

__all__ = [
    "AgentTool",
    "PreparedInvocation",
    "RunInTerminalTool",
    "ToolDescriptor",
    "ToolInvocationOptions",
    "ToolMode",
    "ToolName",
    "ToolRegistry",
    "ToolResult",
]

"""sidekick - hand one command to a bounded execution subagent."""

from .runtime import DelegationRuntime
from .tools.execution_subagent import ExecutionSubagentParams, ExecutionSubagentTool
from .tools.registry import ToolRegistry

__version__ = "0.1.0"

__all__ = ["DelegationRuntime", "ExecutionSubagentParams", "ExecutionSubagentTool", "ToolRegistry"]

"""Stable tool identifiers."""

from enum import StrEnum


class ToolName(StrEnum):
    RUN_IN_TERMINAL = "run_in_terminal"
    EXECUTION_SUBAGENT = "execution_subagent"

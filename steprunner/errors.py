"""Exception hierarchy for the step runner.

Run-level errors (connection, planning) abort a test run before any action
executes. Invocation errors are per-step and end up as failed action records.
"""

from __future__ import annotations


class StepRunnerError(Exception):
    """Base exception for all step runner errors."""


class ProviderConnectionError(StepRunnerError):
    """The tool provider could not be started, connected or queried for tools."""


class PlanningError(StepRunnerError):
    """The planning collaborator failed to produce a plan."""


class PlanParseError(PlanningError):
    """Raw plan text could not be turned into a valid execution plan."""

    def __init__(self, message: str, errors: list[str] | None = None, raw_text: str = ""):
        super().__init__(message)
        self.errors = errors or []
        self.raw_text = raw_text

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        return f"{base}: {'; '.join(self.errors[:5])}"


class ToolInvocationError(StepRunnerError):
    """The provider raised while invoking a tool (transport loss, deadline, ...)."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name

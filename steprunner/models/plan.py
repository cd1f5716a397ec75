"""Execution plan data structures produced by the plan validator."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExecutionStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_index: int  # advisory, 1-based; only used to look up the original step text
    tool_name: str
    params: dict[str, Any] = Field(default_factory=dict)
    is_assertion: bool = False
    rationale: str = ""


class ExecutionPlan(BaseModel):
    """Ordered tool calls. Tuple order is the execution order."""
    model_config = ConfigDict(frozen=True)

    steps: tuple[ExecutionStep, ...] = ()
    expected_step_count: int = 0

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def matches_expected(self) -> bool:
        return len(self.steps) == self.expected_step_count

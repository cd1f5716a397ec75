"""Action records and report data structures produced by the engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActionStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class FailureKind(str, Enum):
    TOOL_PROTOCOL_ERROR = "tool_protocol_error"  # provider returned an error envelope
    LOGICAL_ASSERTION_FAILURE = "logical_assertion_failure"  # "### Result false" in output
    INVOCATION_ERROR = "invocation_error"  # provider raised while invoking


class TestOutcome(str, Enum):
    __test__ = False  # not a pytest test class

    RUNNING = "running"
    PASS = "pass"
    FAIL = "fail"


class RunState(str, Enum):
    CREATED = "created"
    PLANNING = "planning"
    EXECUTING = "executing"
    FINALIZING = "finalizing"
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"


class ActionRecord(BaseModel):
    """Outcome of one executed step. Never modified after creation."""
    model_config = ConfigDict(frozen=True)

    tool_name: str
    params: dict[str, Any] = Field(default_factory=dict)
    status: ActionStatus
    assertion: bool = False
    error: Optional[str] = None
    duration_ms: int = Field(default=0, ge=0)
    screenshot: Optional[str] = None
    timestamp: datetime
    step_index: int = 0
    description: str = ""
    failure_kind: Optional[FailureKind] = None

    @property
    def passed(self) -> bool:
        return self.status == ActionStatus.PASSED


class TestReport(BaseModel):
    """Working report for a run in progress. Finalized exactly once."""
    __test__ = False

    test_name: str
    source_text: str = ""
    start_time: datetime
    end_time: Optional[datetime] = None
    actions: list[ActionRecord] = Field(default_factory=list)
    passed_actions: int = 0
    failed_actions: int = 0
    total_actions: int = 0
    test_result: TestOutcome = TestOutcome.RUNNING
    expected_steps: int = 0
    planned_steps: int = 0

    @property
    def finalized(self) -> bool:
        return self.test_result != TestOutcome.RUNNING


class ReportData(BaseModel):
    """Finalized, read-only summary of one test run handed to the renderer."""
    model_config = ConfigDict(frozen=True)

    test_name: str
    source_text: str = ""
    start_time: datetime
    end_time: datetime
    duration_ms: int = Field(default=0, ge=0)
    actions: tuple[ActionRecord, ...] = ()
    passed_actions: int = 0
    failed_actions: int = 0
    total_actions: int = 0
    test_result: TestOutcome
    expected_steps: int = 0
    planned_steps: int = 0
    completed: bool = True

    @property
    def success_rate(self) -> float:
        if self.total_actions == 0:
            return 0.0
        return self.passed_actions / self.total_actions

    @property
    def passed(self) -> bool:
        return self.test_result == TestOutcome.PASS


class TestRunSummary(BaseModel):
    __test__ = False

    test_name: str
    path: Optional[str] = None
    status: str  # PASSED, FAILED, ABORTED
    passed_actions: int = 0
    failed_actions: int = 0
    total_actions: int = 0
    duration_ms: int = 0
    error: Optional[str] = None
    reports: dict[str, str] = Field(default_factory=dict)


class SuiteResult(BaseModel):
    test_runs: list[TestRunSummary] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.test_runs)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.test_runs if r.status == "PASSED")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.test_runs if r.status == "FAILED")

    @property
    def aborted(self) -> int:
        return sum(1 for r in self.test_runs if r.status == "ABORTED")

    @property
    def all_passed(self) -> bool:
        return self.total > 0 and self.passed == self.total

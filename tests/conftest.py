"""Pytest configuration and shared fixtures."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import Mock

import pytest

from steprunner.errors import ProviderConnectionError
from steprunner.models.config import ProviderConfig, ReportingConfig, RunnerConfig
from steprunner.models.provider import ToolDescriptor, ToolResponse
from steprunner.models.report import (
    ActionRecord,
    ActionStatus,
    FailureKind,
    ReportData,
    TestOutcome,
)
from steprunner.models.test_definition import TestDefinition
from steprunner.providers.base import ToolProvider


# ============================================================================
# Stub collaborators
# ============================================================================


class StubProvider(ToolProvider):
    """Offline provider with scripted responses.

    ``responses`` maps a tool name to a ToolResponse, an exception instance
    (raised from invoke) or a callable taking the params.
    """

    name = "stub"

    def __init__(
        self,
        tools: list[ToolDescriptor],
        responses: dict[str, Any] | None = None,
        connect_error: Exception | None = None,
        discover_error: Exception | None = None,
    ):
        self.tools = tools
        self.responses = responses or {}
        self.connect_error = connect_error
        self.discover_error = discover_error
        self.calls: list[tuple[str, dict]] = []
        self.connected = False
        self.connect_count = 0
        self.close_count = 0

    async def connect(self) -> None:
        self.connect_count += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def close(self) -> None:
        self.close_count += 1
        self.connected = False

    async def discover_tools(self) -> list[ToolDescriptor]:
        if self.discover_error is not None:
            raise self.discover_error
        return list(self.tools)

    async def invoke(self, name: str, params: dict[str, Any]) -> ToolResponse:
        self.calls.append((name, params))
        response = self.responses.get(name, ToolResponse.from_text("### Result\ntrue"))
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(params)
        return response


class StubPlanner:
    """Returns canned plan text, or raises the configured error."""

    def __init__(self, text: str = "[]", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def generate_plan_text(self, tools, definition) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


def plan_json(*steps: tuple[str, dict, bool]) -> str:
    return json.dumps([
        {"stepIndex": i, "tool": tool, "params": params, "isAssertion": assertion,
         "description": f"step {i}"}
        for i, (tool, params, assertion) in enumerate(steps, 1)
    ])


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def runner_config(tmp_path: Path) -> RunnerConfig:
    """Create a config whose output directories live under tmp_path."""
    return RunnerConfig(
        provider=ProviderConfig(workspace_dir=str(tmp_path / "workspace")),
        reporting=ReportingConfig(
            screenshots_dir=str(tmp_path / "screenshots"),
            output_dir=str(tmp_path / "reports"),
        ),
        debug_dir=str(tmp_path / "debug"),
    )


# ============================================================================
# Tool Fixtures
# ============================================================================


@pytest.fixture
def tool_catalog() -> list[ToolDescriptor]:
    """A small browser tool catalog."""
    return [
        ToolDescriptor(
            name="browser_navigate",
            description="Navigate to a URL",
            input_schema={"type": "object", "properties": {"url": {"type": "string"}},
                          "required": ["url"]},
        ),
        ToolDescriptor(
            name="browser_click",
            description="Click an element",
            input_schema={"type": "object", "properties": {"selector": {"type": "string"}},
                          "required": ["selector"]},
        ),
        ToolDescriptor(
            name="browser_evaluate",
            description="Evaluate JavaScript",
            input_schema={"type": "object", "properties": {"function": {"type": "string"}},
                          "required": ["function"]},
        ),
        ToolDescriptor(
            name="browser_take_screenshot",
            description="Take a screenshot",
            input_schema={"type": "object", "properties": {"filename": {"type": "string"}}},
        ),
    ]


@pytest.fixture
def catalog_map(tool_catalog: list[ToolDescriptor]) -> dict[str, ToolDescriptor]:
    return {t.name: t for t in tool_catalog}


@pytest.fixture
def make_provider(tool_catalog: list[ToolDescriptor]) -> Callable[..., StubProvider]:
    """Factory for stub providers sharing the default catalog."""
    def factory(**kwargs: Any) -> StubProvider:
        kwargs.setdefault("tools", tool_catalog)
        return StubProvider(**kwargs)
    return factory


@pytest.fixture
def make_planner() -> Callable[..., StubPlanner]:
    return StubPlanner


@pytest.fixture
def step_clock() -> StepClock:
    return StepClock()


@pytest.fixture
def three_step_plan() -> str:
    """Plan text for the three-step login definition."""
    return plan_json(
        ("browser_navigate", {"url": "https://example.com"}, False),
        ("browser_click", {"selector": "#login"}, False),
        ("browser_evaluate", {"function": "() => document.title === 'Home'"}, True),
    )


# ============================================================================
# Test Definition Fixtures
# ============================================================================


@pytest.fixture
def test_definition() -> TestDefinition:
    """A three-step test definition."""
    text = (
        "# Login smoke test\n"
        "- Navigate to https://example.com\n"
        "- Click the login button\n"
        "- Verify the page title is Home\n"
    )
    return TestDefinition(
        name="login.yml",
        source_text=text,
        steps=(
            "Navigate to https://example.com",
            "Click the login button",
            "Verify the page title is Home",
        ),
        path="tests/login.yml",
    )


# ============================================================================
# Report Fixtures
# ============================================================================


@pytest.fixture
def passed_action() -> ActionRecord:
    return ActionRecord(
        tool_name="browser_navigate",
        params={"url": "https://example.com"},
        status=ActionStatus.PASSED,
        duration_ms=120,
        timestamp=datetime(2025, 1, 1, 12, 0, 1, tzinfo=timezone.utc),
        step_index=1,
        description="Open the home page",
    )


@pytest.fixture
def failed_action() -> ActionRecord:
    return ActionRecord(
        tool_name="browser_evaluate",
        params={"function": "() => false"},
        status=ActionStatus.FAILED,
        assertion=True,
        error="Tool returned false",
        duration_ms=40,
        timestamp=datetime(2025, 1, 1, 12, 0, 2, tzinfo=timezone.utc),
        step_index=2,
        failure_kind=FailureKind.LOGICAL_ASSERTION_FAILURE,
    )


@pytest.fixture
def report_data(passed_action: ActionRecord, failed_action: ActionRecord) -> ReportData:
    return ReportData(
        test_name="login.yml",
        source_text="- Navigate\n- Verify",
        start_time=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        end_time=datetime(2025, 1, 1, 12, 0, 5, tzinfo=timezone.utc),
        duration_ms=5000,
        actions=(passed_action, failed_action),
        passed_actions=1,
        failed_actions=1,
        total_actions=2,
        test_result=TestOutcome.FAIL,
        expected_steps=2,
        planned_steps=2,
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_anthropic_client() -> Mock:
    """Create a mock Anthropic client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.content = [Mock(type="text", text="[]")]
    mock_response.stop_reason = "end_turn"
    mock_response.usage = Mock(input_tokens=100, output_tokens=200)
    mock_client.messages.create.return_value = mock_response
    return mock_client


@pytest.fixture
def connection_refused() -> ProviderConnectionError:
    return ProviderConnectionError("Failed to connect to MCP server: connection refused")

"""Tests for the step executor."""

import logging

import pytest

from steprunner.errors import ToolInvocationError
from steprunner.executor.executor import StepExecutor
from steprunner.executor.recorder import OutcomeRecorder
from steprunner.executor.screenshot import ScreenshotCorrelator
from steprunner.models.plan import ExecutionPlan, ExecutionStep
from steprunner.models.provider import ToolResponse
from steprunner.models.report import ActionStatus, FailureKind


class FakeTimer:
    """Monotonic timer advancing 0.25s per call."""

    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        value = self.now
        self.now += 0.25
        return value


def _plan(*steps: ExecutionStep) -> ExecutionPlan:
    return ExecutionPlan(steps=steps, expected_step_count=len(steps))


def _step(tool: str, index: int = 1, assertion: bool = False, **params) -> ExecutionStep:
    return ExecutionStep(step_index=index, tool_name=tool, params=params,
                         is_assertion=assertion, rationale=f"do {tool}")


@pytest.fixture
def executor_for(tmp_path, step_clock):
    def build(provider) -> StepExecutor:
        return StepExecutor(
            provider,
            OutcomeRecorder(),
            ScreenshotCorrelator(tmp_path / "shots"),
            clock=step_clock,
            timer=FakeTimer(),
        )
    return build


class TestExecuteStep:
    """Tests for StepExecutor.execute_step."""

    @pytest.mark.asyncio
    async def test_successful_step(self, make_provider, executor_for):
        provider = make_provider()
        executor = executor_for(provider)

        record = await executor.execute_step(_step("browser_navigate", url="https://example.com"))

        assert record.status == ActionStatus.PASSED
        assert record.tool_name == "browser_navigate"
        assert record.params == {"url": "https://example.com"}
        assert record.duration_ms == 250
        assert record.error is None
        assert record.failure_kind is None
        assert record.description == "do browser_navigate"
        assert provider.calls == [("browser_navigate", {"url": "https://example.com"})]

    @pytest.mark.asyncio
    async def test_error_envelope(self, make_provider, executor_for):
        provider = make_provider(responses={
            "browser_click": ToolResponse.from_text("### Result\ntrue", is_error=True),
        })
        record = await executor_for(provider).execute_step(_step("browser_click", selector="#x"))

        assert record.status == ActionStatus.FAILED
        assert record.failure_kind == FailureKind.TOOL_PROTOCOL_ERROR
        assert record.error.startswith("Tool error:")

    @pytest.mark.asyncio
    async def test_false_result(self, make_provider, executor_for):
        provider = make_provider(responses={
            "browser_evaluate": ToolResponse.from_text("### Result\nfalse"),
        })
        record = await executor_for(provider).execute_step(
            _step("browser_evaluate", assertion=True, function="() => false"),
        )

        assert record.status == ActionStatus.FAILED
        assert record.failure_kind == FailureKind.LOGICAL_ASSERTION_FAILURE
        assert record.error == "Tool returned false"
        assert record.assertion is True

    @pytest.mark.asyncio
    async def test_invocation_error_recorded(self, make_provider, executor_for):
        provider = make_provider(responses={
            "browser_click": ToolInvocationError("browser_click", "connection lost"),
        })
        record = await executor_for(provider).execute_step(_step("browser_click", selector="a"))

        assert record.status == ActionStatus.FAILED
        assert record.failure_kind == FailureKind.INVOCATION_ERROR
        assert "connection lost" in record.error

    @pytest.mark.asyncio
    async def test_unexpected_exception_recorded(self, make_provider, executor_for):
        provider = make_provider(responses={"browser_click": RuntimeError("kaboom")})
        record = await executor_for(provider).execute_step(_step("browser_click", selector="a"))

        assert record.failure_kind == FailureKind.INVOCATION_ERROR
        assert record.error == "RuntimeError: kaboom"

    @pytest.mark.asyncio
    async def test_screenshot_correlated(self, make_provider, executor_for, tmp_path):
        provider = make_provider(responses={
            "browser_take_screenshot": ToolResponse.from_text(
                "### Result\nTook the viewport screenshot and saved it as /out/home.png",
            ),
        })
        record = await executor_for(provider).execute_step(_step("browser_take_screenshot"))

        assert record.screenshot == str(tmp_path / "shots" / "home.png")

    @pytest.mark.asyncio
    async def test_params_are_copied(self, make_provider, executor_for):
        def mutate(params):
            params["url"] = "changed"
            return ToolResponse.from_text("ok")

        provider = make_provider(responses={"browser_navigate": mutate})
        step = _step("browser_navigate", url="https://example.com")
        record = await executor_for(provider).execute_step(step)

        assert record.params == {"url": "https://example.com"}
        assert step.params == {"url": "https://example.com"}


class TestRunPlan:
    """Tests for StepExecutor.run_plan."""

    @pytest.mark.asyncio
    async def test_one_record_per_step_in_order(self, make_provider, executor_for, test_definition):
        provider = make_provider()
        executor = executor_for(provider)
        plan = _plan(
            _step("browser_navigate", 1, url="https://example.com"),
            _step("browser_click", 2, selector="#login"),
            _step("browser_evaluate", 3, assertion=True, function="() => true"),
        )

        recorder = await executor.run_plan(plan, test_definition)

        assert recorder.total == 3
        assert [a.tool_name for a in recorder.actions] == [
            "browser_navigate", "browser_click", "browser_evaluate",
        ]
        assert [a.step_index for a in recorder.actions] == [1, 2, 3]
        timestamps = [a.timestamp for a in recorder.actions]
        assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_loop(self, make_provider, executor_for):
        provider = make_provider(responses={
            "browser_click": ToolInvocationError("browser_click", "timeout"),
        })
        plan = _plan(
            _step("browser_navigate", 1, url="u"),
            _step("browser_click", 2, selector="a"),
            _step("browser_evaluate", 3, function="() => true"),
        )

        recorder = await executor_for(provider).run_plan(plan)

        assert recorder.total == 3
        assert recorder.failed == 1
        assert recorder.passed == 2
        assert [a.status for a in recorder.actions] == [
            ActionStatus.PASSED, ActionStatus.FAILED, ActionStatus.PASSED,
        ]

    @pytest.mark.asyncio
    async def test_no_retry(self, make_provider, executor_for):
        provider = make_provider(responses={
            "browser_click": ToolResponse.from_text("not found", is_error=True),
        })
        await executor_for(provider).run_plan(_plan(_step("browser_click", selector="a")))

        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_plan(self, make_provider, executor_for):
        provider = make_provider()
        recorder = await executor_for(provider).run_plan(_plan())
        assert recorder.total == 0
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_logs_step_text(self, make_provider, executor_for, test_definition, caplog):
        provider = make_provider()
        plan = _plan(_step("browser_click", 2, selector="#login"))

        with caplog.at_level(logging.INFO):
            await executor_for(provider).run_plan(plan, test_definition)

        assert "Step 1/1: Click the login button" in caplog.text

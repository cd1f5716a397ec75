"""Test run engine: drives one test definition from planning to a final report."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from steprunner.errors import PlanningError, ProviderConnectionError
from steprunner.models.config import RunnerConfig
from steprunner.models.report import ReportData, RunState, TestReport
from steprunner.models.test_definition import TestDefinition
from steprunner.planner.plan_validator import parse_execution_plan
from steprunner.planner.planner import PlanSource
from steprunner.providers.base import ToolProvider
from steprunner.reporter.aggregator import ReportAggregator

from .executor import StepExecutor, utc_now
from .recorder import OutcomeRecorder
from .screenshot import ScreenshotCorrelator

logger = logging.getLogger(__name__)


class TestRunEngine:
    """Runs a single test definition. Create a new engine for every run.

    States: CREATED -> PLANNING -> EXECUTING -> FINALIZING -> PASSED/FAILED,
    or ABORTED when the provider or the planner fails before any step runs.
    The provider is released on every exit path before errors propagate.
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        provider: ToolProvider,
        planner: PlanSource,
        config: RunnerConfig,
        clock: Optional[Callable[[], datetime]] = None,
        timer: Optional[Callable[[], float]] = None,
    ):
        self.provider = provider
        self.planner = planner
        self.config = config
        self.clock = clock or utc_now
        self.timer = timer or time.monotonic
        self.recorder = OutcomeRecorder()
        self.aggregator = ReportAggregator(self.clock)
        self.report_data: Optional[ReportData] = None
        self._state = RunState.CREATED

    @property
    def state(self) -> RunState:
        return self._state

    def _transition(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self._state.value, state.value)
        self._state = state

    async def run(self, definition: TestDefinition) -> ReportData:
        if self._state != RunState.CREATED:
            raise RuntimeError("TestRunEngine instances run exactly one test")

        logger.info("Running test '%s' (%d steps) via %s provider",
                    definition.name, definition.step_count, self.provider.name)
        report = TestReport(
            test_name=definition.name,
            source_text=definition.source_text,
            start_time=self.clock(),
            expected_steps=definition.step_count,
        )

        try:
            async with self.provider as provider:
                tools = await provider.discover_tools()
                logger.info("Discovered %d tools", len(tools))
                catalog = {tool.name: tool for tool in tools}

                self._transition(RunState.PLANNING)
                plan_text = await self.planner.generate_plan_text(tools, definition)
                plan = parse_execution_plan(plan_text, definition.step_count, catalog)
                report.planned_steps = len(plan)

                self._transition(RunState.EXECUTING)
                executor = StepExecutor(
                    provider,
                    self.recorder,
                    ScreenshotCorrelator(self.config.reporting.screenshots_dir),
                    excerpt_limit=self.config.reporting.error_excerpt_chars,
                    clock=self.clock,
                    timer=self.timer,
                )
                await executor.run_plan(plan, definition)
        except (ProviderConnectionError, PlanningError) as e:
            logger.error("Test '%s' aborted: %s", definition.name, e)
            self._transition(RunState.ABORTED)
            raise
        except (KeyboardInterrupt, asyncio.CancelledError):
            self._interrupted(report)
            raise
        except Exception:
            logger.exception("Test '%s' aborted by an unexpected error", definition.name)
            if self._state == RunState.EXECUTING:
                self._interrupted(report)
            else:
                self._transition(RunState.ABORTED)
            raise

        self._transition(RunState.FINALIZING)
        self.report_data = self.aggregator.finalize(report, self.recorder)
        self._transition(RunState.PASSED if self.report_data.passed else RunState.FAILED)
        return self.report_data

    def _interrupted(self, report: TestReport) -> None:
        if self._state != RunState.EXECUTING:
            logger.warning("Test '%s' interrupted before execution", report.test_name)
            self._transition(RunState.ABORTED)
            return
        logger.warning("Test '%s' interrupted after %d action(s)",
                       report.test_name, self.recorder.total)
        self._transition(RunState.FINALIZING)
        self.report_data = self.aggregator.finalize(report, self.recorder, completed=False)
        self._transition(RunState.FAILED)

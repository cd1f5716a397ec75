"""Step executor: runs an execution plan against a tool provider."""

from __future__ import annotations

import copy
import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from steprunner.errors import ToolInvocationError
from steprunner.models.plan import ExecutionPlan, ExecutionStep
from steprunner.models.report import ActionRecord, ActionStatus, FailureKind
from steprunner.models.test_definition import TestDefinition
from steprunner.providers.base import ToolProvider

from .output_parser import DEFAULT_EXCERPT_CHARS, classify_response
from .recorder import OutcomeRecorder
from .screenshot import ScreenshotCorrelator

logger = logging.getLogger(__name__)

PARAM_LOG_CHARS = 120


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _params_preview(params: dict) -> str:
    text = json.dumps(params, ensure_ascii=False, default=str)
    if len(text) > PARAM_LOG_CHARS:
        return text[:PARAM_LOG_CHARS] + "..."
    return text


class StepExecutor:
    """Executes plan steps one at a time and records one ActionRecord per step.

    Failed steps never stop the loop and are never retried.
    """

    def __init__(
        self,
        provider: ToolProvider,
        recorder: OutcomeRecorder,
        correlator: ScreenshotCorrelator,
        excerpt_limit: int = DEFAULT_EXCERPT_CHARS,
        clock: Callable[[], datetime] = utc_now,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.recorder = recorder
        self.correlator = correlator
        self.excerpt_limit = excerpt_limit
        self.clock = clock
        self.timer = timer

    async def run_plan(
        self, plan: ExecutionPlan, definition: Optional[TestDefinition] = None,
    ) -> OutcomeRecorder:
        """Execute every step of ``plan`` in order."""
        total = len(plan)
        for position, step in enumerate(plan.steps):
            step_text = definition.step_text_for(step.step_index, position) if definition else ""
            logger.info("Step %d/%d: %s", position + 1, total,
                        step_text or step.rationale or step.tool_name)

            record = await self.execute_step(step)
            self.recorder.record(record)

            if record.passed:
                logger.info("Step %d passed%s", position + 1,
                            " (assertion)" if step.is_assertion else "")
            else:
                logger.error("Step %d failed: %s", position + 1, record.error)

        return self.recorder

    async def execute_step(self, step: ExecutionStep) -> ActionRecord:
        """Invoke one step and convert its outcome into an ActionRecord."""
        logger.debug("Tool: %s(%s)", step.tool_name, _params_preview(step.params))
        timestamp = self.clock()
        start = self.timer()

        try:
            response = await self.provider.invoke(step.tool_name, dict(step.params))
        except ToolInvocationError as e:
            return self._failed_invocation(step, timestamp, start, str(e))
        except Exception as e:
            logger.exception("Unexpected error invoking %s", step.tool_name)
            return self._failed_invocation(
                step, timestamp, start, f"{type(e).__name__}: {e}",
            )

        duration_ms = self._elapsed_ms(start)
        outcome = classify_response(response, self.excerpt_limit)
        screenshot = self.correlator.correlate(response.content)

        if outcome.failure_kind == FailureKind.TOOL_PROTOCOL_ERROR:
            logger.error("Tool %s returned an error envelope", step.tool_name)
        elif outcome.failure_kind == FailureKind.LOGICAL_ASSERTION_FAILURE:
            logger.warning("Tool %s reported a false result", step.tool_name)

        return self._build_record(
            step, timestamp, duration_ms,
            status=outcome.status,
            error=outcome.error,
            failure_kind=outcome.failure_kind,
            screenshot=screenshot,
        )

    def _failed_invocation(
        self, step: ExecutionStep, timestamp: datetime, start: float, message: str,
    ) -> ActionRecord:
        return self._build_record(
            step, timestamp, self._elapsed_ms(start),
            status=ActionStatus.FAILED,
            error=message,
            failure_kind=FailureKind.INVOCATION_ERROR,
            screenshot=None,
        )

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int(round((self.timer() - start) * 1000)))

    @staticmethod
    def _build_record(
        step: ExecutionStep,
        timestamp: datetime,
        duration_ms: int,
        status: ActionStatus,
        error: Optional[str],
        failure_kind: Optional[FailureKind],
        screenshot: Optional[str],
    ) -> ActionRecord:
        return ActionRecord(
            tool_name=step.tool_name,
            params=copy.deepcopy(step.params),
            status=status,
            assertion=step.is_assertion,
            error=error,
            duration_ms=duration_ms,
            screenshot=screenshot,
            timestamp=timestamp,
            step_index=step.step_index,
            description=step.rationale,
            failure_kind=failure_kind,
        )

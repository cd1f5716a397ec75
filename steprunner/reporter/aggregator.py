"""Turns a working TestReport plus recorded actions into final ReportData."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from steprunner.executor.recorder import OutcomeRecorder
from steprunner.models.report import ReportData, TestOutcome, TestReport

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportAggregator:
    """Finalizes a report exactly once.

    A completed run passes iff no action failed, so a run with zero actions
    passes (with a warning). An interrupted run is always a failure.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or _utc_now

    def finalize(
        self, report: TestReport, recorder: OutcomeRecorder, completed: bool = True,
    ) -> ReportData:
        if report.finalized:
            raise RuntimeError(f"Report for '{report.test_name}' is already finalized")

        end_time = self.clock()
        duration_ms = max(0, int((end_time - report.start_time).total_seconds() * 1000))

        actions = recorder.actions
        result = TestOutcome.PASS if completed and recorder.failed == 0 else TestOutcome.FAIL

        report.end_time = end_time
        report.actions = list(actions)
        report.passed_actions = recorder.passed
        report.failed_actions = recorder.failed
        report.total_actions = recorder.total
        report.test_result = result

        if recorder.total == 0:
            logger.warning("Test '%s' finished with zero executed actions", report.test_name)
        if not completed:
            logger.warning("Test '%s' was interrupted; report covers %d action(s)",
                           report.test_name, recorder.total)

        logger.info("Finalized '%s': %s (%d/%d passed, %dms)", report.test_name,
                    result.value, recorder.passed, recorder.total, duration_ms)

        return ReportData(
            test_name=report.test_name,
            source_text=report.source_text,
            start_time=report.start_time,
            end_time=end_time,
            duration_ms=duration_ms,
            actions=actions,
            passed_actions=recorder.passed,
            failed_actions=recorder.failed,
            total_actions=recorder.total,
            test_result=result,
            expected_steps=report.expected_steps,
            planned_steps=report.planned_steps,
            completed=completed,
        )

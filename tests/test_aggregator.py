"""Tests for report finalization."""

import logging
from datetime import datetime, timezone

import pytest

from steprunner.executor.recorder import OutcomeRecorder
from steprunner.models.report import TestOutcome, TestReport
from steprunner.reporter.aggregator import ReportAggregator


def _report(**kwargs) -> TestReport:
    kwargs.setdefault("test_name", "login.yml")
    kwargs.setdefault("start_time", datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
    return TestReport(**kwargs)


class TestReportAggregator:
    """Tests for ReportAggregator.finalize."""

    def test_all_passed(self, step_clock, passed_action):
        recorder = OutcomeRecorder()
        recorder.record(passed_action)
        recorder.record(passed_action)

        data = ReportAggregator(step_clock).finalize(_report(), recorder)

        assert data.test_result == TestOutcome.PASS
        assert data.passed
        assert data.passed_actions == 2
        assert data.failed_actions == 0
        assert data.total_actions == 2
        assert data.success_rate == 1.0
        assert data.completed is True

    def test_any_failure_fails(self, step_clock, passed_action, failed_action):
        recorder = OutcomeRecorder()
        recorder.record(passed_action)
        recorder.record(failed_action)

        data = ReportAggregator(step_clock).finalize(_report(), recorder)

        assert data.test_result == TestOutcome.FAIL
        assert data.failed_actions == 1
        assert data.passed_actions + data.failed_actions == data.total_actions
        assert data.success_rate == 0.5

    def test_zero_actions_pass_with_warning(self, step_clock, caplog):
        with caplog.at_level(logging.WARNING):
            data = ReportAggregator(step_clock).finalize(_report(), OutcomeRecorder())

        assert data.test_result == TestOutcome.PASS
        assert data.total_actions == 0
        assert data.success_rate == 0.0
        assert "zero executed actions" in caplog.text

    def test_duration_from_clock(self, step_clock):
        start = step_clock()  # 12:00:00
        step_clock()  # 12:00:01
        data = ReportAggregator(step_clock).finalize(_report(start_time=start), OutcomeRecorder())
        assert data.end_time == datetime(2025, 1, 1, 12, 0, 2, tzinfo=timezone.utc)
        assert data.duration_ms == 2000

    def test_duration_never_negative(self, passed_action):
        start = datetime(2025, 1, 1, 12, 0, 10, tzinfo=timezone.utc)
        earlier = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        data = ReportAggregator(lambda: earlier).finalize(_report(start_time=start), OutcomeRecorder())
        assert data.duration_ms == 0

    def test_actions_copied_in_order(self, step_clock, passed_action, failed_action):
        recorder = OutcomeRecorder()
        recorder.record(failed_action)
        recorder.record(passed_action)

        data = ReportAggregator(step_clock).finalize(_report(), recorder)

        assert data.actions == (failed_action, passed_action)

    def test_marks_working_report_finalized(self, step_clock):
        report = _report(expected_steps=3, planned_steps=2)
        data = ReportAggregator(step_clock).finalize(report, OutcomeRecorder())

        assert report.finalized
        assert report.end_time == data.end_time
        assert data.expected_steps == 3
        assert data.planned_steps == 2

    def test_finalize_twice_raises(self, step_clock):
        aggregator = ReportAggregator(step_clock)
        report = _report()
        aggregator.finalize(report, OutcomeRecorder())

        with pytest.raises(RuntimeError, match="already finalized"):
            aggregator.finalize(report, OutcomeRecorder())

    def test_interrupted_run_is_a_failure(self, step_clock, passed_action):
        recorder = OutcomeRecorder()
        recorder.record(passed_action)

        data = ReportAggregator(step_clock).finalize(_report(), recorder, completed=False)

        assert data.completed is False
        assert data.test_result == TestOutcome.FAIL
        assert data.failed_actions == 0

    def test_default_clock_is_utc(self):
        data = ReportAggregator().finalize(_report(), OutcomeRecorder())
        assert data.end_time.tzinfo is not None

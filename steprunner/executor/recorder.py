"""Append-only store of action records for one run."""

from __future__ import annotations

import logging

from steprunner.models.report import ActionRecord, ActionStatus

logger = logging.getLogger(__name__)


class OutcomeRecorder:
    """Accumulates action records and pass/fail counters.

    Owned by a single engine instance. Records can only be appended.
    """

    def __init__(self) -> None:
        self._actions: list[ActionRecord] = []
        self._passed = 0
        self._failed = 0

    def record(self, action: ActionRecord) -> None:
        self._actions.append(action)
        if action.status == ActionStatus.PASSED:
            self._passed += 1
        else:
            self._failed += 1
        logger.debug("Recorded %s %s (%d passed, %d failed)",
                     action.tool_name, action.status.value, self._passed, self._failed)

    @property
    def actions(self) -> tuple[ActionRecord, ...]:
        return tuple(self._actions)

    @property
    def passed(self) -> int:
        return self._passed

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def total(self) -> int:
        return len(self._actions)

"""Heuristic parsing of free-text tool output.

Contract:
    joined_text(content)          -> text of all ``text`` blocks, newline-joined
    extract_result_marker(text)   -> value after the first ``### Result`` marker, or None
    classify_response(response)   -> StepOutcome (status, failure kind, error message)

Nothing here talks to a provider; everything works on plain data.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from steprunner.models.provider import ContentBlock, ToolResponse
from steprunner.models.report import ActionStatus, FailureKind

DEFAULT_EXCERPT_CHARS = 500

_RESULT_MARKER_RE = re.compile(r"### Result\s+([^\n]+)", re.IGNORECASE)


@dataclass(frozen=True)
class StepOutcome:
    status: ActionStatus
    failure_kind: Optional[FailureKind] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == ActionStatus.PASSED


PASSED = StepOutcome(ActionStatus.PASSED)


def joined_text(content: Iterable[ContentBlock]) -> str:
    return "\n".join(
        block.text for block in content
        if block.type == "text" and isinstance(block.text, str)
    )


def extract_result_marker(text: str) -> Optional[str]:
    """Return the stripped value following ``### Result``, or None if absent."""
    match = _RESULT_MARKER_RE.search(text or "")
    if not match:
        return None
    return match.group(1).strip()


def excerpt(payload: str, limit: int = DEFAULT_EXCERPT_CHARS) -> str:
    if len(payload) <= limit:
        return payload
    return payload[:limit] + f"... ({len(payload) - limit} more chars)"


def raw_payload(response: ToolResponse) -> str:
    return json.dumps(
        [block.model_dump(exclude_none=True) for block in response.content],
        ensure_ascii=False,
    )


def classify_response(
    response: ToolResponse, excerpt_limit: int = DEFAULT_EXCERPT_CHARS,
) -> StepOutcome:
    """Classify a provider response.

    The protocol channel wins: an error envelope is a failure whatever the
    text says. Otherwise a ``### Result false`` marker is a logical failure.
    """
    if response.is_error:
        return StepOutcome(
            ActionStatus.FAILED,
            FailureKind.TOOL_PROTOCOL_ERROR,
            f"Tool error: {excerpt(raw_payload(response), excerpt_limit)}",
        )

    value = extract_result_marker(joined_text(response.content))
    if value is not None and value.lower() == "false":
        return StepOutcome(
            ActionStatus.FAILED,
            FailureKind.LOGICAL_ASSERTION_FAILURE,
            "Tool returned false",
        )

    return PASSED

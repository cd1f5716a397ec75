"""Execution plan parsing and validation.

Turns raw planner output (a JSON array, possibly wrapped in markdown fences or
prose) into an ``ExecutionPlan`` whose every step names a discovered tool.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from steprunner.errors import PlanParseError
from steprunner.models.plan import ExecutionPlan, ExecutionStep
from steprunner.models.provider import ToolDescriptor

logger = logging.getLogger(__name__)

_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w-]*[ \t]*$", re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

LEGACY_TOOL_PREFIX = "mcp_"


def strip_fences(text: str) -> str:
    """Remove markdown code fence lines (``` or ```json) from ``text``.

    Only whole fence lines are removed; backticks inside values are kept.
    """
    return _FENCE_LINE_RE.sub("", text).strip()


def parse_plan_records(text: str) -> list[Any]:
    """Parse fence-stripped plan text as a JSON array.

    Falls back to decoding an array embedded in surrounding prose, then to the
    same after dropping trailing commas.
    """
    cleaned = strip_fences(text)
    if not cleaned:
        raise PlanParseError("Plan text is empty", raw_text=text)

    try:
        data = json.loads(cleaned, strict=False)
    except json.JSONDecodeError:
        data = _parse_lenient(cleaned, text)

    if not isinstance(data, list):
        raise PlanParseError(
            f"Plan must be a JSON array, got {type(data).__name__}", raw_text=text,
        )
    return data


def _find_array(text: str) -> tuple[list | None, str]:
    """Decode a JSON array starting at some ``[`` in ``text``.

    Prefers the first array of objects, so bracketed prose such as
    "step [1]" ahead of the plan is skipped. Falls back to the first array.
    """
    decoder = json.JSONDecoder(strict=False)
    first_list = None
    last_error = ""
    idx = text.find("[")
    while idx != -1:
        try:
            value, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError as e:
            last_error = str(e)
        else:
            if isinstance(value, list):
                if value and all(isinstance(item, dict) for item in value):
                    return value, ""
                if first_list is None:
                    first_list = value
        idx = text.find("[", idx + 1)
    return first_list, last_error


def _parse_lenient(cleaned: str, original: str) -> Any:
    if "[" not in cleaned:
        raise PlanParseError("No JSON array found in plan text", raw_text=original)
    logger.debug("Strict plan parse failed, scanning for an embedded array")

    data, error = _find_array(cleaned)
    if data is None:
        data, error = _find_array(_TRAILING_COMMA_RE.sub(r"\1", cleaned))
    if data is None:
        raise PlanParseError(f"Invalid plan JSON: {error}", raw_text=original)
    return data


def resolve_tool_name(name: str, catalog: Mapping[str, ToolDescriptor]) -> str | None:
    """Return the catalog name for ``name``, tolerating the legacy ``mcp_`` prefix."""
    if name in catalog:
        return name
    if name.startswith(LEGACY_TOOL_PREFIX) and name[len(LEGACY_TOOL_PREFIX):] in catalog:
        return name[len(LEGACY_TOOL_PREFIX):]
    return None


def validate_plan_records(
    records: list[Any], catalog: Mapping[str, ToolDescriptor],
) -> list[str]:
    """Validate parsed plan records and return a list of error messages."""
    errors = []

    for i, record in enumerate(records):
        label = f"step {i + 1}"
        if not isinstance(record, dict):
            errors.append(f"{label}: expected an object, got {type(record).__name__}")
            continue

        tool = record.get("tool")
        if not isinstance(tool, str) or not tool.strip():
            errors.append(f"{label}: missing tool name")
        else:
            resolved = resolve_tool_name(tool.strip(), catalog)
            if resolved is None:
                errors.append(f"{label}: unknown tool '{tool}'")
            else:
                _warn_missing_required(label, record.get("params"), catalog[resolved])

        params = record.get("params")
        if params is not None and not isinstance(params, dict):
            errors.append(f"{label}: params must be an object, got {type(params).__name__}")

        is_assertion = record.get("isAssertion")
        if is_assertion is not None and not isinstance(is_assertion, bool):
            errors.append(f"{label}: isAssertion must be a boolean")

        step_index = record.get("stepIndex")
        if step_index is not None and (isinstance(step_index, bool) or not isinstance(step_index, int)):
            errors.append(f"{label}: stepIndex must be an integer")

    return errors


def _warn_missing_required(label: str, params: Any, tool: ToolDescriptor) -> None:
    # The provider validates parameters itself; this is only a heads-up.
    if not isinstance(params, dict):
        return
    missing = [p for p in tool.required_params if p not in params]
    if missing:
        logger.warning("%s: %s is missing required params %s", label, tool.name, missing)


def parse_execution_plan(
    text: str,
    expected_step_count: int,
    catalog: Mapping[str, ToolDescriptor],
) -> ExecutionPlan:
    """Strip, parse and validate raw plan text into an ``ExecutionPlan``."""
    records = parse_plan_records(text)
    errors = validate_plan_records(records, catalog)
    if errors:
        logger.error("Plan validation failed with %d error(s): %s", len(errors), errors)
        raise PlanParseError("Plan failed validation", errors=errors, raw_text=text)

    steps = []
    for i, record in enumerate(records):
        step_index = record.get("stepIndex")
        steps.append(ExecutionStep(
            step_index=step_index if step_index is not None else i + 1,
            tool_name=resolve_tool_name(record["tool"].strip(), catalog),
            params=record.get("params") or {},
            is_assertion=bool(record.get("isAssertion")),
            rationale=str(record.get("description") or ""),
        ))

    if len(steps) != expected_step_count:
        logger.warning(
            "Plan has %d step(s) but the test defines %d; executing the plan as given",
            len(steps), expected_step_count,
        )

    logger.info("Parsed execution plan with %d steps", len(steps))
    return ExecutionPlan(steps=tuple(steps), expected_step_count=expected_step_count)

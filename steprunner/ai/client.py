"""Claude client for plan generation: one completion per test run."""

from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

import anthropic

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
REQUEST_TIMEOUT_SECONDS = 600.0

_debug_dir: Path | None = None


def set_debug_dir(path: Path) -> None:
    """Set the directory that receives one log file per planning exchange."""
    global _debug_dir
    _debug_dir = Path(path)
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _exchange_dir() -> Path:
    directory = _debug_dir or Path(".step-runner") / "debug"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _log_name(label: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", label).strip("_").lower() or "plan"


class AIClient:
    """Anthropic Messages API wrapper used by the planner.

    Keeps running token totals across the suite so the last log line of a run
    shows what planning cost.
    """

    def __init__(self, model: str = DEFAULT_MODEL, max_tokens: int = 16000):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Export it before running tests."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=REQUEST_TIMEOUT_SECONDS)
        self.model = model
        self.max_tokens = max_tokens
        self.input_tokens = 0
        self.output_tokens = 0
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
        label: str = "plan",
    ) -> str:
        """Run one completion and return the concatenated text blocks.

        ``label`` names the exchange log (the test file name for planning calls).
        """
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info("Requesting plan for %s from %s (max_tokens=%d)", label, self.model, tokens)

        started = time.monotonic()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
        except anthropic.APIError as e:
            logger.error("Claude API error while planning %s: %s", label, e)
            self._write_exchange(label, system_prompt, user_message, "", error=str(e))
            raise

        text = self._response_text(response)
        self._record_usage(response)
        logger.info("Plan for %s received in %.1fs (%d chars)",
                    label, time.monotonic() - started, len(text))

        if response.stop_reason == "max_tokens":
            logger.warning(
                "Plan for %s was truncated at max_tokens=%d; "
                "the plan may be incomplete, consider raising llm.max_tokens",
                label, tokens,
            )

        self._write_exchange(label, system_prompt, user_message, text)
        return text

    @staticmethod
    def _response_text(response: Any) -> str:
        return "".join(
            block.text for block in response.content
            if getattr(block, "type", "text") == "text"
        )

    def _record_usage(self, response: Any) -> None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        logger.debug("Token usage: input=%d output=%d (totals %d/%d over %d call(s))",
                     input_tokens, output_tokens, self.input_tokens,
                     self.output_tokens, self._call_count)

    def _write_exchange(
        self,
        label: str,
        system_prompt: str,
        user_message: str,
        response_text: str,
        error: str | None = None,
    ) -> None:
        """Write the prompt and the raw plan text to the debug directory."""
        try:
            path = _exchange_dir() / (
                f"{_log_name(label)}_{time.strftime('%Y%m%d_%H%M%S')}_{self._call_count:03d}.log"
            )
            sections = [
                f"# Planning exchange #{self._call_count} for {label} ({self.model})",
                f"## System prompt ({len(system_prompt)} chars)\n{system_prompt}",
                f"## User message\n{user_message}",
                f"## Response ({len(response_text)} chars)\n{response_text or '(empty)'}",
            ]
            if error:
                sections.append(f"## Error\n{error}")
            path.write_text("\n\n".join(sections) + "\n", encoding="utf-8")
            logger.debug("Planning exchange logged to %s", path)
        except OSError as e:
            logger.debug("Could not write planning exchange log: %s", e)

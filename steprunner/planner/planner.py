"""AI-driven execution plan generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from steprunner.ai.client import AIClient
from steprunner.ai.prompts.planning import PLANNING_USER_MESSAGE, build_planning_prompt
from steprunner.errors import PlanningError
from steprunner.models.config import RunnerConfig
from steprunner.models.provider import ToolDescriptor
from steprunner.models.test_definition import TestDefinition

logger = logging.getLogger(__name__)


class PlanSource(Protocol):
    """Anything that turns a test definition plus tool catalog into raw plan text."""

    async def generate_plan_text(
        self, tools: list[ToolDescriptor], definition: TestDefinition,
    ) -> str:
        ...


class Planner:
    """Generates execution plans with a single LLM call per test run."""

    def __init__(self, config: RunnerConfig, ai_client: AIClient):
        self.config = config
        self.ai_client = ai_client

    async def generate_plan_text(
        self, tools: list[ToolDescriptor], definition: TestDefinition,
    ) -> str:
        """Ask the model for a plan and return its raw text, unparsed."""
        logger.info("Generating execution plan for %s (%d steps, %d tools, model=%s)",
                    definition.name, definition.step_count, len(tools), self.config.llm.model)

        system_prompt = build_planning_prompt(tools, definition.source_text, definition.step_count)
        logger.debug("Planning prompt built: %d chars", len(system_prompt))

        try:
            text = await asyncio.to_thread(
                self.ai_client.complete,
                system_prompt,
                PLANNING_USER_MESSAGE,
                self.config.llm.max_tokens,
                self.config.llm.temperature,
                label=definition.name,
            )
        except Exception as e:
            logger.error("AI planning failed: %s", e)
            raise PlanningError(f"Plan generation failed: {e}") from e

        logger.debug("Raw plan text: %s", text[:2000])
        return text

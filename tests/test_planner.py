"""Tests for the planning prompt and the Planner."""

import json
from unittest.mock import Mock

import pytest

from steprunner.ai.prompts.planning import (
    PLANNING_SYSTEM_PROMPT,
    PLANNING_USER_MESSAGE,
    build_planning_prompt,
    tools_for_prompt,
)
from steprunner.errors import PlanningError
from steprunner.planner.planner import Planner


class TestPlanningPrompt:
    """Tests for build_planning_prompt."""

    def test_system_prompt_requires_json_array(self):
        assert "JSON ARRAY" in PLANNING_SYSTEM_PROMPT
        assert "browser_handle_dialog" in PLANNING_SYSTEM_PROMPT

    def test_includes_tools_and_steps(self, tool_catalog, test_definition):
        prompt = build_planning_prompt(
            tool_catalog, test_definition.source_text, test_definition.step_count,
        )

        for tool in tool_catalog:
            assert f'"name": "{tool.name}"' in prompt
        assert "- Click the login button" in prompt
        assert "Analyze the 3 steps" in prompt

    def test_braces_render_as_literal_json(self, tool_catalog):
        prompt = build_planning_prompt(tool_catalog, "- step", 1)

        assert '"() => { return true; }"' in prompt
        assert "{{" not in prompt
        assert '"stepIndex": <1-based number of the test step>' in prompt

    def test_tools_for_prompt(self, tool_catalog):
        entries = tools_for_prompt(tool_catalog)
        assert entries[0]["name"] == tool_catalog[0].name
        assert entries[0]["schema"] == tool_catalog[0].input_schema
        json.dumps(entries)


class TestPlanner:
    """Tests for Planner.generate_plan_text."""

    @pytest.mark.asyncio
    async def test_returns_raw_text(self, runner_config, tool_catalog, test_definition):
        ai_client = Mock()
        ai_client.complete.return_value = "  not parsed here  "
        planner = Planner(runner_config, ai_client)

        text = await planner.generate_plan_text(tool_catalog, test_definition)

        assert text == "  not parsed here  "
        ai_client.complete.assert_called_once()
        args = ai_client.complete.call_args.args
        assert "Verify the page title is Home" in args[0]
        assert args[1] == PLANNING_USER_MESSAGE
        assert args[2] == runner_config.llm.max_tokens
        assert args[3] == runner_config.llm.temperature
        assert ai_client.complete.call_args.kwargs == {"label": "login.yml"}

    @pytest.mark.asyncio
    async def test_client_error_becomes_planning_error(self, runner_config, tool_catalog,
                                                       test_definition):
        ai_client = Mock()
        ai_client.complete.side_effect = RuntimeError("overloaded")
        planner = Planner(runner_config, ai_client)

        with pytest.raises(PlanningError, match="overloaded"):
            await planner.generate_plan_text(tool_catalog, test_definition)

"""Provider selection from configuration."""

from __future__ import annotations

from steprunner.models.config import RunnerConfig

from .base import ToolProvider
from .mcp_stdio import MCPStdioProvider
from .playwright_local import PlaywrightToolProvider


def create_provider(config: RunnerConfig) -> ToolProvider:
    """Build a fresh, unconnected provider for one test run."""
    if config.provider.kind == "playwright":
        return PlaywrightToolProvider(config)
    return MCPStdioProvider(config)

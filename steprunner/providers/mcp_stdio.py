"""MCP tool provider: talks to a browser-automation MCP server over stdio."""

from __future__ import annotations

import logging
import os
from contextlib import AsyncExitStack
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import Implementation

from steprunner.errors import ProviderConnectionError, ToolInvocationError
from steprunner.models.config import RunnerConfig
from steprunner.models.provider import ContentBlock, ToolDescriptor, ToolResponse

from .base import ToolProvider

logger = logging.getLogger(__name__)

CLIENT_NAME = "step-runner"
CLIENT_VERSION = "1.0.0"


def build_server_args(config: RunnerConfig) -> list[str]:
    """Command-line arguments for the Playwright MCP server."""
    browser = config.browser
    args = [
        config.provider.package,
        "--browser", browser.browser,
        "--output-dir", str(Path(config.reporting.screenshots_dir).resolve()),
        "--viewport-size", browser.viewport.size,
    ]
    if browser.ignore_https_errors:
        args.append("--ignore-https-errors")
    if browser.headless:
        args.append("--headless")
    args.extend(config.provider.extra_args)
    return args


def _to_block(item: Any) -> ContentBlock:
    block_type = getattr(item, "type", "text")
    text = getattr(item, "text", None) if block_type == "text" else None
    return ContentBlock(type=block_type, text=text)


class MCPStdioProvider(ToolProvider):
    """Spawns an MCP server process and calls its tools through ClientSession."""

    name = "mcp"

    def __init__(self, config: RunnerConfig):
        self.config = config
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    def server_parameters(self) -> StdioServerParameters:
        provider = self.config.provider
        workspace = Path(provider.workspace_dir).resolve()
        return StdioServerParameters(
            command=provider.command,
            args=build_server_args(self.config),
            env={**os.environ, **provider.env},
            cwd=str(workspace),
        )

    async def connect(self) -> None:
        workspace = Path(self.config.provider.workspace_dir)
        workspace.mkdir(parents=True, exist_ok=True)
        Path(self.config.reporting.screenshots_dir).mkdir(parents=True, exist_ok=True)

        params = self.server_parameters()
        logger.info("Starting MCP server: %s %s", params.command, " ".join(params.args))

        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(
                read, write,
                client_info=Implementation(name=CLIENT_NAME, version=CLIENT_VERSION),
            ))
            init = await session.initialize()
        except Exception as e:
            await self._safe_close(stack)
            raise ProviderConnectionError(f"Failed to connect to MCP server: {e}") from e

        self._stack = stack
        self._session = session
        server = init.serverInfo
        logger.info("Connected to MCP server %s %s", server.name, server.version)

    async def close(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            await stack.aclose()
            logger.info("MCP connection closed")

    @staticmethod
    async def _safe_close(stack: AsyncExitStack) -> None:
        try:
            await stack.aclose()
        except Exception as e:
            logger.debug("Cleanup after failed connect raised: %s", e)

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise ProviderConnectionError("MCP provider is not connected")
        return self._session

    async def discover_tools(self) -> list[ToolDescriptor]:
        session = self._require_session()
        try:
            result = await session.list_tools()
        except Exception as e:
            raise ProviderConnectionError(f"Tool discovery failed: {e}") from e

        tools = [
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]
        logger.info("Discovered %d MCP tools", len(tools))
        return tools

    async def invoke(self, name: str, params: dict[str, Any]) -> ToolResponse:
        session = self._session
        if session is None:
            raise ToolInvocationError(name, "MCP provider is not connected")

        timeout = self.config.provider.step_timeout_seconds
        try:
            result = await session.call_tool(
                name, params,
                read_timeout_seconds=timedelta(seconds=timeout) if timeout else None,
            )
        except McpError as e:
            raise ToolInvocationError(name, f"MCP error: {e}") from e
        except Exception as e:
            raise ToolInvocationError(name, f"{type(e).__name__}: {e}") from e

        return ToolResponse(
            content=tuple(_to_block(item) for item in result.content),
            is_error=bool(result.isError),
        )

"""Tool provider interface."""

from __future__ import annotations

import abc
import logging
from typing import Any

from steprunner.models.provider import ToolDescriptor, ToolResponse

logger = logging.getLogger(__name__)


class ToolProvider(abc.ABC):
    """A connection to a set of browser-automation tools.

    Used as an async context manager: the connection is acquired on entry and
    released on every exit path. ``connect`` raises ProviderConnectionError;
    ``invoke`` raises ToolInvocationError for transport-level failures and
    returns an error envelope (``is_error=True``) for tool-level failures.
    """

    name = "provider"

    @abc.abstractmethod
    async def connect(self) -> None:
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        ...

    @abc.abstractmethod
    async def discover_tools(self) -> list[ToolDescriptor]:
        ...

    @abc.abstractmethod
    async def invoke(self, name: str, params: dict[str, Any]) -> ToolResponse:
        ...

    async def __aenter__(self) -> "ToolProvider":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            await self.close()
        except Exception as e:
            logger.warning("Error while closing %s: %s", self.name, e)
        return False

import functools
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Tuple

from mcp.server.fastmcp import FastMCP

from servers.weather_sync.domain.exceptions import WeatherSyncError

logger = logging.getLogger(__name__)


def errors_as_text(func: Callable[..., Awaitable[str]]) -> Callable[..., Awaitable[str]]:
    """Render domain errors raised by a handler as an ``Error: ...`` string.

    MCP handlers return text for an LLM to read, so expected failures
    (unknown location, no data yet, provider down) become a message
    instead of a protocol error. Anything else propagates.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> str:
        try:
            return await func(*args, **kwargs)
        except WeatherSyncError as exc:
            logger.info("%s failed: %s", func.__name__, exc)
            return f"Error: {exc}"

    return wrapper


class MCPApplicationService(ABC):
    """Base class for MCP Application Services following DDD patterns.

    Application Services orchestrate domain objects to fulfill use cases
    while remaining independent of infrastructure concerns. This class
    provides the MCP-specific infrastructure setup.

    In DDD terms:
    - Tools map to domain service operations
    - Resources provide read-only access to aggregates
    - Prompts offer templated workflows

    Args:
        mcp: FastMCP server instance for protocol handling
    """

    def __init__(self, mcp: FastMCP):
        self.mcp = mcp

        self._register_tools()
        self._register_resources()
        self._register_prompts()

    @property
    @abstractmethod
    def tools(self) -> List[Tuple[str, str, Callable]]:
        pass

    @property
    @abstractmethod
    def resources(self) -> List[Tuple[str, str, str, Callable]]:
        pass

    @property
    @abstractmethod
    def prompts(self) -> List[Tuple[str, str, Callable]]:
        pass

    def _register_tools(self):
        for name, description, tool in self.tools:
            self.mcp.tool(name=name, description=description)(tool)
        logger.debug("Registered %d tool(s)", len(self.tools))

    def _register_resources(self):
        for uri, name, description, resource in self.resources:
            self.mcp.resource(uri, name=name, description=description)(resource)
        logger.debug("Registered %d resource(s)", len(self.resources))

    def _register_prompts(self):
        for name, description, prompt in self.prompts:
            self.mcp.prompt(name=name, description=description)(prompt)
        logger.debug("Registered %d prompt(s)", len(self.prompts))

    def run(self, transport: str = "stdio"):
        """Run the MCP server"""
        logger.info("Starting MCP server over %s", transport)
        self.mcp.run(transport=transport)

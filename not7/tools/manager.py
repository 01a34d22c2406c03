"""Tool Manager - routes tool calls to the provider that owns each tool."""

import asyncio
import logging
from typing import Any

from not7.errors import ProviderError, ToolError
from not7.tools.registry import ToolRegistry
from not7.tools.types import ToolDefinition, ToolProvider, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_LIST_TIMEOUT = 30.0


class ToolManager:
    """
    Owns a registry and the providers that fill it.

    Example:
        manager = ToolManager()
        await manager.register_provider(BuiltinToolProvider(serp_api_key))
        result = await manager.execute_tool("WebSearch", {"query": "python"})
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        list_timeout: float = DEFAULT_LIST_TIMEOUT,
    ):
        self.registry = registry or ToolRegistry()
        self.list_timeout = list_timeout
        self._providers: dict[str, ToolProvider] = {}
        self._lock = asyncio.Lock()

    @property
    def providers(self) -> dict[str, ToolProvider]:
        return dict(self._providers)

    async def register_provider(self, provider: ToolProvider) -> None:
        """Load a provider's tools into the registry."""
        name = provider.provider_name

        async with self._lock:
            if name in self._providers:
                raise ProviderError(name, "provider already registered")

            try:
                tools = await asyncio.wait_for(provider.list_tools(), timeout=self.list_timeout)
            except Exception as e:
                raise ProviderError(name, "failed to list tools") from e

            for tool in tools:
                try:
                    self.registry.register(tool)
                except ValueError as e:
                    raise ProviderError(name, f"failed to register tool {tool.name!r}") from e

            self._providers[name] = provider

        logger.info(f"Registered tool provider '{name}' with {len(tools)} tools")

    async def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Execute a tool by name.

        Raises:
            ToolError: if the tool or its provider is unknown, or the
                provider raised while executing
        """
        tool = self.registry.get(tool_name)
        if tool is None:
            raise ToolError(tool_name, "tool not found in registry")

        provider = self._providers.get(tool.provider)
        if provider is None:
            raise ToolError(tool_name, f"provider not found: {tool.provider}")

        try:
            return await provider.execute_tool(tool_name, arguments)
        except ToolError:
            raise
        except Exception as e:
            raise ToolError(tool_name, "execution failed") from e

    def list_tools(self) -> list[ToolDefinition]:
        return self.registry.list()

    def get_tool_context(self) -> str:
        return self.registry.get_tool_context()

    def has_tools(self) -> bool:
        return len(self.registry) > 0

    async def close(self) -> None:
        """Close every provider; failures are collected and raised together."""
        failures: list[str] = []
        async with self._lock:
            for name, provider in self._providers.items():
                try:
                    await provider.close()
                except Exception as e:
                    logger.warning(f"Failed to close tool provider '{name}': {e}")
                    failures.append(f"{name}: {e}")
            self._providers.clear()
            self.registry.clear()

        if failures:
            raise ProviderError("manager", f"errors closing providers: {failures}")

"""In-memory tool provider used across the test suite."""

import asyncio
from typing import Any

from not7.tools.manager import ToolManager
from not7.tools.types import ToolDefinition, ToolProvider, ToolResult


class FakeToolProvider(ToolProvider):
    """
    Serves canned results.

    ``results`` maps a tool name to a ToolResult, an exception to raise,
    or a callable taking the arguments and returning a ToolResult.
    """

    def __init__(
        self,
        name: str = "fake",
        results: dict[str, Any] | None = None,
        delay: float = 0.0,
    ):
        self._name = name
        self.results = results or {}
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return self._name

    async def initialize(self, config: dict[str, str] | None = None) -> None:
        pass

    async def list_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name=tool_name,
                description=f"{tool_name} tool",
                input_schema={
                    "type": "object",
                    "properties": {"query": {"type": "string", "description": "Query"}},
                    "required": ["query"],
                },
                provider=self._name,
            )
            for tool_name in self.results
        ]

    async def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        self.calls.append((tool_name, arguments))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.results[tool_name]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(arguments)
        return outcome

    async def close(self) -> None:
        self.closed = True


def fake_tool_factory(provider: FakeToolProvider, created: list[str] | None = None):
    """A tool_manager_factory that always registers ``provider``."""

    async def factory(provider_id, config):
        if created is not None:
            created.append(provider_id)
        manager = ToolManager()
        await manager.register_provider(provider)
        return manager

    return factory

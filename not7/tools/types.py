"""Tool contracts shared by providers, the manager and the ReAct loop."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolDefinition:
    """A tool's machine-readable contract."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)
    provider: str = ""


@dataclass
class ToolResult:
    """Outcome of one tool invocation."""

    success: bool
    output: Any = None
    error: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCall:
    """A tool invocation request parsed out of a model response."""

    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


def format_tool_output(output: Any) -> str:
    """Render a tool output as text: strings as-is, everything else as JSON."""
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(output)


class ToolProvider(ABC):
    """
    A backend exposing a catalog of callable tools.

    Providers report tool-level failures (bad arguments, HTTP errors) as
    ``ToolResult(success=False)`` and reserve exceptions for failures of
    the provider itself.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Identifier stored in each ToolDefinition.provider."""

    @abstractmethod
    async def initialize(self, config: dict[str, str] | None = None) -> None:
        """Apply configuration overrides and check required settings."""

    @abstractmethod
    async def list_tools(self) -> list[ToolDefinition]:
        """Return every tool this provider exposes."""

    @abstractmethod
    async def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run a tool by name."""

    async def close(self) -> None:
        """Release resources held by the provider."""

"""
Tool Registry - name-indexed store of tool definitions.

Holds no business logic: the manager decides which provider runs a tool,
the registry only remembers what exists and renders it for prompts.
"""

import logging
import threading
from typing import Any

from not7.tools.types import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Thread-safe mapping of tool name to ToolDefinition."""

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}
        self._lock = threading.RLock()

    def register(self, tool: ToolDefinition) -> None:
        """Add or replace a tool definition."""
        if not tool.name:
            raise ValueError("tool name cannot be empty")
        with self._lock:
            if tool.name in self._tools:
                logger.debug(f"Replacing tool definition '{tool.name}'")
            self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        with self._lock:
            return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        with self._lock:
            return name in self._tools

    def list(self) -> list[ToolDefinition]:
        """All tools, sorted by name."""
        with self._lock:
            return sorted(self._tools.values(), key=lambda t: t.name)

    def clear(self) -> None:
        with self._lock:
            self._tools.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def get_tool_context(self) -> str:
        """Render the registered tools as a listing for prompt injection."""
        tools = self.list()
        if not tools:
            return "No tools available."

        lines = ["Available Tools:", ""]
        for i, tool in enumerate(tools, start=1):
            lines.append(f"{i}. {tool.name}")
            lines.append(f"   Description: {tool.description}")
            params = _describe_parameters(tool.input_schema)
            if params:
                lines.append("   Parameters:")
                lines.extend(f"     - {param}" for param in params)
            lines.append("")

        return "\n".join(lines) + "\n"


def _describe_parameters(schema: dict[str, Any]) -> list[str]:
    """One line per parameter of a JSON-schema-like input schema."""
    if not schema:
        return []

    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return [f"{key}: {value}" for key, value in schema.items()]

    required = set(schema.get("required") or [])
    params = []
    for name, prop in properties.items():
        prop = prop if isinstance(prop, dict) else {}
        qualifiers = [str(prop["type"])] if prop.get("type") else []
        if name in required:
            qualifiers.append("required")
        label = f"{name} ({', '.join(qualifiers)})" if qualifiers else name
        description = prop.get("description", "")
        params.append(f"{label}: {description}" if description else label)
    return params

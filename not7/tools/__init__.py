"""
Tools - pluggable providers behind a single manager.

    manager = await create_tool_manager("builtin", config)
    result = await manager.execute_tool("WebSearch", {"query": "python"})
"""

from not7.tools.arcade import ArcadeClient, ArcadeToolProvider
from not7.tools.builtin import BuiltinToolProvider
from not7.tools.factory import create_tool_manager, resolve_arcade_toolkit
from not7.tools.manager import ToolManager
from not7.tools.registry import ToolRegistry
from not7.tools.types import (
    ToolCall,
    ToolDefinition,
    ToolProvider,
    ToolResult,
    format_tool_output,
)

__all__ = [
    "ArcadeClient",
    "ArcadeToolProvider",
    "BuiltinToolProvider",
    "ToolCall",
    "ToolDefinition",
    "ToolManager",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
    "create_tool_manager",
    "format_tool_output",
    "resolve_arcade_toolkit",
]

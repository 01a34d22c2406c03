"""Agent spec model, graph executor and ReAct loop."""

from not7.graph.executor import GraphExecutor
from not7.graph.react import ReActLoop, ReActOutcome, parse_tool_call
from not7.graph.spec import (
    END,
    START,
    AgentSpec,
    Config,
    LLMConfig,
    Metadata,
    Node,
    NodeResult,
    NodeType,
    ReActTrace,
    Route,
    ThinkingStep,
    ToolCallTrace,
    ToolsConfig,
    load_spec,
    parse_spec,
    save_spec,
)

__all__ = [
    "END",
    "START",
    "AgentSpec",
    "Config",
    "GraphExecutor",
    "LLMConfig",
    "Metadata",
    "Node",
    "NodeResult",
    "NodeType",
    "ReActLoop",
    "ReActOutcome",
    "ReActTrace",
    "Route",
    "ThinkingStep",
    "ToolCallTrace",
    "ToolsConfig",
    "load_spec",
    "parse_spec",
    "parse_tool_call",
    "save_spec",
]

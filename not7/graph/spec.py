"""
Agent specification: the declarative node graph an execution interprets.

A spec is a goal, an ordered list of nodes and an ordered route table.
Routes connect node ids and the virtual ``start``/``end`` sentinels:

    {
      "version": "1.0",
      "goal": "Summarize a web page",
      "nodes": [{"id": "fetch", "type": "tool", "tool_name": "WebFetch", ...},
                {"id": "summarize", "type": "llm", "prompt": "Summarize:"}],
      "routes": [{"from": "start", "to": "fetch"},
                 {"from": "fetch", "to": "summarize"},
                 {"from": "summarize", "to": "end"}]
    }

The ``metadata`` block is filled in by the executor during a run.
"""

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from not7.errors import SpecValidationError

START = "start"
END = "end"

INPUT_PLACEHOLDER = "{{input}}"


class NodeType(StrEnum):
    """The closed set of executable node kinds."""

    LLM = "llm"
    REACT = "react"
    TOOL = "tool"


class LLMConfig(BaseModel):
    """Reasoning backend settings. Zero/empty values mean "use the default"."""

    provider: str = ""
    model: str = ""
    temperature: float = 0.0
    max_tokens: int = 0

    model_config = {"extra": "allow"}


class Constraints(BaseModel):
    """Execution limits. Recorded with the spec, not enforced by the executor."""

    max_time: str = ""
    max_cost: float = 0.0
    max_retries: int = 0


class ToolsConfig(BaseModel):
    provider: str = Field(description="Tool provider id: builtin, arcade or arcade-<toolkit>")
    enabled: list[str] = Field(default_factory=list)


class Config(BaseModel):
    llm: LLMConfig | None = None
    constraints: Constraints | None = None
    tools: ToolsConfig | None = None

    model_config = {"extra": "allow"}


class Node(BaseModel):
    """A single step of the graph."""

    id: str
    name: str = ""
    type: str = Field(default="", description="llm, react or tool")
    prompt: str = ""
    input_format: str = ""
    output_format: str = ""
    llm: LLMConfig | None = None
    config: Config | None = Field(default=None, description="Node-level override of spec config")

    # ReAct
    react_goal: str = ""
    max_iterations: int = 0
    thinking_prompt: str = ""

    # Tools
    tools_enabled: bool = False
    available_tools: list[str] = Field(default_factory=list)
    tool_name: str = ""
    tool_arguments: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @property
    def display_name(self) -> str:
        return self.name or self.id


class Condition(BaseModel):
    type: str = ""
    expression: str = ""


class Route(BaseModel):
    """
    Directed edge between two node ids (or the start/end sentinels).

    ``condition`` and ``parallel`` are kept with the spec but not
    interpreted: every route leaving a node is followed in order.
    """

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    condition: Condition | None = None
    parallel: bool = False

    model_config = {"populate_by_name": True}


class ToolCallTrace(BaseModel):
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: str = ""
    duration_ms: int = 0


class ThinkingStep(BaseModel):
    iteration: int
    thought: str
    duration_ms: int = 0
    cost: float = 0.0
    tool_calls: list[ToolCallTrace] = Field(default_factory=list)


class ReActTrace(BaseModel):
    iterations: int = 0
    thinking_steps: list[ThinkingStep] = Field(default_factory=list)
    total_thinking_time_ms: int = 0
    iterations_cost: float = 0.0


class NodeResult(BaseModel):
    node_id: str
    status: str = "running"  # running, success, failed
    execution_time_ms: int = 0
    cost: float = 0.0
    input: Any = None
    output: Any = None
    error: str = ""
    react_trace: ReActTrace | None = None


class Metadata(BaseModel):
    created_at: str = ""
    executed_at: str = ""
    execution_time_ms: int = 0
    total_cost: float = 0.0
    status: str = ""  # running, success, failed, cancelled
    node_results: list[NodeResult] = Field(default_factory=list)


class AgentSpec(BaseModel):
    """Complete agent definition."""

    id: str = ""
    version: str = ""
    goal: str = ""
    config: Config | None = None
    nodes: list[Node] = Field(default_factory=list)
    routes: list[Route] = Field(default_factory=list)
    metadata: Metadata | None = None

    model_config = {"extra": "allow"}

    def get_node(self, node_id: str) -> Node | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def targets_from(self, source: str) -> list[str]:
        """Targets of every route leaving ``source``, in declaration order."""
        return [route.target for route in self.routes if route.source == source]

    def validate(self) -> list[str]:
        """Validate the spec structure. Returns a list of problems (empty if valid)."""
        errors = []

        if not self.version:
            errors.append("version is required")
        if not self.goal:
            errors.append("goal is required")
        if not self.nodes:
            errors.append("at least one node is required")
        if not self.routes:
            errors.append("at least one route is required")

        node_ids: set[str] = set()
        valid_types = {t.value for t in NodeType}
        for node in self.nodes:
            if not node.id:
                errors.append("node ID is required")
                continue
            if node.id in node_ids:
                errors.append(f"duplicate node ID: {node.id}")
            node_ids.add(node.id)

            if not node.type:
                errors.append(f"node type is required for node {node.id}")
            elif node.type not in valid_types:
                errors.append(
                    f"unsupported node type '{node.type}' for node {node.id}. "
                    f"Valid: {sorted(valid_types)}"
                )
            elif node.type == NodeType.LLM and not node.prompt:
                errors.append(f"prompt is required for LLM node {node.id}")

            if node.max_iterations < 0:
                errors.append(f"max_iterations must not be negative for node {node.id}")

        for route in self.routes:
            if not route.source or not route.target:
                errors.append("route must have both 'from' and 'to'")
                continue
            if route.source != START and route.source not in node_ids:
                errors.append(f"route references unknown node: {route.source}")
            if route.target != END and route.target not in node_ids:
                errors.append(f"route references unknown node: {route.target}")

        if self.routes and not self.targets_from(START):
            errors.append(f"no route from '{START}' found")

        return errors

    def to_json(self) -> str:
        """Serialize with 2-space indentation, omitting unset optional fields."""
        return self.model_dump_json(
            indent=2,
            by_alias=True,
            exclude_none=True,
            exclude_defaults=True,
        )


def parse_spec(text: str | bytes) -> AgentSpec:
    """Parse and validate a spec from JSON text."""
    try:
        spec = AgentSpec.model_validate_json(text)
    except ValidationError as e:
        raise SpecValidationError(f"failed to parse spec JSON: {e}") from e

    errors = spec.validate()
    if errors:
        raise SpecValidationError("invalid spec", errors)
    return spec


def load_spec(path: str | Path) -> AgentSpec:
    """Load, parse and validate a spec file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise SpecValidationError(f"failed to read spec file: {e}") from e
    return parse_spec(text)


def save_spec(spec: AgentSpec, path: str | Path) -> None:
    """Write a spec file with stable 2-space indentation."""
    Path(path).write_text(spec.to_json(), encoding="utf-8")

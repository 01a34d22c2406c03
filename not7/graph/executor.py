"""
Graph Executor - walks an agent spec's route table.

Execution starts at every route leaving the virtual ``start`` node and
follows routes depth-first in declaration order, threading each node's
output into the next node's input, until a route reaches ``end`` or a
node has no outgoing routes.

Node types are dispatched by a closed if/elif over NodeType:
- llm: a single backend call
- react: the ReAct loop, optionally with tools
- tool: one direct tool call
"""

import asyncio
import copy
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from not7.config import Not7Config
from not7.errors import (
    NoEntryPointError,
    NodeExecutionError,
    ReActIterationError,
    RoutingError,
    ToolError,
)
from not7.graph.react import ReActLoop
from not7.graph.spec import (
    END,
    INPUT_PLACEHOLDER,
    START,
    AgentSpec,
    LLMConfig,
    Metadata,
    Node,
    NodeResult,
    NodeType,
    ReActTrace,
)
from not7.llm.provider import LLMProvider
from not7.observability import set_trace_context
from not7.tools.factory import create_tool_manager
from not7.tools.manager import ToolManager
from not7.tools.types import format_tool_output

LLM_NODE_DEFAULT_MODEL = "gpt-3.5-turbo"
LLM_NODE_DEFAULT_TEMPERATURE = 0.7
TOOL_NODE_TIMEOUT = 60.0
DEFAULT_MAX_STEPS = 100

ToolManagerFactory = Callable[[str, Not7Config], Awaitable[ToolManager]]


class GraphExecutor:
    """
    Executes one agent spec once.

    Example:
        executor = GraphExecutor(spec, llm=LiteLLMProvider(api_key), config=config)
        try:
            output = await executor.execute("some input")
        finally:
            await executor.close()
        print(executor.metadata.total_cost)
    """

    def __init__(
        self,
        spec: AgentSpec,
        llm: LLMProvider,
        config: Not7Config | None = None,
        tool_manager_factory: ToolManagerFactory | None = None,
        max_steps: int = DEFAULT_MAX_STEPS,
    ):
        """
        Args:
            spec: The agent spec to run; never mutated
            llm: Reasoning backend for llm and react nodes
            config: Credentials and defaults; tool providers read theirs from here
            tool_manager_factory: Builds a ToolManager for a provider id
            max_steps: Upper bound on node executions per run
        """
        self.spec = spec
        self.llm = llm
        self.config = config or Not7Config()
        self.tool_manager_factory = tool_manager_factory or create_tool_manager
        self.max_steps = max_steps
        self.logger = logging.getLogger(__name__)

        self.metadata = Metadata(created_at=_now())
        self._results: dict[str, NodeResult] = {}
        self._tool_managers: dict[str, ToolManager] = {}
        self._steps = 0

    @property
    def node_results(self) -> list[NodeResult]:
        return list(self._results.values())

    @property
    def total_cost(self) -> float:
        return sum(result.cost for result in self._results.values())

    async def execute(self, input_data: str = "") -> str:
        """
        Run the spec from ``start`` and return the final output.

        Raises:
            NoEntryPointError: no route leaves ``start``
            RoutingError: a route targets an unknown node, or the step bound
                was exceeded
            NodeExecutionError: a node failed
            ProviderError: the spec-level tool provider could not be set up
        """
        if self.spec.id:
            set_trace_context(agent_id=self.spec.id)
        start_time = time.monotonic()
        self.metadata.executed_at = _now()
        self.metadata.status = "running"

        self.logger.info(f"🚀 Starting agent: {self.spec.goal}")
        self.logger.info(f"   Version: {self.spec.version}")

        status = "failed"
        try:
            entry_targets = self.spec.targets_from(START)
            if not entry_targets:
                raise NoEntryPointError(f"no routes from '{START}' found")

            if self.spec.config and self.spec.config.tools:
                await self._get_tool_manager(self.spec.config.tools.provider)

            output = await self._follow(entry_targets, input_data)
            status = "success"
        except asyncio.CancelledError:
            status = "cancelled"
            self.logger.warning("⏹ Execution cancelled")
            raise
        except Exception as e:
            self.logger.error(f"✗ Execution failed: {e}")
            raise
        finally:
            self._finalize(status, start_time)

        self.logger.info(f"✓ Execution completed in {self.metadata.execution_time_ms}ms")
        self.logger.info(f"   Total cost: ${self.metadata.total_cost:.4f}")
        return output

    def _finalize(self, status: str, start_time: float) -> None:
        self.metadata.execution_time_ms = int((time.monotonic() - start_time) * 1000)
        self.metadata.total_cost = self.total_cost
        self.metadata.node_results = self.node_results
        self.metadata.status = status

    async def _follow(self, targets: list[str], input_data: str) -> str:
        """Execute each target in order, recursing into its own routes."""
        current = input_data
        for target in targets:
            if target == END:
                return current

            current = await self._execute_node(target, current)

            next_targets = self.spec.targets_from(target)
            if next_targets:
                current = await self._follow(next_targets, current)
        return current

    async def _execute_node(self, node_id: str, input_data: str) -> str:
        node = self.spec.get_node(node_id)
        if node is None:
            raise RoutingError(f"node not found: {node_id}")

        self._steps += 1
        if self._steps > self.max_steps:
            raise RoutingError(
                f"exceeded {self.max_steps} node executions; the route table may contain a cycle"
            )

        set_trace_context(node_id=node_id)
        self.logger.info(f"\n▶ Step {self._steps}: {node.display_name} ({node.type})")

        result = NodeResult(node_id=node_id, input=input_data, status="running")
        self._results[node_id] = result
        start = time.monotonic()

        try:
            output, cost, react_trace = await self._dispatch(node, input_data)
        except asyncio.CancelledError:
            result.status = "failed"
            result.error = "cancelled"
            result.execution_time_ms = int((time.monotonic() - start) * 1000)
            raise
        except Exception as e:
            result.status = "failed"
            result.error = str(e)
            result.execution_time_ms = int((time.monotonic() - start) * 1000)
            if isinstance(e, ReActIterationError):
                result.cost = e.cost
                result.react_trace = e.trace
            self.logger.error(f"   ✗ Node {node_id} failed: {e}")
            raise NodeExecutionError(node_id, e) from e

        result.status = "success"
        result.output = output
        result.cost = cost
        result.react_trace = react_trace
        result.execution_time_ms = int((time.monotonic() - start) * 1000)

        self.logger.info(f"   ✓ Completed in {result.execution_time_ms}ms (cost: ${cost:.4f})")
        return output

    async def _dispatch(
        self, node: Node, input_data: str
    ) -> tuple[str, float, ReActTrace | None]:
        if node.type == NodeType.LLM:
            output, cost = await self._execute_llm_node(node, input_data)
            return output, cost, None
        elif node.type == NodeType.REACT:
            return await self._execute_react_node(node, input_data)
        elif node.type == NodeType.TOOL:
            return await self._execute_tool_node(node, input_data), 0.0, None
        else:
            raise ValueError(f"unsupported node type: {node.type}")

    def _resolve_llm_config(self, node: Node) -> LLMConfig:
        if node.llm is not None:
            return node.llm
        if self.spec.config and self.spec.config.llm is not None:
            return self.spec.config.llm
        return LLMConfig()

    async def _execute_llm_node(self, node: Node, input_data: str) -> tuple[str, float]:
        base = self._resolve_llm_config(node)
        llm_config = base.model_copy(
            update={
                "model": base.model or LLM_NODE_DEFAULT_MODEL,
                "temperature": base.temperature or LLM_NODE_DEFAULT_TEMPERATURE,
            }
        )
        response = await self.llm.complete(node.prompt, input_data, llm_config)
        return response.content, response.cost

    async def _execute_react_node(
        self, node: Node, input_data: str
    ) -> tuple[str, float, ReActTrace]:
        base = self._resolve_llm_config(node)
        defaults = self.config.llm
        llm_config = base.model_copy(
            update={
                "model": base.model or defaults.default_model,
                "temperature": base.temperature or defaults.default_temperature,
                "max_tokens": base.max_tokens or defaults.default_max_tokens,
            }
        )

        tool_manager = None
        if node.tools_enabled:
            manager = await self._tool_manager_for_node(node)
            if manager is not None and manager.has_tools():
                tool_manager = manager

        loop = ReActLoop(self.llm, llm_config, tool_manager=tool_manager)
        outcome = await loop.run(node, input_data)
        return outcome.answer, outcome.cost, outcome.trace

    async def _execute_tool_node(self, node: Node, input_data: str) -> str:
        tool_manager = await self._tool_manager_for_node(node)
        if tool_manager is None:
            raise ToolError(node.tool_name, "tool manager not initialized - tools not configured")
        if not node.tool_name:
            raise ToolError("", "tool_name is required for tool nodes")

        arguments = _substitute_input(node.tool_arguments, input_data)
        self.logger.info(f"   Executing tool: {node.tool_name}")

        try:
            result = await asyncio.wait_for(
                tool_manager.execute_tool(node.tool_name, arguments),
                timeout=TOOL_NODE_TIMEOUT,
            )
        except TimeoutError as e:
            raise ToolError(node.tool_name, f"timed out after {TOOL_NODE_TIMEOUT:g}s") from e

        if not result.success:
            raise ToolError(node.tool_name, f"tool returned error: {result.error}")
        return format_tool_output(result.output)

    async def _tool_manager_for_node(self, node: Node) -> ToolManager | None:
        """Node-level tool config wins over the spec-level one; None if neither is set."""
        if node.config and node.config.tools:
            return await self._get_tool_manager(node.config.tools.provider)
        if self.spec.config and self.spec.config.tools:
            return await self._get_tool_manager(self.spec.config.tools.provider)
        return None

    async def _get_tool_manager(self, provider_id: str) -> ToolManager:
        manager = self._tool_managers.get(provider_id)
        if manager is None:
            manager = await self.tool_manager_factory(provider_id, self.config)
            self._tool_managers[provider_id] = manager
            self.logger.info(
                f"✓ Tool provider '{provider_id}' ready with {len(manager.list_tools())} tools"
            )
        return manager

    async def close(self) -> None:
        """Close every tool manager created during this run."""
        managers = list(self._tool_managers.items())
        self._tool_managers.clear()
        for provider_id, manager in managers:
            try:
                await manager.close()
            except Exception as e:
                self.logger.warning(f"Failed to close tool manager '{provider_id}': {e}")


def _substitute_input(arguments: dict[str, Any], input_data: str) -> dict[str, Any]:
    """Copy of ``arguments`` with every ``{{input}}`` value replaced by the input."""
    resolved = copy.deepcopy(arguments)
    for key, value in resolved.items():
        if value == INPUT_PLACEHOLDER:
            resolved[key] = input_data
    return resolved


def _now() -> str:
    return datetime.now(UTC).isoformat()

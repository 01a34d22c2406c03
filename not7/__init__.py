"""
not7 - declarative agent execution engine.

An agent is a JSON spec: a goal, a list of nodes (llm, react, tool) and a
route table. The engine walks the routes, runs ReAct reasoning with
optional tool calls, and persists every execution with its trace.

    from not7 import ExecutionManager, ExecutionStore, Not7Config, load_spec

    config = Not7Config.load()
    manager = ExecutionManager(ExecutionStore(config.executions_dir), config)
    execution = await manager.execute(load_spec("agent.json"))
"""

from not7.config import Not7Config
from not7.graph.executor import GraphExecutor
from not7.graph.spec import AgentSpec, load_spec, parse_spec, save_spec
from not7.runtime.execution_manager import ExecutionManager, ExecutionOptions
from not7.schemas.execution import Execution, ExecutionStatus
from not7.storage.execution_store import ExecutionStore

__version__ = "0.1.0"

__all__ = [
    "AgentSpec",
    "Execution",
    "ExecutionManager",
    "ExecutionOptions",
    "ExecutionStatus",
    "ExecutionStore",
    "GraphExecutor",
    "Not7Config",
    "load_spec",
    "parse_spec",
    "save_spec",
]

"""Execution runtime: concurrent executions with durable state."""

from not7.runtime.execution_manager import ExecutionManager, ExecutionOptions

__all__ = ["ExecutionManager", "ExecutionOptions"]

"""Schema definitions for executions."""

from not7.schemas.execution import (
    Execution,
    ExecutionInfo,
    ExecutionResult,
    ExecutionStatus,
    generate_execution_id,
)

__all__ = [
    "Execution",
    "ExecutionInfo",
    "ExecutionResult",
    "ExecutionStatus",
    "generate_execution_id",
]

"""
Execution Schema - one runtime instance of an agent spec.

Lifecycle::

    pending ──mark_started──▶ running ──┬─ mark_completed ─▶ completed
                                        ├─ mark_failed ────▶ failed
                                        └─ mark_cancelled ─▶ cancelled
"""

import time
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from not7.graph.spec import AgentSpec, Metadata


class ExecutionStatus(StrEnum):
    """Status of an execution."""

    PENDING = "pending"  # Persisted, not started
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"  # Cancelled by a caller or a timeout

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionStatus.COMPLETED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
        )


class ExecutionResult(BaseModel):
    """Output and accounting of a finished execution."""

    output: str = ""
    error: str = ""
    duration_ms: int = 0
    total_cost: float = 0.0
    metadata: Metadata | None = None


class ExecutionInfo(BaseModel):
    """Lightweight summary used for listings."""

    id: str
    goal: str = ""
    status: ExecutionStatus
    created_at: datetime
    duration_ms: int = 0
    total_cost: float = 0.0


def generate_execution_id(spec: AgentSpec) -> str:
    """``<spec id>-<ns timestamp>``, or ``exec-<ns timestamp>`` for anonymous specs."""
    timestamp = time.time_ns()
    if spec.id:
        return f"{spec.id}-{timestamp}"
    return f"exec-{timestamp}"


def _now() -> datetime:
    return datetime.now(UTC)


class Execution(BaseModel):
    """A single execution of a spec and its outcome."""

    id: str
    spec: AgentSpec
    status: ExecutionStatus = ExecutionStatus.PENDING
    result: ExecutionResult | None = None
    created_at: datetime = Field(default_factory=_now)
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @classmethod
    def create(cls, spec: AgentSpec) -> "Execution":
        return cls(id=generate_execution_id(spec), spec=spec)

    def mark_started(self) -> None:
        self.started_at = _now()
        self.status = ExecutionStatus.RUNNING

    def mark_completed(self, result: ExecutionResult) -> None:
        self.ended_at = _now()
        self.status = ExecutionStatus.COMPLETED
        self.result = result

    def mark_failed(
        self,
        error: BaseException | str,
        duration_ms: int = 0,
        total_cost: float = 0.0,
        metadata: Metadata | None = None,
    ) -> None:
        self.ended_at = _now()
        self.status = ExecutionStatus.FAILED
        self.result = ExecutionResult(
            error=str(error),
            duration_ms=duration_ms,
            total_cost=total_cost,
            metadata=metadata,
        )

    def mark_cancelled(
        self,
        reason: str = "cancelled",
        duration_ms: int = 0,
        total_cost: float = 0.0,
        metadata: Metadata | None = None,
    ) -> None:
        self.ended_at = _now()
        self.status = ExecutionStatus.CANCELLED
        self.result = ExecutionResult(
            error=reason,
            duration_ms=duration_ms,
            total_cost=total_cost,
            metadata=metadata,
        )

    def info(self) -> ExecutionInfo:
        """Summary of this execution."""
        return ExecutionInfo(
            id=self.id,
            goal=self.spec.goal,
            status=self.status,
            created_at=self.created_at,
            duration_ms=self.result.duration_ms if self.result else 0,
            total_cost=self.result.total_cost if self.result else 0.0,
        )

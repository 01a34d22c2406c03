"""
Execution Store - one directory per execution.

  {base_path}/{execution_id}/
    ├── trace.json    # spec fields + execution metadata
    └── output.txt    # final textual output, when non-empty

trace.json flattens the spec (without its own metadata block) and adds a
``metadata`` object describing the execution::

    {
      "id": "research", "version": "1.0", "goal": "...", "nodes": [...], "routes": [...],
      "metadata": {
        "execution_id": "research-1718000000000000000",
        "status": "completed",
        "created_at": "...", "started_at": "...", "ended_at": "...",
        "duration_ms": 1234, "total_cost": 0.0123,
        "executed_at": "...", "execution_time_ms": 1200,
        "node_results": [...]
      }
    }

All writes go through atomic_write, so readers never see a partial file.
"""

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from not7.errors import ExecutionNotFoundError, StorageError
from not7.graph.spec import Metadata
from not7.schemas.execution import Execution, ExecutionInfo
from not7.utils.io import atomic_write

logger = logging.getLogger(__name__)

TRACE_FILE = "trace.json"
OUTPUT_FILE = "output.txt"


def build_trace(execution: Execution) -> dict[str, Any]:
    """The trace.json document for an execution."""
    trace = execution.spec.model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
        exclude_defaults=True,
        exclude={"metadata"},
    )

    metadata: dict[str, Any] = {
        "execution_id": execution.id,
        "status": execution.status.value,
        "created_at": execution.created_at.isoformat(),
    }
    if execution.started_at:
        metadata["started_at"] = execution.started_at.isoformat()
    if execution.ended_at:
        metadata["ended_at"] = execution.ended_at.isoformat()

    result = execution.result
    if result is not None:
        metadata["duration_ms"] = result.duration_ms
        metadata["total_cost"] = result.total_cost
        if result.error:
            metadata["error"] = result.error
        if result.metadata is not None:
            metadata["run_status"] = result.metadata.status
            metadata["run_created_at"] = result.metadata.created_at
            metadata["executed_at"] = result.metadata.executed_at
            metadata["execution_time_ms"] = result.metadata.execution_time_ms
            metadata["node_results"] = [
                node_result.model_dump(mode="json", exclude_none=True)
                for node_result in result.metadata.node_results
            ]

    trace["metadata"] = metadata
    return trace


def parse_trace(trace: dict[str, Any], execution_id: str) -> Execution:
    """Rebuild an Execution from a trace.json document."""
    metadata = trace.get("metadata")
    if not isinstance(metadata, dict):
        raise StorageError(f"missing or invalid metadata section for {execution_id}")

    spec_data = {key: value for key, value in trace.items() if key != "metadata"}

    result = None
    if "duration_ms" in metadata:
        result = {
            "duration_ms": metadata.get("duration_ms", 0),
            "total_cost": metadata.get("total_cost", 0.0),
            "error": metadata.get("error", ""),
        }
        if "node_results" in metadata or "executed_at" in metadata:
            result["metadata"] = Metadata(
                created_at=metadata.get("run_created_at", ""),
                executed_at=metadata.get("executed_at", ""),
                execution_time_ms=metadata.get("execution_time_ms", 0),
                total_cost=metadata.get("total_cost", 0.0),
                status=metadata.get("run_status", ""),
                node_results=metadata.get("node_results") or [],
            )

    try:
        return Execution.model_validate(
            {
                "id": execution_id,
                "spec": spec_data,
                "status": metadata.get("status"),
                "created_at": metadata.get("created_at"),
                "started_at": metadata.get("started_at"),
                "ended_at": metadata.get("ended_at"),
                "result": result,
            }
        )
    except ValidationError as e:
        raise StorageError(f"invalid trace for execution {execution_id}: {e}") from e


class ExecutionStore:
    """
    File-backed execution storage.

    Example:
        store = ExecutionStore(Path("./executions"))
        await store.save(execution)
        loaded = await store.load(execution.id)
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def get_execution_path(self, execution_id: str) -> Path:
        # ids name a single directory directly under base_path
        if execution_id in ("", ".", "..") or "/" in execution_id or "\\" in execution_id:
            raise ExecutionNotFoundError(execution_id)
        return self.base_path / execution_id

    def get_trace_path(self, execution_id: str) -> Path:
        return self.get_execution_path(execution_id) / TRACE_FILE

    def get_output_path(self, execution_id: str) -> Path:
        return self.get_execution_path(execution_id) / OUTPUT_FILE

    async def save(self, execution: Execution) -> None:
        """
        Atomically write trace.json for an execution.

        Raises:
            StorageError: the directory or file could not be written
        """
        trace_path = self.get_trace_path(execution.id)
        content = json.dumps(build_trace(execution), indent=2, ensure_ascii=False)

        def _write():
            trace_path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(trace_path) as f:
                f.write(content)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"failed to save execution {execution.id}") from e
        logger.debug(f"Wrote trace.json for execution {execution.id}")

    async def load(self, execution_id: str) -> Execution:
        """
        Load an execution, including its output.txt when present.

        Raises:
            ExecutionNotFoundError: no trace.json for this id
            StorageError: the trace exists but cannot be read or parsed
        """
        trace_path = self.get_trace_path(execution_id)
        output_path = self.get_output_path(execution_id)

        def _read():
            if not trace_path.exists():
                return None, None
            trace_text = trace_path.read_text(encoding="utf-8")
            output = output_path.read_text(encoding="utf-8") if output_path.exists() else None
            return trace_text, output

        try:
            trace_text, output = await asyncio.to_thread(_read)
        except OSError as e:
            raise StorageError(f"failed to read execution {execution_id}") from e

        if trace_text is None:
            raise ExecutionNotFoundError(execution_id)

        try:
            trace = json.loads(trace_text)
        except json.JSONDecodeError as e:
            raise StorageError(f"failed to decode trace for execution {execution_id}") from e
        if not isinstance(trace, dict):
            raise StorageError(f"trace for execution {execution_id} is not a JSON object")

        execution = parse_trace(trace, execution_id)
        if output is not None and execution.result is not None:
            execution.result.output = output
        return execution

    async def list(self) -> list[ExecutionInfo]:
        """Summaries of every readable execution, newest first."""

        def _scan():
            infos: list[ExecutionInfo] = []
            if not self.base_path.exists():
                return infos

            for execution_dir in self.base_path.iterdir():
                if not execution_dir.is_dir():
                    continue

                trace_path = execution_dir / TRACE_FILE
                if not trace_path.exists():
                    continue

                try:
                    trace = json.loads(trace_path.read_text(encoding="utf-8"))
                    execution = parse_trace(trace, execution_dir.name)
                except Exception as e:
                    logger.warning(f"Failed to load {trace_path}: {e}")
                    continue

                infos.append(execution.info())

            infos.sort(key=lambda info: info.created_at, reverse=True)
            return infos

        return await asyncio.to_thread(_scan)

    async def save_output(self, execution_id: str, output: str) -> None:
        """Atomically write output.txt."""
        output_path = self.get_output_path(execution_id)

        def _write():
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(output_path) as f:
                f.write(output)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"failed to save output for execution {execution_id}") from e

    async def delete(self, execution_id: str) -> None:
        """
        Delete an execution directory and everything in it.

        Raises:
            ExecutionNotFoundError: nothing stored under this id
        """
        execution_path = self.get_execution_path(execution_id)

        def _delete():
            if not execution_path.is_dir():
                return False
            shutil.rmtree(execution_path)
            return True

        try:
            deleted = await asyncio.to_thread(_delete)
        except OSError as e:
            raise StorageError(f"failed to delete execution {execution_id}") from e

        if not deleted:
            raise ExecutionNotFoundError(execution_id)
        logger.info(f"Deleted execution {execution_id}")

    async def exists(self, execution_id: str) -> bool:
        trace_path = self.get_trace_path(execution_id)
        return await asyncio.to_thread(trace_path.exists)

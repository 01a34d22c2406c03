"""
Execution Manager - runs agent specs and owns their lifecycle.

Each execution:
- is validated and persisted as ``pending`` before anything runs
- runs its GraphExecutor in its own asyncio task, so timeouts and
  cancellation stop the executor at its next await
- is persisted again when it starts and when it finishes
- logs into its own file under ``log_dir``

Executions are independent; the only shared state is the map of active
executions, guarded by an asyncio.Lock.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from not7.config import Not7Config
from not7.errors import (
    ExecutionAlreadyRunningError,
    ExecutionCancelledError,
    ExecutionError,
    SpecValidationError,
    StorageError,
    StorageUnavailableError,
)
from not7.graph.executor import GraphExecutor, ToolManagerFactory
from not7.graph.spec import AgentSpec
from not7.llm.litellm import LiteLLMProvider
from not7.llm.provider import LLMProvider
from not7.observability import (
    clear_trace_context,
    execution_log_file,
    get_trace_context,
    set_trace_context,
)
from not7.schemas.execution import Execution, ExecutionInfo, ExecutionResult, ExecutionStatus
from not7.storage.execution_store import ExecutionStore

logger = logging.getLogger(__name__)


@dataclass
class ExecutionOptions:
    """How an execution should be run."""

    async_: bool = False  # Return immediately and run in the background
    timeout: float | None = None  # Seconds; None or 0 means no deadline
    input_data: str = ""


class ExecutionManager:
    """
    Orchestrates agent executions.

    Example:
        config = Not7Config.load()
        manager = ExecutionManager(ExecutionStore(config.executions_dir), config)

        # Blocking run
        execution = await manager.execute(spec)
        print(execution.result.output)

        # Background run
        execution = await manager.execute(spec, ExecutionOptions(async_=True))
        finished = await manager.wait_for_completion(execution.id)
    """

    def __init__(
        self,
        store: ExecutionStore,
        config: Not7Config | None = None,
        llm: LLMProvider | None = None,
        log_dir: Path | None = None,
        tool_manager_factory: ToolManagerFactory | None = None,
    ):
        """
        Args:
            store: Where executions are persisted
            config: Credentials and defaults handed to every executor
            llm: Reasoning backend; defaults to LiteLLM with the configured key
            log_dir: Directory for per-execution log files (default: config.log_dir)
            tool_manager_factory: Override for tool-manager creation
        """
        self.store = store
        self.config = config or Not7Config()
        self.llm = llm or LiteLLMProvider(
            api_key=self.config.llm.api_key,
            api_base=self.config.llm.api_base,
        )
        self.log_dir = Path(log_dir) if log_dir else self.config.log_dir
        self.tool_manager_factory = tool_manager_factory

        # Execution tracking
        self._active_executions: dict[str, Execution] = {}
        self._execution_tasks: dict[str, asyncio.Task] = {}
        self._executor_tasks: dict[str, asyncio.Task] = {}
        self._completion_events: dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()

    async def execute(
        self,
        spec: AgentSpec,
        options: ExecutionOptions | None = None,
    ) -> Execution:
        """
        Execute a spec.

        Async executions return as soon as the initial state is persisted.
        Sync executions return the finished execution.

        Raises:
            SpecValidationError: the spec is invalid
            StorageUnavailableError: the initial state could not be persisted
            ExecutionAlreadyRunningError: the generated id is already active
            ExecutionCancelledError: a sync execution timed out or was cancelled
            Exception: whatever made a sync execution fail, after the failed
                state has been persisted
        """
        options = options or ExecutionOptions()

        errors = spec.validate()
        if errors:
            raise SpecValidationError("invalid agent specification", errors)

        execution = Execution.create(spec.model_copy(deep=True))

        # The id is claimed before the pending state is written.
        async with self._lock:
            if execution.id in self._active_executions:
                raise ExecutionAlreadyRunningError(execution.id)
            self._active_executions[execution.id] = execution
            self._completion_events[execution.id] = asyncio.Event()

        try:
            await self.store.save(execution)
        except StorageError as e:
            async with self._lock:
                self._active_executions.pop(execution.id, None)
                self._completion_events.pop(execution.id, None)
            raise StorageUnavailableError(f"storage unavailable: {e}") from e

        if options.async_:
            task = asyncio.create_task(self._run_in_background(execution, options))
            self._execution_tasks[execution.id] = task
            logger.debug(f"Queued execution {execution.id}")
            return execution

        return await self._run(execution, options)

    async def _run_in_background(self, execution: Execution, options: ExecutionOptions) -> None:
        try:
            await self._run(execution, options)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The terminal state is already persisted; pollers read it from storage.
            logger.debug(f"Background execution {execution.id} ended with: {e}")

    async def _run(self, execution: Execution, options: ExecutionOptions) -> Execution:
        """Run one registered execution to a terminal state."""
        previous_context = get_trace_context()
        set_trace_context(execution_id=execution.id)
        executor: GraphExecutor | None = None

        try:
            execution.mark_started()
            try:
                await self.store.save(execution)
            except StorageError as e:
                execution.mark_failed(e)
                raise

            with execution_log_file(self.log_dir, execution.id) as log_path:
                logger.info(f"Starting execution: {execution.spec.goal}")
                logger.info(f"Execution ID: {execution.id}")
                logger.debug(f"Logging to {log_path}")

                executor = GraphExecutor(
                    execution.spec,
                    llm=self.llm,
                    config=self.config,
                    tool_manager_factory=self.tool_manager_factory,
                )
                await self._run_executor(execution, executor, options)

            return execution

        finally:
            if executor is not None:
                await executor.close()

            async with self._lock:
                self._active_executions.pop(execution.id, None)
                self._execution_tasks.pop(execution.id, None)
                self._executor_tasks.pop(execution.id, None)
                event = self._completion_events.pop(execution.id, None)
            if event is not None:
                event.set()

            clear_trace_context()
            if previous_context:
                set_trace_context(**previous_context)

    async def _run_executor(
        self,
        execution: Execution,
        executor: GraphExecutor,
        options: ExecutionOptions,
    ) -> None:
        start = time.monotonic()
        executor_task = asyncio.create_task(executor.execute(options.input_data))
        self._executor_tasks[execution.id] = executor_task

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            output = await asyncio.wait_for(executor_task, timeout=options.timeout or None)

        except TimeoutError:
            reason = f"timed out after {options.timeout:g}s"
            execution.mark_cancelled(
                reason, elapsed_ms(), executor.total_cost, executor.metadata.model_copy()
            )
            logger.error(f"Execution {execution.id} {reason}")
            await self._persist(execution)
            raise ExecutionCancelledError(execution.id, reason) from None

        except asyncio.CancelledError:
            execution.mark_cancelled(
                "cancelled", elapsed_ms(), executor.total_cost, executor.metadata.model_copy()
            )
            logger.warning(f"Execution {execution.id} cancelled")
            await self._persist(execution)
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise ExecutionCancelledError(execution.id) from None

        except Exception as e:
            execution.mark_failed(
                e, elapsed_ms(), executor.total_cost, executor.metadata.model_copy()
            )
            logger.error(f"Execution failed: {e}")
            await self._persist(execution)
            raise

        result = ExecutionResult(
            output=output,
            duration_ms=elapsed_ms(),
            total_cost=executor.metadata.total_cost,
            metadata=executor.metadata.model_copy(),
        )
        execution.mark_completed(result)
        logger.info(
            f"Execution completed: duration={result.duration_ms}ms, cost=${result.total_cost:.4f}"
        )

        await self._persist(execution)
        if output:
            try:
                await self.store.save_output(execution.id, output)
            except StorageError as e:
                logger.error(f"Failed to save output file: {e}")

    async def _persist(self, execution: Execution) -> None:
        """Save a terminal state; storage errors never undo the in-memory result."""
        try:
            await self.store.save(execution)
        except StorageError as e:
            logger.error(f"Failed to save execution result: {e}")

    async def get_execution(self, execution_id: str) -> Execution:
        """
        Active executions first, then storage.

        Raises:
            ExecutionNotFoundError: unknown id
        """
        execution = self._active_executions.get(execution_id)
        if execution is not None:
            return execution
        return await self.store.load(execution_id)

    async def list_executions(self) -> list[ExecutionInfo]:
        return await self.store.list()

    async def delete_execution(self, execution_id: str) -> None:
        if execution_id in self._active_executions:
            raise ExecutionError("cannot delete running execution")
        await self.store.delete(execution_id)

    async def get_status(self, execution_id: str) -> ExecutionStatus:
        execution = await self.get_execution(execution_id)
        return execution.status

    async def wait_for_completion(
        self,
        execution_id: str,
        timeout: float | None = None,
    ) -> Execution | None:
        """
        Wait for an execution to reach a terminal state.

        Returns:
            The finished execution, or None if ``timeout`` elapsed first
        """
        execution = self._active_executions.get(execution_id)
        event = self._completion_events.get(execution_id)
        if execution is None or event is None:
            return await self.store.load(execution_id)

        try:
            if timeout:
                await asyncio.wait_for(event.wait(), timeout=timeout)
            else:
                await event.wait()
        except TimeoutError:
            return None
        return execution

    async def cancel_execution(self, execution_id: str) -> bool:
        """
        Cancel a running execution and wait for its cancelled state to be persisted.

        Returns:
            True if it was cancelled, False if it was not running
        """
        task = self._executor_tasks.get(execution_id)
        event = self._completion_events.get(execution_id)
        if task is None or task.done():
            return False

        task.cancel()
        if event is not None:
            await event.wait()
        return True

    async def shutdown(self) -> None:
        """Cancel every in-flight execution and wait for them to wind down."""
        async with self._lock:
            executor_tasks = list(self._executor_tasks.values())
            background_tasks = list(self._execution_tasks.values())

        for task in executor_tasks:
            if not task.done():
                task.cancel()

        if background_tasks:
            await asyncio.gather(*background_tasks, return_exceptions=True)

        logger.info("ExecutionManager shut down")

    def get_active_count(self) -> int:
        return len(self._active_executions)

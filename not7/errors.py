"""Exception hierarchy for the execution engine.

Lower layers (tool providers, the LLM client) raise the narrow types;
the executor and ReAct loop wrap them with node and iteration context;
the execution manager turns whatever reaches it into a persisted failed
or cancelled execution.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from not7.graph.spec import ReActTrace


class Not7Error(Exception):
    """Base class for every error raised by not7."""


class SpecValidationError(Not7Error):
    """A spec is malformed or incomplete. Never retried."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class BackendError(Not7Error):
    """The reasoning backend call failed."""


class ReActIterationError(BackendError):
    """A ReAct iteration failed; carries the trace accumulated so far."""

    def __init__(
        self,
        iteration: int,
        cause: BaseException,
        trace: "ReActTrace | None" = None,
        cost: float = 0.0,
    ):
        self.iteration = iteration
        self.trace = trace
        self.cost = cost
        super().__init__(f"iteration {iteration} failed: {cause}")


class ToolError(Not7Error):
    """A tool could not be resolved or executed."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        self.message = message
        super().__init__(f"tool '{tool_name}' failed: {message}")

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"tool '{self.tool_name}' failed: {self.message} (cause: {self.__cause__})"
        return f"tool '{self.tool_name}' failed: {self.message}"


class ProviderError(Not7Error):
    """A tool provider failed to initialize, list, or close."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"provider '{provider}' error: {message}")

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"provider '{self.provider}' error: {self.message} (cause: {self.__cause__})"
        return f"provider '{self.provider}' error: {self.message}"


class AuthorizationError(ProviderError):
    """OAuth authorization was not granted, failed, or timed out."""


class RoutingError(Not7Error):
    """The route table cannot be followed."""


class NoEntryPointError(RoutingError):
    """No route leaves the virtual start node."""


class NodeExecutionError(Not7Error):
    """A node failed; wraps the underlying cause with the node id."""

    def __init__(self, node_id: str, cause: BaseException):
        self.node_id = node_id
        super().__init__(f"execution failed at node {node_id}: {cause}")


class StorageError(Not7Error):
    """Persisting or loading execution state failed."""


class StorageUnavailableError(StorageError):
    """The initial execution record could not be persisted."""


class ExecutionError(Not7Error):
    """Execution manager errors."""


class ExecutionNotFoundError(ExecutionError):
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"execution not found: {execution_id}")


class ExecutionAlreadyRunningError(ExecutionError):
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"execution already running: {execution_id}")


class ExecutionCancelledError(ExecutionError):
    def __init__(self, execution_id: str, reason: str = "cancelled"):
        self.execution_id = execution_id
        super().__init__(f"execution {execution_id} {reason}")

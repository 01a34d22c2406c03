"""
Structured logging with automatic trace context propagation.

Every log call inside an execution picks up the current trace context
(execution_id, agent_id, node_id) from a ContextVar, so concurrent
executions can be told apart without passing ids around:

    ExecutionManager._run() → sets execution_id
        ↓ (ContextVar, task-local)
    GraphExecutor.execute() → adds agent_id
        ↓
    GraphExecutor._execute_node() → adds node_id
        ↓
    logger.info("message") → record carries all of the above
"""

import json
import logging
import os
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

trace_context: ContextVar[dict[str, Any] | None] = ContextVar("trace_context", default=None)

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m|\033\[[0-9;]*m")

PACKAGE_LOGGER = "not7"
EXECUTION_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape codes from text for clean JSON logging."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


class StructuredFormatter(logging.Formatter):
    """JSON formatter: one object per line with the trace context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        context = trace_context.get() or {}

        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": strip_ansi_codes(record.getMessage()),
        }
        log_entry.update(context)

        for key in ("event", "latency_ms", "cost", "node_id", "model", "tool_name"):
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = strip_ansi_codes(self.formatException(record.exc_info))

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Colorized single-line output prefixed with the short trace context."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        context = trace_context.get() or {}
        execution_id = context.get("execution_id", "")
        agent_id = context.get("agent_id", "")
        node_id = context.get("node_id", "")

        prefix_parts = []
        if execution_id:
            prefix_parts.append(f"exec:{execution_id[-8:]}")
        if agent_id:
            prefix_parts.append(f"agent:{agent_id}")
        if node_id:
            prefix_parts.append(f"node:{node_id}")
        context_prefix = f"[{' | '.join(prefix_parts)}] " if prefix_parts else ""

        color = self.COLORS.get(record.levelname, "")
        level = f"{record.levelname:<8}"
        message = f"{color}[{level}]{self.RESET} {context_prefix}{record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def configure_logging(
    level: str = "INFO",
    format: str = "auto",  # "json", "human", or "auto"
) -> None:
    """
    Configure logging for the application. Call once at startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for machine-parseable output, "human" for colored
            development output, "auto" to pick JSON when LOG_FORMAT=json
            or ENV=production
    """
    if format == "auto":
        log_format_env = os.getenv("LOG_FORMAT", "").lower()
        env = os.getenv("ENV", "development").lower()
        format = "json" if log_format_env == "json" or env == "production" else "human"

    formatter: logging.Formatter
    if format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Keep HTTP client chatter out of INFO output
    for logger_name in ("httpx", "httpcore", "LiteLLM"):
        logging.getLogger(logger_name).setLevel(max(logging.WARNING, root_logger.level))


def set_trace_context(**kwargs: Any) -> None:
    """
    Merge fields into the trace context of the current task.

    asyncio tasks copy the context when they are created, so a value set
    inside an execution task never leaks into a sibling execution.
    """
    current = trace_context.get() or {}
    trace_context.set({**current, **kwargs})


def get_trace_context() -> dict:
    """Return a copy of the current trace context (empty dict if unset)."""
    context = trace_context.get() or {}
    return context.copy()


def clear_trace_context() -> None:
    """Clear the trace context. Mostly useful between tests."""
    trace_context.set(None)


class ExecutionContextFilter(logging.Filter):
    """Pass only records emitted while the trace context names ``execution_id``."""

    def __init__(self, execution_id: str):
        super().__init__()
        self.execution_id = execution_id

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace_context.get() or {}
        return context.get("execution_id") == self.execution_id


_level_lock = threading.Lock()
_open_execution_logs = 0
_saved_level: int | None = None


def execution_log_path(log_dir: Path, execution_id: str) -> Path:
    """Path of the per-execution log file: agent-YYYYMMDD-HHMMSS-<id>.log."""
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return Path(log_dir) / f"agent-{timestamp}-{execution_id}.log"


@contextmanager
def execution_log_file(log_dir: Path, execution_id: str) -> Iterator[Path]:
    """
    Mirror one execution's log records into its own file.

    A FileHandler is attached to the package logger for the duration of the
    block. The handler only accepts records whose trace context carries this
    execution's id, so concurrent executions write separate files.

    Yields:
        Path of the log file
    """
    global _open_execution_logs, _saved_level

    path = execution_log_path(log_dir, execution_id)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(EXECUTION_LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    handler.addFilter(ExecutionContextFilter(execution_id))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    with _level_lock:
        if _open_execution_logs == 0 and package_logger.getEffectiveLevel() > logging.INFO:
            _saved_level = package_logger.level
            package_logger.setLevel(logging.INFO)
        _open_execution_logs += 1
    package_logger.addHandler(handler)

    try:
        yield path
    finally:
        package_logger.removeHandler(handler)
        handler.close()
        with _level_lock:
            _open_execution_logs -= 1
            if _open_execution_logs == 0 and _saved_level is not None:
                package_logger.setLevel(_saved_level)
                _saved_level = None

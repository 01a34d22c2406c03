"""
Observability: structured logging with automatic trace correlation.

- Trace context propagation via ContextVar
- JSON logging for production, colored output for development
- Per-execution log files
"""

from not7.observability.logging import (
    clear_trace_context,
    configure_logging,
    execution_log_file,
    get_trace_context,
    set_trace_context,
)

__all__ = [
    "configure_logging",
    "execution_log_file",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
]

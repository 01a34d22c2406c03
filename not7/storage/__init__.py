"""Durable execution storage."""

from not7.storage.execution_store import ExecutionStore, build_trace, parse_trace

__all__ = ["ExecutionStore", "build_trace", "parse_trace"]

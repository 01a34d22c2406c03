"""Shared utilities."""

from not7.utils.io import atomic_write

__all__ = ["atomic_write"]

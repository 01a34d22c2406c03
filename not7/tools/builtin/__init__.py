"""Builtin HTTP tools (WebSearch, WebFetch)."""

from not7.tools.builtin.provider import BuiltinToolProvider, extract_text

__all__ = ["BuiltinToolProvider", "extract_text"]

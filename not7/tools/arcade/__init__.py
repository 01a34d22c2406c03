"""Arcade OAuth-gated tool catalog."""

from not7.tools.arcade.client import ArcadeClient
from not7.tools.arcade.provider import ArcadeToolProvider

__all__ = ["ArcadeClient", "ArcadeToolProvider"]

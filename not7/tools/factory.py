"""
Tool-manager factory.

Maps a provider identifier from a spec to a ready ToolManager:

- ``builtin``            WebSearch / WebFetch (needs a SERP API key)
- ``arcade``             Arcade Gmail toolkit
- ``arcade-<toolkit>``   any other Arcade toolkit, e.g. ``arcade-slack``
"""

import asyncio
import logging

from not7.config import Not7Config
from not7.errors import AuthorizationError, ProviderError
from not7.tools.arcade.provider import DEFAULT_TOOLKIT, ArcadeToolProvider
from not7.tools.builtin.provider import BuiltinToolProvider
from not7.tools.manager import ToolManager

logger = logging.getLogger(__name__)

AUTHORIZATION_TIMEOUT = 360.0
ARCADE_PREFIX = "arcade-"


def resolve_arcade_toolkit(provider_id: str) -> str | None:
    """Toolkit name for an arcade provider id, or None if it is not one."""
    if provider_id == "arcade":
        return DEFAULT_TOOLKIT
    if provider_id.startswith(ARCADE_PREFIX) and len(provider_id) > len(ARCADE_PREFIX):
        toolkit = provider_id[len(ARCADE_PREFIX) :]
        return toolkit[0].upper() + toolkit[1:]
    return None


async def create_tool_manager(provider_id: str, config: Not7Config) -> ToolManager:
    """
    Build a ToolManager with the provider named by ``provider_id`` registered.

    Raises:
        ProviderError: unknown provider id, missing credentials, or the
            provider failed to initialize or list its tools
        AuthorizationError: Arcade authorization failed or timed out
    """
    manager = ToolManager()

    if provider_id == "builtin":
        if not config.builtin.serp_api_key:
            raise ProviderError("builtin", "builtin provider requires SERP_API_KEY")
        provider = BuiltinToolProvider(serp_api_key=config.builtin.serp_api_key)
        await provider.initialize()
        await manager.register_provider(provider)
        return manager

    toolkit = resolve_arcade_toolkit(provider_id)
    if toolkit is None:
        raise ProviderError(provider_id, f"unsupported tool provider: {provider_id}")

    if not config.arcade.api_key:
        raise ProviderError("arcade", "ARCADE_API_KEY not configured")
    if not config.arcade.user_id:
        raise ProviderError("arcade", "ARCADE_USER_ID not configured")

    provider = ArcadeToolProvider(
        api_key=config.arcade.api_key,
        user_id=config.arcade.user_id,
        toolkit=toolkit,
    )
    try:
        await provider.initialize()
        try:
            await asyncio.wait_for(
                provider.check_and_handle_authorization(),
                timeout=AUTHORIZATION_TIMEOUT,
            )
        except TimeoutError as e:
            raise AuthorizationError("arcade", "authorization timed out") from e
        await manager.register_provider(provider)
    except BaseException:
        await provider.close()
        raise

    logger.info(f"Arcade {toolkit} tools ready")
    return manager

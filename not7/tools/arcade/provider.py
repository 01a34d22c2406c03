"""
Arcade tool provider - OAuth-gated remote tool catalog.

One provider instance serves one Arcade toolkit (Gmail, Slack, Spotify...).
Before first use the user must have authorized the toolkit; when the
catalog reports the authorization as inactive, an interactive flow shows
the authorization URL and polls until Arcade reports the outcome.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from not7.errors import AuthorizationError, ProviderError
from not7.tools.arcade.client import ArcadeClient
from not7.tools.arcade.types import ArcadeTool
from not7.tools.types import ToolDefinition, ToolProvider, ToolResult

logger = logging.getLogger(__name__)

PROVIDER_NAME = "arcade"
DEFAULT_TOOLKIT = "Gmail"
AUTH_TIMEOUT_SECONDS = 300.0
AUTH_POLL_INTERVAL_SECONDS = 3.0
AUTH_LONG_POLL_SECONDS = 30

_RULE = "━" * 52


class ArcadeToolProvider(ToolProvider):
    """Exposes an Arcade toolkit's tools under their short names."""

    def __init__(
        self,
        api_key: str,
        user_id: str,
        toolkit: str = DEFAULT_TOOLKIT,
        client: ArcadeClient | None = None,
        display: Callable[[str], None] = print,
        auth_timeout: float = AUTH_TIMEOUT_SECONDS,
        poll_interval: float = AUTH_POLL_INTERVAL_SECONDS,
    ):
        self.toolkit = toolkit
        self.client = client or ArcadeClient(api_key=api_key, user_id=user_id)
        self.display = display
        self.auth_timeout = auth_timeout
        self.poll_interval = poll_interval
        # short name ("SendEmail") -> fully qualified name ("Gmail.SendEmail@3.2.1")
        self._tool_names: dict[str, str] = {}

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    async def initialize(self, config: dict[str, str] | None = None) -> None:
        config = config or {}
        if config.get("arcade_api_key"):
            self.client.api_key = config["arcade_api_key"]
        if config.get("arcade_user_id"):
            self.client.user_id = config["arcade_user_id"]

        if not self.client.api_key:
            raise ProviderError(PROVIDER_NAME, "ARCADE_API_KEY is required")
        if not self.client.user_id:
            raise ProviderError(PROVIDER_NAME, "ARCADE_USER_ID is required")

    async def check_and_handle_authorization(self) -> None:
        """
        Make sure the user has authorized this toolkit.

        Raises:
            AuthorizationError: if the toolkit has no tools, or the
                interactive flow fails or times out
        """
        try:
            tools = await self.client.list_tools(self.toolkit)
        except ProviderError as e:
            raise AuthorizationError(
                PROVIDER_NAME, "failed to check authorization status"
            ) from e

        if not tools:
            raise AuthorizationError(PROVIDER_NAME, f"no {self.toolkit} tools available")

        if tools[0].is_authorized:
            logger.info(f"Arcade {self.toolkit} toolkit already authorized")
            return

        await self._interactive_authorize(tools[0].fully_qualified_name or tools[0].name)

    async def _interactive_authorize(self, tool_name: str) -> None:
        self.display(
            f"\n{_RULE}\n\n"
            f"  🔐 {self.toolkit} Authorization Required\n\n"
            f"  This agent requires access to {self.toolkit}.\n"
            f"  Please authorize to continue...\n\n"
            f"{_RULE}\n"
        )

        try:
            auth = await self.client.authorize_tool(tool_name)
        except ProviderError as e:
            raise AuthorizationError(PROVIDER_NAME, "failed to initiate authorization") from e

        if auth.status == "completed":
            self.display("✅ Already authorized!")
            return

        if not auth.authorization_url:
            raise AuthorizationError(PROVIDER_NAME, "no authorization URL received")

        minutes = int(self.auth_timeout // 60)
        self.display(
            f"📋 Authorization URL:\n\n  {auth.authorization_url}\n\n{_RULE}\n\n"
            f"⏳ Waiting for authorization (timeout: {minutes} minutes)...\n"
            f"   Press Ctrl+C to cancel\n"
        )
        logger.info(f"Waiting for Arcade authorization {auth.authorization_id}")

        try:
            await asyncio.wait_for(
                self._poll_authorization(auth.authorization_id),
                timeout=self.auth_timeout,
            )
        except TimeoutError as e:
            raise AuthorizationError(
                PROVIDER_NAME, f"authorization timeout ({minutes} minutes)"
            ) from e

        self.display(f"✅ Authorization completed!\n\n{_RULE}\n\n🚀 Continuing with agent execution...\n")

    async def _poll_authorization(self, authorization_id: str) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                status = await self.client.check_auth_status(
                    authorization_id, AUTH_LONG_POLL_SECONDS
                )
            except ProviderError as e:
                logger.debug(f"Authorization status check failed, retrying: {e}")
                continue

            if status.status == "completed":
                return
            if status.status == "failed":
                raise AuthorizationError(
                    PROVIDER_NAME, f"authorization failed: {status.error or 'unknown error'}"
                )

    async def list_tools(self) -> list[ToolDefinition]:
        try:
            arcade_tools = await self.client.list_tools(self.toolkit)
        except ProviderError as e:
            raise ProviderError(
                PROVIDER_NAME, f"failed to list Arcade {self.toolkit} tools"
            ) from e

        return [self._to_definition(tool) for tool in arcade_tools]

    def _to_definition(self, tool: ArcadeTool) -> ToolDefinition:
        properties: dict[str, Any] = {}
        required: list[str] = []
        for param in tool.input.parameters:
            name = param.get("name")
            if not isinstance(name, str):
                continue
            properties[name] = param
            if param.get("required") is True:
                required.append(name)

        self._tool_names[tool.name] = tool.fully_qualified_name or tool.name

        return ToolDefinition(
            name=tool.name,
            description=tool.description,
            input_schema={"type": "object", "properties": properties, "required": required},
            provider=PROVIDER_NAME,
        )

    async def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        qualified_name = self._tool_names.get(tool_name)
        if qualified_name is None:
            return ToolResult(success=False, error=f"unknown tool: {tool_name}")

        try:
            output = await self.client.execute_tool(qualified_name, arguments)
        except ProviderError as e:
            return ToolResult(success=False, error=e.message)

        return ToolResult(success=True, output=output, metadata={"qualified_name": qualified_name})

    async def close(self) -> None:
        await self.client.aclose()

"""
Arcade API client.

Endpoints:
- GET  /v1/tools?toolkit=<T>&limit=100   tool catalog (cached per toolkit)
- POST /v1/tools/execute                  run a tool for a user
- POST /v1/tools/authorize                start an OAuth authorization
- GET  /v1/auth/status?id=<id>&wait=<s>   long-poll an authorization
"""

import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from not7.errors import AuthorizationError, ProviderError
from not7.tools.arcade.types import (
    ArcadeTool,
    AuthorizationResponse,
    AuthorizeToolRequest,
    AuthStatusResponse,
    ExecuteToolRequest,
    ExecuteToolResponse,
    ToolsResponse,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://api.arcade.dev"
CACHE_TTL_SECONDS = 3600.0
MAX_LONG_POLL_SECONDS = 59

_PROVIDER = "arcade"


class ArcadeClient:
    """Thin async wrapper over the Arcade REST API."""

    def __init__(
        self,
        api_key: str,
        user_id: str,
        base_url: str = BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        cache_ttl: float = CACHE_TTL_SECONDS,
    ):
        self.api_key = api_key
        self.user_id = user_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._client = client or httpx.AsyncClient(timeout=timeout)
        # toolkit -> (expires_at, tools)
        self._catalog_cache: dict[str, tuple[float, list[ArcadeTool]]] = {}

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                timeout=timeout or self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise ProviderError(_PROVIDER, f"failed to {action}") from e

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        if response.status_code != 200:
            raise ProviderError(
                _PROVIDER, f"API error (status {response.status_code}): {response.text}"
            )

    async def list_tools(self, toolkit: str) -> list[ArcadeTool]:
        """Tool catalog for a toolkit, served from cache for one hour."""
        cached = self._catalog_cache.get(toolkit)
        if cached and cached[0] > time.monotonic() and cached[1]:
            return cached[1]

        response = await self._request(
            "GET",
            "/v1/tools",
            "list tools",
            params={"toolkit": toolkit, "limit": 100},
        )
        self._check_status(response)

        try:
            catalog = ToolsResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderError(_PROVIDER, "failed to decode tool catalog") from e

        self._catalog_cache[toolkit] = (time.monotonic() + self.cache_ttl, catalog.items)
        logger.debug(f"Fetched {len(catalog.items)} Arcade tools for toolkit {toolkit}")
        return catalog.items

    def invalidate_cache(self, toolkit: str | None = None) -> None:
        if toolkit is None:
            self._catalog_cache.clear()
        else:
            self._catalog_cache.pop(toolkit, None)

    async def execute_tool(self, tool_name: str, inputs: dict[str, Any]) -> Any:
        """
        Execute a tool by its fully qualified name and return ``output.value``.

        Raises:
            AuthorizationError: on 401/403
            ProviderError: on any other HTTP or execution failure
        """
        body = ExecuteToolRequest(tool_name=tool_name, input=inputs, user_id=self.user_id)
        response = await self._request(
            "POST",
            "/v1/tools/execute",
            "execute tool",
            content=body.model_dump_json(),
        )

        if response.status_code in (401, 403):
            raise AuthorizationError(
                _PROVIDER, "authorization required: the user has not authorized this toolkit"
            )
        self._check_status(response)

        try:
            result = ExecuteToolResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderError(_PROVIDER, "failed to decode execution response") from e

        if result.error:
            raise ProviderError(_PROVIDER, f"tool execution error: {result.error}")
        if not result.success or result.status != "success":
            if result.output.error is not None:
                raise ProviderError(_PROVIDER, f"tool execution failed: {result.output.error}")
            raise ProviderError(_PROVIDER, f"tool execution failed with status: {result.status}")

        return result.output.value

    async def authorize_tool(self, tool_name: str) -> AuthorizationResponse:
        """Start OAuth authorization for the user on behalf of ``tool_name``."""
        body = AuthorizeToolRequest(tool_name=tool_name, user_id=self.user_id)
        response = await self._request(
            "POST",
            "/v1/tools/authorize",
            "authorize tool",
            content=body.model_dump_json(),
        )
        self._check_status(response)

        try:
            return AuthorizationResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderError(_PROVIDER, "failed to decode authorization response") from e

    async def check_auth_status(
        self,
        authorization_id: str,
        wait_seconds: int = 0,
    ) -> AuthStatusResponse:
        """Check an authorization, long-polling up to ``wait_seconds`` (1-59)."""
        params: dict[str, Any] = {"id": authorization_id}
        timeout = self.timeout
        if 0 < wait_seconds <= MAX_LONG_POLL_SECONDS:
            params["wait"] = wait_seconds
            timeout = self.timeout + wait_seconds

        response = await self._request(
            "GET",
            "/v1/auth/status",
            "check status",
            timeout=timeout,
            params=params,
        )
        self._check_status(response)

        try:
            return AuthStatusResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderError(_PROVIDER, "failed to decode status response") from e

    async def aclose(self) -> None:
        await self._client.aclose()

"""
Tests for the Arcade client and tool provider against a mocked Arcade API.
"""

import json

import httpx
import pytest

from not7.errors import AuthorizationError, ProviderError
from not7.tools.arcade import ArcadeClient, ArcadeToolProvider

BASE = "https://arcade.test"


def catalog(status: str = "active") -> dict:
    return {
        "items": [
            {
                "fully_qualified_name": "Gmail.SendEmail@1.0.0",
                "qualified_name": "Gmail.SendEmail",
                "name": "SendEmail",
                "description": "Send an email",
                "input": {
                    "parameters": [
                        {"name": "recipient", "required": True, "value_schema": {"val_type": "string"}},
                        {"name": "subject", "required": False},
                        {"description": "unnamed parameters are skipped"},
                    ]
                },
                "requirements": {"met": status == "active", "authorization": {"status": status}},
            },
            {
                "fully_qualified_name": "Gmail.ListEmails@1.0.0",
                "name": "ListEmails",
                "description": "List emails",
            },
        ],
        "total_count": 2,
    }


class FakeArcade:
    """Routes requests to canned responses and records them."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[(request.method, request.url.path)]
        if callable(handler):
            return handler(request)
        if isinstance(handler, list):
            return handler.pop(0)
        return handler

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)


def make_client(routes: dict) -> tuple[ArcadeClient, FakeArcade]:
    fake = FakeArcade(routes)
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    return ArcadeClient("arc-key", "me@example.com", base_url=BASE, client=http), fake


def make_provider(routes: dict, **kwargs) -> tuple[ArcadeToolProvider, FakeArcade, list[str]]:
    client, fake = make_client(routes)
    shown: list[str] = []
    provider = ArcadeToolProvider(
        api_key="arc-key",
        user_id="me@example.com",
        toolkit="Gmail",
        client=client,
        display=shown.append,
        poll_interval=0,
        **kwargs,
    )
    return provider, fake, shown


class TestArcadeClient:
    @pytest.mark.asyncio
    async def test_catalog_is_cached(self):
        client, fake = make_client({("GET", "/v1/tools"): httpx.Response(200, json=catalog())})

        first = await client.list_tools("Gmail")
        second = await client.list_tools("Gmail")

        assert [t.name for t in first] == ["SendEmail", "ListEmails"]
        assert second is first
        assert fake.count("GET", "/v1/tools") == 1
        request = fake.requests[0]
        assert request.headers["Authorization"] == "Bearer arc-key"
        assert request.url.params["toolkit"] == "Gmail"
        assert request.url.params["limit"] == "100"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self):
        client, fake = make_client({("GET", "/v1/tools"): httpx.Response(200, json=catalog())})
        client.cache_ttl = 0

        await client.list_tools("Gmail")
        await client.list_tools("Gmail")

        assert fake.count("GET", "/v1/tools") == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_invalidate_cache(self):
        client, fake = make_client({("GET", "/v1/tools"): httpx.Response(200, json=catalog())})

        await client.list_tools("Gmail")
        client.invalidate_cache("Gmail")
        await client.list_tools("Gmail")

        assert fake.count("GET", "/v1/tools") == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_catalog_error_status(self):
        client, _ = make_client({("GET", "/v1/tools"): httpx.Response(500, text="boom")})

        with pytest.raises(ProviderError, match=r"API error \(status 500\): boom"):
            await client.list_tools("Gmail")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_execute_returns_output_value(self):
        def execute(request):
            body = json.loads(request.content)
            assert body == {
                "tool_name": "Gmail.SendEmail@1.0.0",
                "input": {"recipient": "a@b.c"},
                "user_id": "me@example.com",
            }
            return httpx.Response(
                200, json={"status": "success", "success": True, "output": {"value": {"id": "m1"}}}
            )

        client, _ = make_client({("POST", "/v1/tools/execute"): execute})

        assert await client.execute_tool("Gmail.SendEmail@1.0.0", {"recipient": "a@b.c"}) == {"id": "m1"}
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_execute_unauthorized(self, status):
        client, _ = make_client({("POST", "/v1/tools/execute"): httpx.Response(status)})

        with pytest.raises(AuthorizationError, match="authorization required"):
            await client.execute_tool("Gmail.SendEmail", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_execute_failure_uses_output_error(self):
        response = httpx.Response(
            200, json={"status": "failed", "success": False, "output": {"error": {"message": "bad recipient"}}}
        )
        client, _ = make_client({("POST", "/v1/tools/execute"): response})

        with pytest.raises(ProviderError, match="tool execution failed: .*bad recipient"):
            await client.execute_tool("Gmail.SendEmail", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_execute_top_level_error(self):
        response = httpx.Response(200, json={"status": "failed", "error": "quota exhausted"})
        client, _ = make_client({("POST", "/v1/tools/execute"): response})

        with pytest.raises(ProviderError, match="tool execution error: quota exhausted"):
            await client.execute_tool("Gmail.SendEmail", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_auth_status_long_poll(self):
        client, fake = make_client(
            {("GET", "/v1/auth/status"): httpx.Response(200, json={"status": "pending"})}
        )

        await client.check_auth_status("auth-1", wait_seconds=30)
        await client.check_auth_status("auth-1", wait_seconds=120)

        assert fake.requests[0].url.params["wait"] == "30"
        assert "wait" not in fake.requests[1].url.params
        await client.aclose()


class TestArcadeProvider:
    @pytest.mark.asyncio
    async def test_initialize_requires_credentials(self):
        client, _ = make_client({})
        client.api_key = ""
        provider = ArcadeToolProvider(api_key="", user_id="u", client=client)

        with pytest.raises(ProviderError, match="ARCADE_API_KEY is required"):
            await provider.initialize()

        await provider.initialize({"arcade_api_key": "k"})
        assert client.api_key == "k"
        await provider.close()

    @pytest.mark.asyncio
    async def test_list_tools_builds_schemas(self):
        provider, _, _ = make_provider({("GET", "/v1/tools"): httpx.Response(200, json=catalog())})

        tools = await provider.list_tools()

        send = tools[0]
        assert send.name == "SendEmail"
        assert send.provider == "arcade"
        assert set(send.input_schema["properties"]) == {"recipient", "subject"}
        assert send.input_schema["required"] == ["recipient"]
        assert tools[1].input_schema == {"type": "object", "properties": {}, "required": []}
        await provider.close()

    @pytest.mark.asyncio
    async def test_execute_uses_qualified_name(self):
        def execute(request):
            assert json.loads(request.content)["tool_name"] == "Gmail.ListEmails@1.0.0"
            return httpx.Response(200, json={"status": "success", "success": True, "output": {"value": []}})

        provider, _, _ = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog()),
                ("POST", "/v1/tools/execute"): execute,
            }
        )
        await provider.list_tools()

        result = await provider.execute_tool("ListEmails", {})

        assert result.success
        assert result.output == []
        assert result.metadata["qualified_name"] == "Gmail.ListEmails@1.0.0"
        await provider.close()

    @pytest.mark.asyncio
    async def test_execute_failures_become_results(self):
        provider, _, _ = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog()),
                ("POST", "/v1/tools/execute"): httpx.Response(401),
            }
        )

        unknown = await provider.execute_tool("SendEmail", {})
        assert unknown.error == "unknown tool: SendEmail"

        await provider.list_tools()
        denied = await provider.execute_tool("SendEmail", {})
        assert not denied.success
        assert denied.error.startswith("authorization required")
        await provider.close()

    @pytest.mark.asyncio
    async def test_already_authorized(self):
        provider, fake, shown = make_provider(
            {("GET", "/v1/tools"): httpx.Response(200, json=catalog("active"))}
        )

        await provider.check_and_handle_authorization()

        assert shown == []
        assert fake.count("POST", "/v1/tools/authorize") == 0
        await provider.close()

    @pytest.mark.asyncio
    async def test_empty_toolkit(self):
        provider, _, _ = make_provider({("GET", "/v1/tools"): httpx.Response(200, json={"items": []})})

        with pytest.raises(AuthorizationError, match="no Gmail tools available"):
            await provider.check_and_handle_authorization()
        await provider.close()

    @pytest.mark.asyncio
    async def test_interactive_flow_polls_until_completed(self):
        provider, fake, shown = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog("pending")),
                ("POST", "/v1/tools/authorize"): httpx.Response(
                    200,
                    json={
                        "authorization_id": "auth-1",
                        "status": "pending",
                        "authorization_url": "https://accounts.example/consent",
                    },
                ),
                ("GET", "/v1/auth/status"): [
                    httpx.Response(500, text="flaky"),
                    httpx.Response(200, json={"status": "pending"}),
                    httpx.Response(200, json={"status": "completed"}),
                ],
            }
        )

        await provider.check_and_handle_authorization()

        assert fake.count("GET", "/v1/auth/status") == 3
        authorize_body = json.loads(fake.requests[1].content)
        assert authorize_body["tool_name"] == "Gmail.SendEmail@1.0.0"
        output = "\n".join(shown)
        assert "Gmail Authorization Required" in output
        assert "https://accounts.example/consent" in output
        assert "timeout: 5 minutes" in output
        assert "Authorization completed!" in output
        await provider.close()

    @pytest.mark.asyncio
    async def test_authorization_already_completed(self):
        provider, fake, shown = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog("pending")),
                ("POST", "/v1/tools/authorize"): httpx.Response(200, json={"status": "completed"}),
            }
        )

        await provider.check_and_handle_authorization()

        assert "✅ Already authorized!" in shown
        assert fake.count("GET", "/v1/auth/status") == 0
        await provider.close()

    @pytest.mark.asyncio
    async def test_authorization_failed(self):
        provider, _, _ = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog("pending")),
                ("POST", "/v1/tools/authorize"): httpx.Response(
                    200, json={"authorization_id": "a", "status": "pending", "authorization_url": "u"}
                ),
                ("GET", "/v1/auth/status"): httpx.Response(
                    200, json={"status": "failed", "error": "user denied"}
                ),
            }
        )

        with pytest.raises(AuthorizationError, match="authorization failed: user denied"):
            await provider.check_and_handle_authorization()
        await provider.close()

    @pytest.mark.asyncio
    async def test_missing_authorization_url(self):
        provider, _, _ = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog("pending")),
                ("POST", "/v1/tools/authorize"): httpx.Response(200, json={"status": "pending"}),
            }
        )

        with pytest.raises(AuthorizationError, match="no authorization URL received"):
            await provider.check_and_handle_authorization()
        await provider.close()

    @pytest.mark.asyncio
    async def test_authorization_timeout(self):
        provider, _, _ = make_provider(
            {
                ("GET", "/v1/tools"): httpx.Response(200, json=catalog("pending")),
                ("POST", "/v1/tools/authorize"): httpx.Response(
                    200, json={"authorization_id": "a", "status": "pending", "authorization_url": "u"}
                ),
                ("GET", "/v1/auth/status"): lambda r: httpx.Response(200, json={"status": "pending"}),
            },
            auth_timeout=0.05,
        )
        provider.poll_interval = 0.01

        with pytest.raises(AuthorizationError, match="authorization timeout"):
            await provider.check_and_handle_authorization()
        await provider.close()

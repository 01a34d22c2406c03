"""
Builtin tool provider - direct HTTP tools with no external catalog.

Tools:
- WebSearch: Google results through SerpAPI (SERP_API_KEY)
- WebFetch: fetch a page and strip it down to readable text
"""

import logging
from typing import Any

import httpx
from bs4 import BeautifulSoup

from not7.errors import ProviderError
from not7.tools.types import ToolDefinition, ToolProvider, ToolResult

logger = logging.getLogger(__name__)

PROVIDER_NAME = "builtin"
SERPAPI_URL = "https://serpapi.com/search"
USER_AGENT = "NOT7-Agent/1.0"
DEFAULT_NUM_RESULTS = 5
MAX_FETCH_CHARS = 5000
TRUNCATION_SUFFIX = "...\n[Content truncated]"

TOOL_DEFINITIONS = [
    ToolDefinition(
        name="WebSearch",
        description=(
            "Search the web using Google Search. "
            "Returns titles, URLs, and snippets of search results."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"},
                "num_results": {
                    "type": "integer",
                    "description": "Number of results to return (default: 5)",
                },
            },
            "required": ["query"],
        },
        provider=PROVIDER_NAME,
    ),
    ToolDefinition(
        name="WebFetch",
        description=(
            "Fetch and extract text content from a URL. "
            "Returns the main text content of the webpage."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to fetch"},
            },
            "required": ["url"],
        },
        provider=PROVIDER_NAME,
    ),
]


def extract_text(html: str) -> str:
    """Visible text of an HTML document, one non-blank line per line."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


class BuiltinToolProvider(ToolProvider):
    """WebSearch and WebFetch over httpx."""

    def __init__(
        self,
        serp_api_key: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.serp_api_key = serp_api_key
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    async def initialize(self, config: dict[str, str] | None = None) -> None:
        config = config or {}
        if config.get("serp_api_key"):
            self.serp_api_key = config["serp_api_key"]
        if not self.serp_api_key:
            raise ProviderError(PROVIDER_NAME, "SERP API key is required for builtin web search")

    async def list_tools(self) -> list[ToolDefinition]:
        return list(TOOL_DEFINITIONS)

    async def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        if tool_name == "WebSearch":
            return await self._web_search(arguments)
        if tool_name == "WebFetch":
            return await self._web_fetch(arguments)
        return ToolResult(success=False, error=f"unknown tool: {tool_name}")

    async def close(self) -> None:
        await self._client.aclose()

    async def _web_search(self, args: dict[str, Any]) -> ToolResult:
        query = args.get("query")
        if not isinstance(query, str) or not query:
            return ToolResult(success=False, error="query parameter is required")

        num_results = DEFAULT_NUM_RESULTS
        raw_num = args.get("num_results")
        if isinstance(raw_num, (int, float)) and not isinstance(raw_num, bool):
            num_results = int(raw_num)
        elif isinstance(raw_num, str) and raw_num.isdigit():
            num_results = int(raw_num)

        try:
            response = await self._client.get(
                SERPAPI_URL,
                params={"q": query, "api_key": self.serp_api_key, "num": num_results},
            )
        except httpx.HTTPError as e:
            return ToolResult(success=False, error=f"search request failed: {e}")

        if response.status_code != 200:
            return ToolResult(
                success=False,
                error=f"SerpAPI error (status {response.status_code}): {response.text}",
            )

        try:
            data = response.json()
        except ValueError as e:
            return ToolResult(success=False, error=f"failed to decode response: {e}")

        results = [
            {
                "title": item.get("title", ""),
                "url": item.get("link", ""),
                "snippet": item.get("snippet", ""),
            }
            for item in data.get("organic_results") or []
        ]
        logger.info(f"WebSearch '{query}' returned {len(results)} results")
        return ToolResult(success=True, output=results)

    async def _web_fetch(self, args: dict[str, Any]) -> ToolResult:
        url = args.get("url")
        if not isinstance(url, str) or not url:
            return ToolResult(success=False, error="url parameter is required")

        try:
            response = await self._client.get(url, headers={"User-Agent": USER_AGENT})
        except httpx.HTTPError as e:
            return ToolResult(success=False, error=f"fetch request failed: {e}")

        if response.status_code != 200:
            return ToolResult(success=False, error=f"HTTP error: status {response.status_code}")

        text = extract_text(response.text)
        if len(text) > MAX_FETCH_CHARS:
            text = text[:MAX_FETCH_CHARS] + TRUNCATION_SUFFIX

        logger.info(f"WebFetch {url} extracted {len(text)} chars")
        return ToolResult(success=True, output=text)

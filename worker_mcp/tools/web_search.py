from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from mcp import types

from ..config import Settings
from . import ToolRegistry, error_result, text_result
from .schema import enum, integer, string

logger = logging.getLogger(__name__)

TIME_RANGES = ["day", "month", "year"]
SAFESEARCH_LEVELS = ["0", "1", "2"]


class WebSearchTool:
    """Web search through a SearXNG instance's JSON API."""

    name = "searxng_web_search"
    description = (
        "Performs a web search using the SearXNG API, ideal for general queries, news, articles, "
        "and online content. Use this for broad information gathering, recent events, or when you "
        "need diverse web sources."
    )

    def __init__(
        self,
        base_url: str,
        timeout_ms: int,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_ms = timeout_ms
        self._transport = transport
        self.schema = {
            "query": string("The search query. This is the main input for the web search"),
            "pageno": integer("Search page number (starts at 1)", minimum=1, default=1),
            "time_range": enum(TIME_RANGES, "Time range of search (day, month, year)", optional=True),
            "language": string(
                "Language code for search results (e.g., 'en', 'fr', 'de'). Default is instance-dependent.",
                default="all",
            ),
            "safesearch": enum(
                SAFESEARCH_LEVELS,
                "Safe search filter level (0: None, 1: Moderate, 2: Strict)",
                default="0",
            ),
        }

    async def execute(self, arguments: Dict[str, Any]) -> types.CallToolResult:
        try:
            results = await self._search(
                query=arguments["query"],
                pageno=arguments.get("pageno") or 1,
                time_range=arguments.get("time_range"),
                language=arguments.get("language") or "all",
                safesearch=arguments.get("safesearch") or "0",
            )
        except httpx.TimeoutException:
            return error_result(f"Error in web search: request timed out after {self._timeout_ms}ms")
        except Exception as e:
            logger.warning("Web search failed: %s", e)
            return error_result(f"Error in web search: {e}")

        return text_result(results)

    async def _search(
        self,
        query: str,
        pageno: int,
        time_range: Optional[str],
        language: str,
        safesearch: str,
    ) -> str:
        params: Dict[str, Any] = {"q": query, "format": "json", "pageno": str(pageno)}
        if time_range in TIME_RANGES:
            params["time_range"] = time_range
        if language and language != "all":
            params["language"] = language
        if safesearch in SAFESEARCH_LEVELS:
            params["safesearch"] = safesearch

        async with httpx.AsyncClient(
            timeout=self._timeout_ms / 1000,
            transport=self._transport,
        ) as client:
            response = await client.get(f"{self._base_url}/search", params=params)

        if response.is_error:
            raise RuntimeError(
                f"SearXNG API error: {response.status_code} {response.reason_phrase}\n{response.text}"
            )

        data = response.json()
        results: List[Dict[str, Any]] = data.get("results") or []
        return "\n\n".join(
            f"Title: {r.get('title') or ''}\nDescription: {r.get('content') or ''}\nURL: {r.get('url') or ''}"
            for r in results
        )


def register_tools(registry: ToolRegistry, settings: Settings) -> None:
    registry.register(WebSearchTool(base_url=settings.searxng_url, timeout_ms=settings.tool_timeout_ms))

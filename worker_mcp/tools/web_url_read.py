from __future__ import annotations

import html
import re
from typing import Any, Dict, Optional

import httpx
from mcp import types

from ..config import Settings
from . import ToolRegistry, error_result, text_result
from .schema import string

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s{2,}")


def html_to_text(document: str) -> str:
    """Crude HTML to text: drop scripts, styles and tags, then decode entities."""
    text = _SCRIPT_RE.sub("", document)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _SPACE_RE.sub(" ", text).strip()
    return html.unescape(text)


class WebUrlReadTool:
    name = "web_url_read"
    description = (
        "Read the content from an URL. "
        "Use this for further information retrieving to understand the content of each URL."
    )

    def __init__(self, timeout_ms: int, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._timeout_ms = timeout_ms
        self._transport = transport
        self.schema = {"url": string("URL to read content from")}

    async def execute(self, arguments: Dict[str, Any]) -> types.CallToolResult:
        try:
            content = await self._fetch(arguments["url"])
        except Exception as e:
            return error_result(f"Error reading URL: {e}")
        return text_result(content)

    async def _fetch(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_ms / 1000,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request timed out after {self._timeout_ms}ms") from e

        if response.is_error:
            raise RuntimeError(f"Failed to fetch the URL: {response.status_code} {response.reason_phrase}")

        return html_to_text(response.text)


def register_tools(registry: ToolRegistry, settings: Settings) -> None:
    registry.register(WebUrlReadTool(timeout_ms=settings.tool_timeout_ms))

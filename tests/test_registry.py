"""Tests for ToolRegistry cataloguing and its failure boundary."""

from __future__ import annotations

import logging
from typing import Any, Dict

from worker_mcp.tools import FunctionTool, ToolRegistry, ToolUnit, tool_catalog

from .conftest import make_echo_tool, make_failing_tool


class TestCatalog:
    def test_register_and_get(self) -> None:
        registry = ToolRegistry()
        tool = make_echo_tool()
        registry.register(tool)

        assert registry.get("echo") is tool
        assert "echo" in registry
        assert len(registry) == 1
        assert registry.names() == ["echo"]

    def test_get_missing_returns_none(self) -> None:
        assert ToolRegistry().get("nope") is None

    def test_duplicate_registration_keeps_latest(self, caplog) -> None:
        registry = ToolRegistry()
        first = make_echo_tool()
        second = make_echo_tool()

        registry.register(first)
        with caplog.at_level(logging.WARNING):
            registry.register(second)

        assert len(registry.list_all()) == 1
        assert registry.get("echo") is second
        assert "already registered" in caplog.text

    def test_unregister_twice(self) -> None:
        registry = ToolRegistry()
        registry.register(make_echo_tool())

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert registry.get("echo") is None

    def test_clear(self) -> None:
        registry = ToolRegistry()
        registry.register(make_echo_tool("a"))
        registry.register(make_echo_tool("b"))
        registry.clear()
        assert len(registry) == 0

    def test_function_tool_satisfies_protocol(self) -> None:
        assert isinstance(make_echo_tool(), ToolUnit)

    def test_catalog_and_mcp_listing(self) -> None:
        registry = ToolRegistry()
        registry.register(make_echo_tool())

        catalog = tool_catalog(registry)
        assert catalog[0]["name"] == "echo"
        assert catalog[0]["schema"]["text"]["type"] == "string"

        [tool] = registry.list_tools()
        assert tool.inputSchema["properties"]["text"]["type"] == "string"
        assert tool.inputSchema["required"] == ["text"]


class TestExecute:
    async def test_missing_tool_is_error_result(self) -> None:
        result = await ToolRegistry().execute("missing", {})

        assert result.isError is True
        assert "missing" in result.content[0].text

    async def test_raising_tool_is_contained(self) -> None:
        registry = ToolRegistry()
        registry.register(make_failing_tool("boom"))

        result = await registry.execute("explode", {})

        assert result.isError is True
        assert "boom" in result.content[0].text

    async def test_invalid_arguments_are_contained(self) -> None:
        registry = ToolRegistry()
        registry.register(make_echo_tool())

        result = await registry.execute("echo", {})

        assert result.isError is True
        assert 'Error executing tool "echo"' in result.content[0].text

    async def test_success(self) -> None:
        registry = ToolRegistry()
        registry.register(make_echo_tool())

        result = await registry.execute("echo", {"text": "hi"})

        assert result.isError is False
        assert result.content[0].text == "hi"

    async def test_dict_result_is_validated(self) -> None:
        async def _raw(arguments: Dict[str, Any]) -> Any:
            return {"content": [{"type": "text", "text": "raw"}]}

        registry = ToolRegistry()
        registry.register(FunctionTool(name="raw", description="", handler=_raw))

        result = await registry.execute("raw", None)
        assert result.content[0].text == "raw"

    async def test_malformed_result_is_contained(self) -> None:
        async def _bad(arguments: Dict[str, Any]) -> Any:
            return 42

        registry = ToolRegistry()
        registry.register(FunctionTool(name="bad", description="", handler=_bad))

        result = await registry.execute("bad", {})
        assert result.isError is True

    async def test_add_round_trip(self, registry: ToolRegistry) -> None:
        result = await registry.execute("add", {"a": 2, "b": 3})
        assert result.content[0].text == "5"

    async def test_default_tools_registered(self, registry: ToolRegistry) -> None:
        assert set(registry.names()) == {"add", "sequentialthinking", "searxng_web_search", "web_url_read"}

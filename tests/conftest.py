"""Shared fixtures for the gateway tests."""

from __future__ import annotations

from typing import Any, Dict

import pytest
from mcp import types

from worker_mcp.config import Settings
from worker_mcp.tools import FunctionTool, ToolRegistry, register_default_tools, text_result
from worker_mcp.tools.schema import string

AUTH = {"Authorization": "Bearer test-token"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_tokens="test-token, other-token",
        request_timeout_seconds=5.0,
    )


@pytest.fixture
def registry(settings: Settings) -> ToolRegistry:
    registry = ToolRegistry()
    register_default_tools(registry, settings)
    return registry


def make_echo_tool(name: str = "echo") -> FunctionTool:
    async def _echo(arguments: Dict[str, Any]) -> types.CallToolResult:
        return text_result(arguments["text"])

    return FunctionTool(name=name, description="Echo the input text", handler=_echo, schema={"text": string("Text")})


def make_failing_tool(message: str = "boom") -> FunctionTool:
    async def _fail(arguments: Dict[str, Any]) -> types.CallToolResult:
        raise RuntimeError(message)

    return FunctionTool(name="explode", description="Always raises", handler=_fail)

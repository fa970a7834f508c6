"""
Tool units and the registry that executes them.

Each tool module in this package exposes a `register_tools(registry, settings)`
function that adds its tools to the central registry used by the gateway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable

from mcp import types
from pydantic import ValidationError

from ..config import Settings
from .schema import Param, coerce_arguments, describe_schema, input_schema

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[types.CallToolResult]]


@runtime_checkable
class ToolUnit(Protocol):
    """A named, schema-described, independently invocable tool."""

    name: str
    description: str
    schema: Dict[str, Param]

    async def execute(self, arguments: Dict[str, Any]) -> types.CallToolResult: ...


@dataclass(frozen=True)
class FunctionTool:
    """Tool unit backed by a plain async function."""

    name: str
    description: str
    handler: ToolHandler
    schema: Dict[str, Param] = field(default_factory=dict)

    async def execute(self, arguments: Dict[str, Any]) -> types.CallToolResult:
        return await self.handler(arguments)


def text_result(text: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)], isError=False)


def error_result(text: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)], isError=True)


def to_mcp_tool(unit: ToolUnit) -> types.Tool:
    return types.Tool(
        name=unit.name,
        description=unit.description,
        inputSchema=input_schema(unit.name, unit.schema),
    )


class ToolRegistry:
    """
    In-memory catalog mapping tool names to tool units.

    `execute` is the failure boundary of the whole gateway: whatever a tool
    does, the caller gets a `CallToolResult` back, with `isError` set when
    the tool is missing, its arguments do not validate, or it raised.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolUnit] = {}

    def register(self, unit: ToolUnit) -> None:
        if unit.name in self._tools:
            logger.warning("Tool '%s' already registered, overwriting", unit.name)
        self._tools[unit.name] = unit

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def clear(self) -> None:
        self._tools.clear()

    def get(self, name: str) -> Optional[ToolUnit]:
        return self._tools.get(name)

    def list_all(self) -> List[ToolUnit]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def list_tools(self) -> List[types.Tool]:
        return [to_mcp_tool(unit) for unit in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> types.CallToolResult:
        unit = self.get(name)
        if unit is None:
            return error_result(f'Tool "{name}" not found')

        try:
            coerced = coerce_arguments(unit.name, unit.schema, arguments)
            result = await unit.execute(coerced)
            if not isinstance(result, types.CallToolResult):
                result = types.CallToolResult.model_validate(result)
        except ValidationError as e:
            logger.info("Invalid call to tool %s: %s", name, e)
            return error_result(f'Error executing tool "{name}": {e}')
        except Exception as e:
            logger.exception("Error executing tool %s", name)
            return error_result(f'Error executing tool "{name}": {e}')

        return result


def tool_catalog(registry: ToolRegistry) -> List[Dict[str, Any]]:
    """Read-only `{name, description, schema}` listing of the registry."""
    return [
        {
            "name": unit.name,
            "description": unit.description,
            "schema": describe_schema(unit.schema),
        }
        for unit in registry.list_all()
    ]


def register_default_tools(registry: ToolRegistry, settings: Settings) -> None:
    """Register every bundled tool group, isolating failures per group."""
    from . import add, sequential_thinking, web_search, web_url_read

    groups = [add, sequential_thinking, web_search, web_url_read]
    logger.info("Registering %d tool groups", len(groups))

    for module in groups:
        try:
            module.register_tools(registry, settings)
        except Exception:
            logger.exception("Failed to register tools from %s", module.__name__)

    logger.info("Tool registration complete, %d tools available: %s", len(registry), registry.names())


def reload_tools(registry: ToolRegistry, settings: Settings) -> None:
    logger.info("Reloading tools, %d currently registered", len(registry))
    registry.clear()
    register_default_tools(registry, settings)

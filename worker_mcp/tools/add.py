from __future__ import annotations

from typing import Any, Dict, Union

from mcp import types

from ..config import Settings
from . import FunctionTool, ToolRegistry, text_result
from .schema import number


def format_number(value: Union[int, float]) -> str:
    """Render integral floats without a trailing `.0`."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


async def _handle_add(arguments: Dict[str, Any]) -> types.CallToolResult:
    return text_result(format_number(arguments["a"] + arguments["b"]))


def register_tools(registry: ToolRegistry, settings: Settings) -> None:
    registry.register(
        FunctionTool(
            name="add",
            description="Add two numbers and return the result.",
            handler=_handle_add,
            schema={
                "a": number("First number"),
                "b": number("Second number"),
            },
        )
    )

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from mcp import types

from .channel import ChannelClosedError, ChannelEndpoint
from .models import error_response, result_response
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class ToolServer:
    """
    Server side of the protocol channel.

    Consumes JSON-RPC messages one at a time, answers the MCP methods the
    gateway supports, and sends each reply back over the same channel.
    Notifications and stray responses are consumed without a reply.
    """

    def __init__(self, registry: ToolRegistry, name: str = "Worker MCP Server", version: str = "1.0.0") -> None:
        self.registry = registry
        self.name = name
        self.version = version

    async def serve(self, endpoint: ChannelEndpoint) -> None:
        logger.info("Tool server started with %d tools", len(self.registry))
        async for message in endpoint.messages():
            reply = await self.handle_message(message)
            if reply is None:
                continue
            try:
                await endpoint.submit(reply)
            except ChannelClosedError:
                logger.warning("Client side closed, dropping reply for id=%s", reply.get("id"))
                break
        logger.info("Tool server stopped")

    async def handle_message(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        method = message.get("method")
        if method is None:
            logger.debug("Ignoring non-request message: %s", message)
            return None

        params = message.get("params") or {}

        if "id" not in message:
            await self.handle_notification(method, params)
            return None

        message_id = message["id"]
        try:
            return await self.handle_request(method, params, message_id)
        except Exception as e:
            logger.exception("Error handling MCP method %s", method)
            return error_response(message_id, types.INTERNAL_ERROR, f"Internal error: {e}")

    async def handle_notification(self, method: str, params: Dict[str, Any]) -> None:
        if method == "notifications/initialized":
            logger.info("Client initialized")
        elif method == "notifications/cancelled":
            logger.info("Client cancelled request %s", params.get("requestId"))
        else:
            logger.debug("Unhandled notification %s", method)

    async def handle_request(self, method: str, params: Dict[str, Any], message_id: Any) -> Dict[str, Any]:
        if method == "initialize":
            result = types.InitializeResult(
                protocolVersion=types.LATEST_PROTOCOL_VERSION,
                capabilities=types.ServerCapabilities(tools=types.ToolsCapability(listChanged=False)),
                serverInfo=types.Implementation(name=self.name, version=self.version),
            )
            return result_response(message_id, _dump(result))

        elif method == "ping":
            return result_response(message_id, {})

        elif method == "tools/list":
            result = types.ListToolsResult(tools=self.registry.list_tools())
            return result_response(message_id, _dump(result))

        elif method == "tools/call":
            tool_name = params.get("name")
            if not tool_name:
                return error_response(message_id, types.INVALID_PARAMS, "Invalid params: 'name' is required")

            call_result = await self.registry.execute(tool_name, params.get("arguments") or {})
            return result_response(message_id, _dump(call_result))

        return error_response(message_id, types.METHOD_NOT_FOUND, f"Method not found: {method}")


def _dump(model: Any) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)

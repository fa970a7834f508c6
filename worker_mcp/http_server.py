from __future__ import annotations

import html
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from mcp import types
from pydantic import AliasChoices, BaseModel, Field

from .auth import AuthenticationError, require_api_token
from .config import Settings, get_settings
from .correlator import CorrelationState
from .gateway import McpGateway
from .middleware import add_timing_middleware
from .models import MessageParseError, error_response, parse_message, sse_frame
from .server import ToolServer
from .storage import StorageAdapter, create_storage
from .tools import ToolRegistry, register_default_tools, tool_catalog

logger = logging.getLogger(__name__)

SESSION_HEADERS = {"Mcp-Session-Id": "stateless-session"}

SSE_HEADERS = {
    **SESSION_HEADERS,
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

_FAILURE_STATUS = {
    CorrelationState.TIMED_OUT: 504,
    CorrelationState.FAILED: 500,
}


class ToolCallRequest(BaseModel):
    name: str
    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("arguments", "args"),
    )


def create_http_app(
    settings: Optional[Settings] = None,
    registry: Optional[ToolRegistry] = None,
    storage: Optional[StorageAdapter] = None,
) -> FastAPI:
    """
    Create the FastAPI app exposing the tool registry over MCP and plain HTTP.

    MCP over HTTP:
    - Client POSTs one JSON-RPC message to /mcp
    - Requests are answered with a single SSE event: "event: message\\ndata: <json>\\n\\n"
    - Notifications are acknowledged with 202 and an empty body

    The registry, storage and gateway are built once here and shared by
    every request.
    """
    settings = settings or get_settings()
    if registry is None:
        registry = ToolRegistry()
        register_default_tools(registry, settings)
    storage = storage or create_storage(settings)

    gateway = McpGateway(
        registry,
        tool_server=ToolServer(registry, name=settings.server_name, version=settings.server_version),
        request_timeout=settings.request_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with gateway.run():
            yield

    app = FastAPI(
        title="Worker MCP Gateway",
        version=settings.server_version,
        description="MCP tool gateway over HTTP/SSE",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.storage = storage
    app.state.gateway = gateway

    add_timing_middleware(app, settings.slow_request_threshold_ms)

    @app.exception_handler(AuthenticationError)
    async def auth_error(request: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"error": {"code": exc.code, "message": exc.message}},
        )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "worker-mcp",
            "tools": len(registry),
            "storage": storage.backend,
        }

    @app.get("/", response_class=HTMLResponse)
    async def dashboard():
        rows = "".join(
            f"<tr><td><code>{html.escape(unit.name)}</code></td>"
            f"<td>{html.escape(unit.description.strip().splitlines()[0] if unit.description.strip() else '')}</td>"
            f"<td>{html.escape(', '.join(unit.schema))}</td></tr>"
            for unit in registry.list_all()
        )
        return HTMLResponse(
            "<!doctype html><html><head><title>Worker MCP - Command Center</title></head><body>"
            f"<h2>{html.escape(settings.server_name)}</h2>"
            f"<p>{len(registry)} tools available. MCP endpoint: <code>/mcp</code></p>"
            "<table><thead><tr><th>Tool</th><th>Description</th><th>Parameters</th></tr></thead>"
            f"<tbody>{rows}</tbody></table></body></html>"
        )

    @app.get("/api/tools")
    async def list_tools():
        return {"tools": tool_catalog(registry)}

    @app.get("/api/tools/mcp")
    async def list_mcp_tools():
        return {
            "tools": [
                {"name": tool.name, "description": tool.description, "input_schema": tool.inputSchema}
                for tool in registry.list_tools()
            ]
        }

    @app.post("/api/tools/call", dependencies=[Depends(require_api_token)])
    async def call_tool(body: ToolCallRequest):
        result = await registry.execute(body.name, body.arguments)
        return JSONResponse(
            status_code=400 if result.isError else 200,
            content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    @app.post("/mcp", dependencies=[Depends(require_api_token)])
    async def mcp_endpoint(request: Request):
        """
        MCP JSON-RPC endpoint.

        Supported methods: initialize, ping, tools/list, tools/call.
        """
        body = await request.body()
        try:
            message = parse_message(body)
        except MessageParseError as e:
            logger.info("Rejected malformed message: %s", e)
            return JSONResponse(
                status_code=400,
                content=error_response(None, types.PARSE_ERROR, str(e)),
                headers=SESSION_HEADERS,
            )

        payload = message.payload()
        logger.info("[MCP] Request: %s", json.dumps(payload))

        if message.is_notification:
            gateway.notify(payload)
            return Response(
                content="",
                status_code=202,
                media_type="text/event-stream",
                headers=SESSION_HEADERS,
            )

        exchange = await gateway.request(payload)

        if not exchange.matched:
            return JSONResponse(
                status_code=_FAILURE_STATUS[exchange.state],
                content=exchange.reply,
                headers=SESSION_HEADERS,
            )

        logger.info("[MCP] Response: %s", json.dumps(exchange.reply))

        async def generate_sse() -> AsyncIterator[str]:
            yield sse_frame(exchange.reply)

        return StreamingResponse(
            generate_sse(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return app


async def run_http_server(settings: Settings) -> None:
    """Run the HTTP server using uvicorn."""
    import uvicorn

    app = create_http_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
    server = uvicorn.Server(config)
    await server.serve()

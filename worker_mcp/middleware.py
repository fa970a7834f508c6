from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response

logger = logging.getLogger(__name__)


def _request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _client_ip(request: Request) -> str:
    for header in ("cf-connecting-ip", "x-forwarded-for", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def add_timing_middleware(app: FastAPI, slow_request_threshold_ms: int = 1000) -> None:
    """
    Tag every response with a request id and its processing time.

    Requests slower than the threshold are logged at warning level; failed
    ones are logged with their traceback and re-raised.
    """

    @app.middleware("http")
    async def timing(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = _request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.exception(
                "[%s] %s %s - 500 (%.0fms)", request_id, request.method, request.url.path, duration_ms
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["x-request-id"] = request_id
        response.headers["x-response-time"] = f"{duration_ms:.0f}ms"
        response.headers["x-timestamp"] = datetime.now(timezone.utc).isoformat()

        if duration_ms > slow_request_threshold_ms:
            logger.warning(
                "[SLOW REQUEST] [%s] %s %s - %d (%.0fms) - IP: %s",
                request_id,
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                _client_ip(request),
            )
        else:
            logger.info(
                "[%s] %s %s - %d (%.0fms)",
                request_id,
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
        return response

from __future__ import annotations

from typing import Optional

from fastapi import Request

from .config import Settings


class AuthenticationError(Exception):
    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


def extract_token(request: Request) -> Optional[str]:
    """Token from `Authorization: Bearer <token>`, falling back to `x-api-key`."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip()
    return request.headers.get("x-api-key")


def check_token(settings: Settings, token: Optional[str]) -> None:
    allowed = settings.api_token_list
    if not allowed:
        raise AuthenticationError("config_missing", "API_TOKENS environment variable is not configured")
    if not token or token not in allowed:
        raise AuthenticationError("unauthorized", "Invalid or missing API token")


async def require_api_token(request: Request) -> None:
    """FastAPI dependency guarding the protocol and invocation endpoints."""
    check_token(request.app.state.settings, extract_token(request))

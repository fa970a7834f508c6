from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from mcp import types
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

RequestId = Union[int, str, None]


class MessageParseError(ValueError):
    """Raised when an inbound body is not a usable JSON-RPC message."""


class JsonRpcMessage(BaseModel):
    """
    Inbound JSON-RPC 2.0 envelope.

    Only the fields needed for routing are declared; everything else the
    client sent is preserved and forwarded untouched. Whether `id` was
    present at all (as opposed to `"id": null`) is what separates a
    request from a notification.
    """

    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    method: str = Field(min_length=1)
    id: RequestId = None
    params: Optional[Dict[str, Any]] = None

    @field_validator("jsonrpc")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if value != "2.0":
            raise ValueError("jsonrpc must be '2.0'")
        return value

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def parse_message(body: Union[bytes, str]) -> JsonRpcMessage:
    try:
        data = json.loads(body)
    except ValueError as e:
        raise MessageParseError(f"Parse error: {e}") from e

    if not isinstance(data, dict):
        raise MessageParseError("Parse error: message must be a JSON object")

    try:
        return JsonRpcMessage.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "message"
        raise MessageParseError(f"Parse error: {location}: {first['msg']}") from e


def result_response(request_id: RequestId, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: RequestId, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error = types.ErrorData(code=code, message=message, data=data)
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": error.model_dump(exclude_none=True),
    }


def sse_frame(message: Dict[str, Any]) -> str:
    return f"event: message\ndata: {json.dumps(message)}\n\n"

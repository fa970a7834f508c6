from .jsonrpc import (
    JsonRpcMessage,
    MessageParseError,
    RequestId,
    error_response,
    parse_message,
    result_response,
    sse_frame,
)

__all__ = [
    "JsonRpcMessage",
    "MessageParseError",
    "RequestId",
    "error_response",
    "parse_message",
    "result_response",
    "sse_frame",
]

"""
Request/response correlation over the shared protocol channel.

Every request submitted through the channel waits for the first outbound
message that looks like its reply. The match is deliberately broad (same
id, an initialize result, or any message carrying `result` or `error`),
which is only sound while one request is in flight at a time. The
correlator therefore serializes requests through a lock, and remembers the
ids of requests that timed out so their late replies are not taken for the
reply of whatever request comes next.
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional

import anyio
from mcp import types

from .channel import ChannelClosedError, ChannelEndpoint, Message
from .models import RequestId, error_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
EXPIRED_ID_HISTORY = 64


class CorrelationState(str, enum.Enum):
    SUBMITTED = "submitted"
    AWAITING_MATCH = "awaiting-match"
    MATCHED = "matched"
    TIMED_OUT = "timed-out"
    FAILED = "failed"


TERMINAL_STATES = frozenset({CorrelationState.MATCHED, CorrelationState.TIMED_OUT, CorrelationState.FAILED})


@dataclass
class PendingCorrelation:
    request_id: RequestId
    method: Optional[str]
    state: CorrelationState = CorrelationState.SUBMITTED
    reply: Optional[Message] = None
    expired_ids: Deque[RequestId] = field(default_factory=deque, repr=False)
    _done: anyio.Event = field(default_factory=anyio.Event, repr=False)

    @classmethod
    def for_request(cls, message: Message, expired_ids: Optional[Deque[RequestId]] = None) -> PendingCorrelation:
        return cls(
            request_id=message.get("id"),
            method=message.get("method"),
            expired_ids=expired_ids if expired_ids is not None else deque(),
        )

    def matches(self, message: Message) -> bool:
        if "id" in message and message["id"] == self.request_id:
            return True
        result = message.get("result")
        if self.method == "initialize" and isinstance(result, dict) and "protocolVersion" in result:
            return True
        return "result" in message or "error" in message

    def is_stale(self, message: Message) -> bool:
        """A reply to an earlier request that already timed out."""
        if "id" not in message or message["id"] == self.request_id:
            return False
        return message["id"] in self.expired_ids

    def observe(self, message: Message) -> None:
        """Channel handler: settle on the first matching message."""
        if self.state is not CorrelationState.AWAITING_MATCH:
            return
        if self.is_stale(message):
            self.expired_ids.remove(message["id"])
            logger.info("Dropping late reply for expired request %s", message["id"])
            return
        if self.matches(message):
            self._settle(CorrelationState.MATCHED, message)

    def expire(self) -> None:
        self._settle(
            CorrelationState.TIMED_OUT,
            error_response(self.request_id, types.INTERNAL_ERROR, "Request timeout"),
        )

    def fail(self, reason: str) -> None:
        self._settle(
            CorrelationState.FAILED,
            error_response(self.request_id, types.INTERNAL_ERROR, reason),
        )

    def _settle(self, state: CorrelationState, reply: Message) -> None:
        if self.state in TERMINAL_STATES:
            return
        self.state = state
        self.reply = reply
        self._done.set()

    async def wait(self) -> None:
        await self._done.wait()


@dataclass(frozen=True)
class Exchange:
    """Final outcome of one correlated request."""

    state: CorrelationState
    reply: Dict[str, Any]

    @property
    def matched(self) -> bool:
        return self.state is CorrelationState.MATCHED


class RequestCorrelator:
    def __init__(self, endpoint: ChannelEndpoint, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._lock = anyio.Lock()
        self._expired_ids: Deque[RequestId] = deque(maxlen=EXPIRED_ID_HISTORY)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def exchange(self, message: Message) -> Exchange:
        """
        Submit a request and wait for its reply.

        Never raises for protocol-level problems: a submission fault or a
        missed deadline comes back as an `Exchange` carrying a synthetic
        JSON-RPC error with the original request id.
        """
        pending = PendingCorrelation.for_request(message, self._expired_ids)

        try:
            with anyio.fail_after(self._timeout):
                async with self._lock:
                    self._endpoint.on_message(pending.observe)
                    try:
                        await self._submit_and_wait(pending, message)
                    finally:
                        self._endpoint.detach(pending.observe)
        except TimeoutError:
            # Requests still queued on the lock were never sent
            if pending.state is CorrelationState.AWAITING_MATCH and "id" in message:
                self._expired_ids.append(pending.request_id)
            pending.expire()
            logger.warning(
                "Request %s (%s) timed out after %.1fs", pending.request_id, pending.method, self._timeout
            )

        if pending.reply is None:
            raise RuntimeError(f"Request {pending.request_id} finished without a reply")
        return Exchange(state=pending.state, reply=pending.reply)

    async def _submit_and_wait(self, pending: PendingCorrelation, message: Message) -> None:
        pending.state = CorrelationState.AWAITING_MATCH
        try:
            await self._endpoint.submit(message)
        except ChannelClosedError as e:
            logger.error("Failed to submit request %s: %s", pending.request_id, e)
            pending.fail(str(e))
            return
        await pending.wait()

"""
In-process duplex message channel.

A linked pair of endpoints stands in for a network transport between the
HTTP layer (client side) and the tool server (server side). Each endpoint
can submit messages to its peer and consume the messages its peer sent,
either by iterating over them or by running a dispatch loop that hands
each one to the currently registered handler.
"""

from __future__ import annotations

import logging
import math
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

logger = logging.getLogger(__name__)

Message = Dict[str, Any]
MessageHandler = Callable[[Message], None]


class ChannelClosedError(RuntimeError):
    """The peer endpoint is gone and can no longer accept messages."""


class ChannelEndpoint:
    def __init__(
        self,
        name: str,
        send_stream: MemoryObjectSendStream[Message],
        receive_stream: MemoryObjectReceiveStream[Message],
    ) -> None:
        self.name = name
        self._send_stream = send_stream
        self._receive_stream = receive_stream
        self._handler: Optional[MessageHandler] = None

    async def submit(self, message: Message) -> None:
        """Queue `message` for the peer. Returns once delivery is scheduled."""
        try:
            await self._send_stream.send(message)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise ChannelClosedError(f"{self.name} channel is closed") from e

    def on_message(self, handler: Optional[MessageHandler]) -> None:
        """Install the single active handler, replacing any previous one."""
        self._handler = handler

    def detach(self, handler: MessageHandler) -> None:
        """Remove `handler` if it is still the active one."""
        if self._handler == handler:
            self._handler = None

    @property
    def handler(self) -> Optional[MessageHandler]:
        return self._handler

    async def messages(self) -> AsyncIterator[Message]:
        async with self._receive_stream:
            async for message in self._receive_stream:
                yield message

    async def run(self) -> None:
        """Feed every inbound message to the active handler until the peer closes."""
        async for message in self.messages():
            handler = self._handler
            if handler is None:
                logger.debug("[%s] no handler attached, dropping message: %s", self.name, message)
                continue
            try:
                handler(message)
            except Exception:
                logger.exception("[%s] message handler failed", self.name)

    async def aclose(self) -> None:
        await self._send_stream.aclose()
        await self._receive_stream.aclose()


def create_linked_pair(max_buffer_size: float = math.inf) -> Tuple[ChannelEndpoint, ChannelEndpoint]:
    """Create a `(client, server)` pair of endpoints wired to each other."""
    client_to_server_send, client_to_server_receive = anyio.create_memory_object_stream[Message](max_buffer_size)
    server_to_client_send, server_to_client_receive = anyio.create_memory_object_stream[Message](max_buffer_size)

    client = ChannelEndpoint("client", client_to_server_send, server_to_client_receive)
    server = ChannelEndpoint("server", server_to_client_send, client_to_server_receive)
    return client, server

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import anyio
from anyio.abc import TaskGroup

from .channel import ChannelClosedError, ChannelEndpoint, Message, create_linked_pair
from .correlator import DEFAULT_TIMEOUT_SECONDS, Exchange, RequestCorrelator
from .server import ToolServer
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class _Connection:
    client: ChannelEndpoint
    server: ChannelEndpoint
    correlator: RequestCorrelator
    task_group: TaskGroup


class McpGateway:
    """
    Composition root tying the registry, the tool server and the channel together.

    The channel pair and the tool server task are created lazily on the
    first message and reused for every later one. Background tasks live in
    the task group opened by `run()`, which the HTTP app enters for its
    whole lifespan.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        tool_server: Optional[ToolServer] = None,
        request_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.registry = registry
        self.tool_server = tool_server or ToolServer(registry)
        self.request_timeout = request_timeout
        self._task_group: Optional[TaskGroup] = None
        self._connection: Optional[_Connection] = None

    @asynccontextmanager
    async def run(self) -> AsyncIterator[McpGateway]:
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                yield self
            finally:
                tg.cancel_scope.cancel()
                self._task_group = None
                self._connection = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def _ensure_connected(self) -> _Connection:
        if self._connection is not None:
            return self._connection
        if self._task_group is None:
            raise RuntimeError("Gateway is not running; use 'async with gateway.run()'")

        client, server = create_linked_pair()
        self._task_group.start_soon(self.tool_server.serve, server)
        self._task_group.start_soon(client.run)
        self._connection = _Connection(
            client=client,
            server=server,
            correlator=RequestCorrelator(client, timeout=self.request_timeout),
            task_group=self._task_group,
        )
        logger.info("Protocol channel connected")
        return self._connection

    async def request(self, message: Message) -> Exchange:
        """Send a request over the channel and wait for its correlated reply."""
        connection = self._ensure_connected()
        return await connection.correlator.exchange(message)

    def notify(self, message: Message) -> None:
        """Fire-and-forget delivery of a notification; the outcome is only logged."""
        connection = self._ensure_connected()
        connection.task_group.start_soon(self._deliver_notification, connection.client, message)

    async def _deliver_notification(self, client: ChannelEndpoint, message: Message) -> None:
        try:
            await client.submit(message)
        except ChannelClosedError as e:
            logger.error("Notification %s could not be delivered: %s", message.get("method"), e)

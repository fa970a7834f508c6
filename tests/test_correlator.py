"""Tests for request/reply correlation and its timeout."""

from __future__ import annotations

from collections import deque
from typing import Any, Dict

import anyio
from mcp import types

from worker_mcp.channel import create_linked_pair
from worker_mcp.correlator import CorrelationState, PendingCorrelation, RequestCorrelator
from worker_mcp.server import ToolServer
from worker_mcp.tools import FunctionTool, ToolRegistry, text_result


class TestMatching:
    async def test_same_id_matches(self) -> None:
        pending = PendingCorrelation(request_id=7, method="tools/list")
        assert pending.matches({"jsonrpc": "2.0", "id": 7})

    async def test_initialize_result_matches(self) -> None:
        pending = PendingCorrelation(request_id=1, method="initialize")
        assert pending.matches({"id": 99, "result": {"protocolVersion": "2025-03-26"}})

    async def test_any_result_or_error_matches(self) -> None:
        pending = PendingCorrelation(request_id=1, method="tools/call")
        assert pending.matches({"id": 2, "result": {}})
        assert pending.matches({"id": 2, "error": {"code": -1, "message": "x"}})

    async def test_notification_does_not_match(self) -> None:
        pending = PendingCorrelation(request_id=1, method="tools/call")
        assert not pending.matches({"jsonrpc": "2.0", "method": "notifications/progress"})

    async def test_settles_only_once(self) -> None:
        pending = PendingCorrelation(request_id=1, method="ping")
        pending.state = CorrelationState.AWAITING_MATCH

        pending.observe({"id": 1, "result": {"first": True}})
        pending.observe({"id": 1, "result": {"second": True}})
        pending.expire()

        assert pending.state is CorrelationState.MATCHED
        assert pending.reply == {"id": 1, "result": {"first": True}}

    async def test_ignored_until_awaiting(self) -> None:
        pending = PendingCorrelation(request_id=1, method="ping")
        pending.observe({"id": 1, "result": {}})
        assert pending.state is CorrelationState.SUBMITTED

    async def test_reply_to_expired_request_is_skipped(self) -> None:
        pending = PendingCorrelation(request_id=2, method="ping", expired_ids=deque([1]))
        pending.state = CorrelationState.AWAITING_MATCH

        pending.observe({"id": 1, "result": {"late": True}})
        assert pending.state is CorrelationState.AWAITING_MATCH
        assert 1 not in pending.expired_ids

        pending.observe({"id": 2, "result": {}})
        assert pending.reply == {"id": 2, "result": {}}


class TestExchange:
    async def test_matched_reply(self, registry: ToolRegistry) -> None:
        client, server = create_linked_pair()
        correlator = RequestCorrelator(client, timeout=5)

        async with anyio.create_task_group() as tg:
            tg.start_soon(ToolServer(registry).serve, server)
            tg.start_soon(client.run)

            exchange = await correlator.exchange({
                "jsonrpc": "2.0",
                "id": 1,
                "method": "tools/call",
                "params": {"name": "add", "arguments": {"a": 2, "b": 3}},
            })
            tg.cancel_scope.cancel()

        assert exchange.state is CorrelationState.MATCHED
        assert exchange.reply["id"] == 1
        assert exchange.reply["result"]["content"][0]["text"] == "5"
        assert client.handler is None

    async def test_timeout_yields_synthetic_error(self) -> None:
        client, server = create_linked_pair()
        correlator = RequestCorrelator(client, timeout=0.05)

        async with anyio.create_task_group() as tg:
            tg.start_soon(client.run)
            exchange = await correlator.exchange({"jsonrpc": "2.0", "id": "abc", "method": "tools/list"})
            tg.cancel_scope.cancel()

        assert exchange.state is CorrelationState.TIMED_OUT
        assert exchange.reply["id"] == "abc"
        assert exchange.reply["error"]["code"] == -32603
        assert exchange.reply["error"]["message"] == "Request timeout"
        assert client.handler is None

    async def test_late_reply_is_dropped(self) -> None:
        client, server = create_linked_pair()
        correlator = RequestCorrelator(client, timeout=0.05)

        async with anyio.create_task_group() as tg:
            tg.start_soon(client.run)
            exchange = await correlator.exchange({"jsonrpc": "2.0", "id": 1, "method": "ping"})
            await server.submit({"jsonrpc": "2.0", "id": 1, "result": {}})
            await anyio.wait_all_tasks_blocked()
            tg.cancel_scope.cancel()

        assert exchange.state is CorrelationState.TIMED_OUT

    async def test_late_reply_does_not_answer_next_request(self) -> None:
        release = anyio.Event()

        async def _stalled(arguments: Dict[str, Any]) -> types.CallToolResult:
            await release.wait()
            return text_result("stalled result")

        registry = ToolRegistry()
        registry.register(FunctionTool(name="stalled", description="Waits for release", handler=_stalled))
        client, server = create_linked_pair()
        correlator = RequestCorrelator(client, timeout=0.1)

        async def _release_soon() -> None:
            await anyio.sleep(0.02)
            release.set()

        async with anyio.create_task_group() as tg:
            tg.start_soon(ToolServer(registry).serve, server)
            tg.start_soon(client.run)

            first = await correlator.exchange({
                "jsonrpc": "2.0",
                "id": 1,
                "method": "tools/call",
                "params": {"name": "stalled", "arguments": {}},
            })
            tg.start_soon(_release_soon)
            second = await correlator.exchange({"jsonrpc": "2.0", "id": 2, "method": "ping"})
            tg.cancel_scope.cancel()

        assert first.state is CorrelationState.TIMED_OUT
        assert second.state is CorrelationState.MATCHED
        assert second.reply == {"jsonrpc": "2.0", "id": 2, "result": {}}

    async def test_submission_failure(self) -> None:
        client, server = create_linked_pair()
        await server.aclose()
        correlator = RequestCorrelator(client, timeout=5)

        exchange = await correlator.exchange({"jsonrpc": "2.0", "id": 4, "method": "ping"})

        assert exchange.state is CorrelationState.FAILED
        assert exchange.reply["id"] == 4
        assert exchange.reply["error"]["code"] == -32603
        assert client.handler is None

    async def test_concurrent_requests_are_serialized(self, registry: ToolRegistry) -> None:
        client, server = create_linked_pair()
        correlator = RequestCorrelator(client, timeout=5)
        results = {}

        async def call(request_id: int, a: int) -> None:
            exchange = await correlator.exchange({
                "jsonrpc": "2.0",
                "id": request_id,
                "method": "tools/call",
                "params": {"name": "add", "arguments": {"a": a, "b": 1}},
            })
            results[request_id] = exchange.reply

        async with anyio.create_task_group() as tg:
            tg.start_soon(ToolServer(registry).serve, server)
            tg.start_soon(client.run)
            async with anyio.create_task_group() as calls:
                for request_id in range(1, 4):
                    calls.start_soon(call, request_id, request_id * 10)
            tg.cancel_scope.cancel()

        for request_id in range(1, 4):
            reply = results[request_id]
            assert reply["id"] == request_id
            assert reply["result"]["content"][0]["text"] == str(request_id * 10 + 1)

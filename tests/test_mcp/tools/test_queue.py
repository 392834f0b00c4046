"""
Tests for queue MCP tool handlers (queue_status, flush_queue).
"""

import asyncio
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

import mcp.types as types
from conftest import FakeSender, make_record, network_error

from linklog_sync.mcp.tools.queue import QUEUE_SPECS, QUEUE_TOOLS
from linklog_sync.mcp.tools.registry import ToolRegistry
from linklog_sync.sync.engine import SyncEngine
from linklog_sync.sync.index import LocalIndex
from linklog_sync.sync.models import SendResult
from linklog_sync.sync.queue import DurableQueue


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class _QueueTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        state_dir = Path(self._tmp.name) / ".linklog"
        self.sender = FakeSender(default=network_error("Network error: down"))
        self.engine = SyncEngine(
            LocalIndex.open(state_dir),
            DurableQueue.open(state_dir),
            self.sender,
            sleep=lambda seconds: None,
        )
        self.registry = ToolRegistry(QUEUE_SPECS)

    def call(self, name):
        return asyncio.run(self.registry.call_tool(name, {}, self.engine))


class TestQueueTools(unittest.TestCase):
    def test_tool_names(self):
        self.assertEqual(
            [t.name for t in QUEUE_TOOLS], ["queue_status", "flush_queue"]
        )


class TestQueueStatusHandler(_QueueTestCase):
    def test_empty(self):
        result = self.call("queue_status")
        self.assertFalse(result.isError)
        self.assertIn("Queued:     0", _text(result))
        self.assertEqual(result.structuredContent["items"], [])

    def test_pending_write_listed(self):
        self.engine.write(make_record())
        result = self.call("queue_status")
        self.assertIn(
            "https://www.linkedin.com/in/ada/ (append, retry 0): Network error: down",
            _text(result),
        )
        self.assertEqual(result.structuredContent["queued"], 1)


class TestFlushQueueHandler(_QueueTestCase):
    def test_flush_delivers_pending_writes(self):
        self.engine.write(make_record())
        self.sender.default = SendResult.success("4")

        result = self.call("flush_queue")

        self.assertFalse(result.isError)
        self.assertIn("1 synced", _text(result))
        self.assertEqual(result.structuredContent["counts"]["synced"], 1)
        self.assertEqual(result.structuredContent["counts"]["remaining"], 0)
        self.assertEqual(len(self.engine.queue), 0)

    def test_flush_keeps_failing_writes(self):
        self.engine.write(make_record())
        result = self.call("flush_queue")
        self.assertEqual(result.structuredContent["counts"]["requeued"], 1)
        self.assertEqual(self.engine.queue.items()[0].retry_count, 1)

    def test_flush_while_draining_is_coalesced(self):
        gate = threading.Event()
        entered = threading.Event()

        def _slow_drain():
            entered.set()
            gate.wait(timeout=5)
            return self.engine.drainer.drain()

        self.engine.scheduler._drain = _slow_drain

        async def _scenario():
            first = asyncio.create_task(
                self.registry.call_tool("flush_queue", {}, self.engine)
            )
            while not entered.is_set():
                await asyncio.sleep(0.01)
            second = await self.registry.call_tool(
                "flush_queue", {}, self.engine
            )
            gate.set()
            return await first, second

        first, second = asyncio.run(_scenario())
        self.assertFalse(first.isError)
        self.assertIn("Drained", _text(first))
        self.assertEqual(second.structuredContent, {"coalesced": True})

    def test_failed_pass_is_server_error(self):
        with patch.object(
            self.engine.scheduler,
            "request_drain",
            new=AsyncMock(return_value=None),
        ):
            result = self.call("flush_queue")
        self.assertTrue(result.isError)
        self.assertIn("Error (server_error): Drain pass failed", _text(result))

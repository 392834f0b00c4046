"""
Tests for record MCP tool handlers.

These tests drive save_row, lookup_record, test_connection and
update_endpoint through the ToolRegistry against a real SyncEngine with a
scripted sender.
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import mcp.types as types
from conftest import FakeSender, make_record, network_error

from linklog_sync.config import Config
from linklog_sync.mcp.tools.records import RECORD_SPECS, RECORD_TOOLS
from linklog_sync.mcp.tools.registry import ToolRegistry
from linklog_sync.sync.engine import SyncEngine
from linklog_sync.sync.index import LocalIndex
from linklog_sync.sync.models import ErrorKind, QueueItem, SendResult, WriteMode
from linklog_sync.sync.queue import DurableQueue

URL = "https://www.linkedin.com/in/ada/"


class ReachableSender(FakeSender):
    """FakeSender that also answers connection checks."""

    def __init__(self, *args, status=200, **kwargs):
        super().__init__(*args, **kwargs)
        self.status = status

    def validate_connection(self):
        if isinstance(self.status, Exception):
            raise self.status
        return self.status


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class _EngineTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.state_dir = Path(self._tmp.name) / ".linklog"
        self.sender = ReachableSender()
        self.engine = SyncEngine(
            LocalIndex.open(self.state_dir),
            DurableQueue.open(self.state_dir),
            self.sender,
            sleep=lambda seconds: None,
        )
        self.registry = ToolRegistry(RECORD_SPECS)

    def call(self, name, arguments=None):
        return asyncio.run(
            self.registry.call_tool(name, arguments, self.engine)
        )


class TestRecordTools(unittest.TestCase):
    """Test RECORD_TOOLS definitions."""

    def test_four_tools_defined(self):
        self.assertEqual(
            [t.name for t in RECORD_TOOLS],
            ["save_row", "lookup_record", "test_connection", "update_endpoint"],
        )

    def test_save_row_schema(self):
        schema = RECORD_TOOLS[0].inputSchema
        self.assertEqual(schema["required"], ["profile_url"])
        self.assertEqual(
            sorted(schema["properties"]),
            sorted(
                [
                    "name",
                    "title",
                    "company",
                    "profile_url",
                    "requested_at",
                    "follow_up_date",
                    "tag",
                    "notes",
                ]
            ),
        )


class TestSaveRowHandler(_EngineTestCase):
    """Test save_row handler behavior."""

    def test_first_save_appends(self):
        self.sender.default = SendResult.success("12")
        result = self.call("save_row", {"profile_url": URL, "name": "Ada"})

        self.assertFalse(result.isError)
        self.assertEqual(_text(result), f"Saved {URL} (append) (row 12).")
        self.assertEqual(
            result.structuredContent,
            {
                "profile_url": URL,
                "mode": "append",
                "success": True,
                "queued": False,
                "error": None,
                "remote_id": "12",
            },
        )

    def test_second_save_updates(self):
        self.call("save_row", {"profile_url": URL})
        result = self.call("save_row", {"profile_url": URL, "tag": "vip"})
        self.assertEqual(result.structuredContent["mode"], "update")
        self.assertEqual(self.sender.calls[1][1], WriteMode.UPDATE)

    def test_camel_case_fields_accepted(self):
        self.call("save_row", {"profileUrl": URL, "followUpDate": "2024-03-15"})
        record, _ = self.sender.calls[0]
        self.assertEqual(record.follow_up_date, "2024-03-15")

    def test_transient_failure_is_queued(self):
        self.sender.default = network_error("Network error: refused")
        result = self.call("save_row", {"profile_url": URL})

        self.assertFalse(result.isError)
        self.assertIn("Queued for retry", _text(result))
        self.assertTrue(result.structuredContent["queued"])
        self.assertEqual(result.structuredContent["error_kind"], "network_error")
        self.assertEqual(len(self.engine.queue), 1)

    def test_terminal_failure_is_error(self):
        self.sender.default = SendResult.failure(
            ErrorKind.AUTH_ERROR, "Authentication failed - check your token", 401
        )
        result = self.call("save_row", {"profile_url": URL})

        self.assertTrue(result.isError)
        self.assertIn("Error (auth_error)", _text(result))
        self.assertFalse(result.structuredContent["queued"])
        self.assertEqual(len(self.engine.queue), 0)

    def test_invalid_url_is_validation_error(self):
        result = self.call("save_row", {"profile_url": "not a url"})
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error)", _text(result))
        self.assertEqual(self.sender.calls, [])

    def test_unknown_field_is_validation_error(self):
        result = self.call("save_row", {"profile_url": URL, "email": "x@y"})
        self.assertTrue(result.isError)
        self.assertIn("validation_error", _text(result))


class TestLookupRecordHandler(_EngineTestCase):
    """Test lookup_record handler behavior."""

    def test_found(self):
        self.engine.index.upsert_entry(
            URL, "12", timestamp="2024-03-01T10:00:00+00:00"
        )
        result = self.call("lookup_record", {"profile_url": URL})

        self.assertFalse(result.isError)
        self.assertIn("Row:         12", _text(result))
        self.assertEqual(
            result.structuredContent,
            {
                "profile_url": URL,
                "remote_id": "12",
                "last_synced": "2024-03-01T10:00:00+00:00",
            },
        )

    def test_found_without_row_reference(self):
        self.engine.index.upsert_entry(URL, None)
        result = self.call("lookup_record", {"profile_url": URL})
        self.assertIn("Row:         unknown", _text(result))

    def test_not_found(self):
        result = self.call("lookup_record", {"profile_url": URL})
        self.assertTrue(result.isError)
        self.assertIn("Error (not_found)", _text(result))

    def test_missing_url(self):
        result = self.call("lookup_record", {})
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error)", _text(result))


class TestTestConnectionHandler(_EngineTestCase):
    """Test test_connection handler behavior."""

    def test_reachable(self):
        result = self.call("test_connection")
        self.assertFalse(result.isError)
        self.assertEqual(_text(result), "Endpoint reachable (HTTP 200).")
        self.assertEqual(
            result.structuredContent, {"ok": True, "status_code": 200}
        )

    def test_unreachable(self):
        self.sender.status = ConnectionError("refused")
        result = self.call("test_connection")
        self.assertTrue(result.isError)
        self.assertIn("Endpoint connection failed: refused", _text(result))
        self.assertIn("LINKLOG_URL", _text(result))


class _CandidateTestCase(_EngineTestCase):
    """Engine with active settings; candidate clients are scripted senders."""

    def setUp(self):
        super().setUp()
        self.engine.config = Config(
            endpoint_url="https://script.example.com/macros/s/old/exec",
            token="old-token",
            state_dir=str(self.state_dir),
        )
        self.candidate_status = 200
        self.built = []
        patcher = patch(
            "linklog_sync.mcp.tools.records.RemoteClient",
            side_effect=self._client,
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.registry = ToolRegistry(RECORD_SPECS)

    def _client(self, config):
        client = ReachableSender(status=self.candidate_status)
        client.config = config
        self.built.append(client)
        return client


class TestTestConnectionCandidate(_CandidateTestCase):
    def test_candidate_url_checked_not_applied(self):
        result = self.call(
            "test_connection",
            {"url": "https://script.example.com/macros/s/new/exec/"},
        )
        self.assertFalse(result.isError)
        (client,) = self.built
        self.assertEqual(
            client.config.endpoint_url,
            "https://script.example.com/macros/s/new/exec",
        )
        self.assertEqual(client.config.token, "old-token")
        self.assertEqual(
            result.structuredContent["endpoint"],
            "https://script.example.com/macros/s/new/exec",
        )
        self.assertIn("not applied", _text(result))
        self.assertIs(self.engine.sender, self.sender)

    def test_candidate_token_unreachable(self):
        self.candidate_status = ConnectionError("401 Unauthorized")
        result = self.call("test_connection", {"token": "wrong"})
        self.assertTrue(result.isError)
        self.assertIn("401 Unauthorized", _text(result))
        self.assertEqual(self.built[0].config.token, "wrong")

    def test_invalid_candidate_url(self):
        result = self.call("test_connection", {"url": "ftp://example.com"})
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error)", _text(result))
        self.assertEqual(self.built, [])

    def test_candidate_without_active_settings(self):
        self.engine.config = None
        result = self.call("test_connection", {"token": "t"})
        self.assertTrue(result.isError)
        self.assertIn("No active endpoint configuration", _text(result))


class TestUpdateEndpointHandler(_CandidateTestCase):
    def test_applies_after_successful_check(self):
        self.engine.queue.enqueue(
            QueueItem(record=make_record(URL), mode=WriteMode.APPEND)
        )
        result = self.call("update_endpoint", {"token": "new-token"})

        self.assertFalse(result.isError)
        (client,) = self.built
        self.assertIs(self.engine.sender, client)
        self.assertIs(self.engine.drainer.sender, client)
        self.assertEqual(self.engine.config.token, "new-token")
        self.assertEqual(result.structuredContent["queued"], 1)

        self.engine.drain()
        self.assertEqual(len(client.calls), 1)
        self.assertEqual(self.sender.calls, [])

    def test_failed_check_keeps_current_sender(self):
        self.candidate_status = ConnectionError("refused")
        result = self.call("update_endpoint", {"url": "https://other.example.com/exec"})
        self.assertTrue(result.isError)
        self.assertIs(self.engine.sender, self.sender)
        self.assertEqual(self.engine.config.token, "old-token")

    def test_requires_url_or_token(self):
        result = self.call("update_endpoint", {})
        self.assertTrue(result.isError)
        self.assertIn("Provide url, token or both", _text(result))

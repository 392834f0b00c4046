"""Shared pytest fixtures for linklog-sync tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from linklog_sync.config import Config
from linklog_sync.sync.index import LocalIndex
from linklog_sync.sync.models import ErrorKind, Record, SendResult
from linklog_sync.sync.queue import DurableQueue

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live spreadsheet endpoint",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live spreadsheet endpoint"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeSender:
    """Sender stub returning scripted results and recording every call.

    ``results`` is consumed in order; once exhausted, ``default`` is
    returned for every further call.
    """

    def __init__(self, results=None, default=None):
        self.results = list(results or [])
        self.default = default or SendResult.success("1")
        self.calls = []

    def send(self, record, mode):
        self.calls.append((record, mode))
        if self.results:
            return self.results.pop(0)
        return self.default


def network_error(message="connection refused"):
    return SendResult.failure(ErrorKind.NETWORK_ERROR, message)


def make_record(profile_url="https://www.linkedin.com/in/ada/", **fields):
    return Record(profile_url=profile_url, **fields)


@pytest.fixture
def mock_config(tmp_path: Path):
    """Create a Config instance pointing at a temporary state dir."""
    return Config(
        endpoint_url="https://script.example.com/macros/s/abc/exec",
        token="test-token",
        state_dir=str(tmp_path / ".linklog"),
        insecure=False,
    )


@pytest.fixture
def mock_remote_client(mock_config):
    """Create a mock RemoteClient instance for testing."""
    from linklog_sync.core.client import RemoteClient

    client = MagicMock(spec=RemoteClient)
    client.config = mock_config
    return client


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / ".linklog"


@pytest.fixture
def index(state_dir: Path) -> LocalIndex:
    return LocalIndex.open(state_dir)


@pytest.fixture
def queue(state_dir: Path) -> DurableQueue:
    return DurableQueue.open(state_dir)


@pytest.fixture
def record() -> Record:
    return make_record(
        name="Ada Lovelace",
        title="Analyst",
        company="Analytical Engines",
        requested_at="2024-03-01T10:00:00Z",
        follow_up_date="2024-03-15",
        tag="math",
        notes="met at conference",
    )

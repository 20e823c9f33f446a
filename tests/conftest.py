"""Shared fixtures for juicebox_notifier tests."""

from __future__ import annotations

import pytest
from aiohttp import web
from pytest_metadata.plugin import metadata_key

from juicebox_notifier.discord.format import NotificationFormatter
from juicebox_notifier.models.config import EventStream, NotifierConfig
from juicebox_notifier.processor import StreamProcessor
from juicebox_notifier.runner import NotifierRunner
from juicebox_notifier.storage.sqlite import SQLiteStateStore

from tests.mocks import MockIdentityResolver, MockMetadataResolver, MockSink, MockSource

SUBGRAPH_URL = "https://api.thegraph.test/subgraphs/name/juicebox"
WEBHOOK_URL = "https://discord.test/api/webhooks/123/secret-token"


def pytest_configure(config):
    """Add pipeline info to the report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Subgraph"] = SUBGRAPH_URL
    meta["Streams"] = ", ".join(s.value for s in EventStream)


def make_test_config(**overrides) -> NotifierConfig:
    """Build a NotifierConfig suitable for testing."""
    defaults = dict(
        streams=[EventStream.PAY, EventStream.PROJECT_CREATE],
        max_concurrent_events=0,
        request_timeout=5,
        delivery_retries=1,
        subgraph_url=SUBGRAPH_URL,
        webhook_url=WEBHOOK_URL,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return NotifierConfig(**defaults)


async def seed_watermarks(db_path: str, watermarks: dict[str, int]) -> None:
    s = SQLiteStateStore(db_path)
    await s.initialize()
    try:
        await s.save_watermarks(watermarks)
    finally:
        await s.close()


async def read_watermarks(db_path: str) -> dict[str, int]:
    s = SQLiteStateStore(db_path)
    await s.initialize()
    try:
        return await s.get_all_watermarks()
    finally:
        await s.close()


@pytest.fixture
def test_config():
    """Default NotifierConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_source():
    return MockSource()


@pytest.fixture
def mock_metadata():
    return MockMetadataResolver()


@pytest.fixture
def mock_identity():
    return MockIdentityResolver()


@pytest.fixture
def mock_sink():
    return MockSink(succeed=True)


@pytest.fixture
def processor(store, mock_source, mock_metadata, mock_identity, mock_sink):
    """StreamProcessor wired to mocks, logging errors to the in-memory store."""
    return StreamProcessor(
        source=mock_source,
        metadata=mock_metadata,
        identity=mock_identity,
        sink=mock_sink,
        formatter=NotificationFormatter(),
        error_log=store,
    )


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "state.db")


@pytest.fixture
def runner(db_path, mock_source, mock_metadata, mock_identity, mock_sink):
    """NotifierRunner on a file-backed store with mocked network components."""
    r = NotifierRunner(make_test_config(db_path=db_path))
    r.source = mock_source
    r.metadata = mock_metadata
    r.identity = mock_identity
    r.sink = mock_sink
    return r


@pytest.fixture
async def http_server():
    """Start aiohttp apps on free local ports; returns their base URLs."""
    runners: list[web.AppRunner] = []

    async def _start(app: web.Application) -> str:
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "127.0.0.1", 0)
        await site.start()
        runners.append(runner)
        host, port = runner.addresses[0][:2]
        return f"http://{host}:{port}"

    yield _start
    for r in runners:
        await r.cleanup()

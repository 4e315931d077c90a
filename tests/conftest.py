"""Fixtures for testing Vinyl Radio."""

import logging
import pathlib
from collections.abc import AsyncGenerator

import pytest

from vinyl_radio.common.helpers.json import json_dumps
from vinyl_radio.server.server import RadioServer
from tests.common import CATALOG, FakeTranscoder


@pytest.fixture(name="caplog")
def caplog_fixture(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Set log level to debug for tests using the caplog fixture."""
    caplog.set_level(logging.DEBUG)
    return caplog


@pytest.fixture
def transcoder() -> FakeTranscoder:
    """Return a transcoder that does not need ffmpeg."""
    return FakeTranscoder()


@pytest.fixture
async def radio(
    tmp_path: pathlib.Path, transcoder: FakeTranscoder
) -> AsyncGenerator[RadioServer, None]:
    """Start a Vinyl Radio server in test mode (api not served)."""
    storage_path = tmp_path / "root"
    storage_path.mkdir(parents=True)
    (storage_path / "catalog.json").write_text(json_dumps(CATALOG), encoding="utf-8")

    radio = RadioServer(str(storage_path), transcoder=transcoder, serve_http=False)
    await radio.start()

    try:
        yield radio
    finally:
        await radio.stop()

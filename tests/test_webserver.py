"""Tests for the HTTP api of the webserver controller."""

from typing import Any

import pytest
from aiohttp.test_utils import TestClient

from vinyl_radio.server.server import RadioServer
from tests.common import OUTPUT_TARGET


@pytest.fixture
async def client(radio: RadioServer, aiohttp_client: Any) -> TestClient:
    """Return a test client for the api of the radio."""
    return await aiohttp_client(radio.webserver.app)


async def test_server_info(client: TestClient, radio: RadioServer) -> None:
    """Test the server info endpoint."""
    resp = await client.get("/info")
    assert resp.status == 200
    data = await resp.json()
    assert data["server_id"] == radio.server_id
    assert data["schema_version"] >= 1


async def test_status(client: TestClient) -> None:
    """Test the radio status endpoint."""
    resp = await client.get("/api/radio/status")
    assert resp.status == 200
    data = await resp.json()
    assert data["success"] is True
    assert data["isLive"] is False
    assert data["maxAge"] == 90
    assert data["playlist"] == []


async def test_control(client: TestClient, radio: RadioServer) -> None:
    """Test the radio control endpoint."""
    config = {"outputTarget": OUTPUT_TARGET, "maxDuration": 900}
    resp = await client.post("/api/radio/control", json={"action": "start", "config": config})
    assert resp.status == 200
    assert (await resp.json())["success"] is True
    assert radio.live_audio.is_streaming

    resp = await client.post("/api/radio/control", json={"action": "add-track", "trackId": "t5"})
    data = await resp.json()
    assert data["success"] is True
    assert data["streamId"] in radio.live_audio.queue

    resp = await client.get("/api/radio/status")
    data = await resp.json()
    assert data["isLive"] is True
    assert len(data["playlist"]) == len(radio.radio.playlist.entries)

    resp = await client.post("/api/radio/control", json={"action": "stop"})
    assert (await resp.json())["success"] is True
    assert not radio.live_audio.is_streaming


async def test_control_errors(client: TestClient) -> None:
    """Test the error responses of the radio control endpoint."""
    resp = await client.post("/api/radio/control", json={"action": "set-track", "trackId": "nope"})
    assert resp.status == 404
    data = await resp.json()
    assert data["success"] is False
    assert data["errorCode"] == 2

    resp = await client.post("/api/radio/control", json={"action": "rewind"})
    assert resp.status == 400
    assert (await resp.json())["errorCode"] == 3

    resp = await client.post("/api/radio/control", json={"action": "add-track"})
    assert resp.status == 400

    resp = await client.post("/api/radio/control", json={"trackId": "t1"})
    assert resp.status == 400

    resp = await client.post("/api/radio/control", data="{not json")
    assert resp.status == 400
    assert "Invalid JSON" in (await resp.json())["error"]


async def test_playlist(client: TestClient) -> None:
    """Test the playlist generation endpoint."""
    resp = await client.post("/api/radio/playlist", json={"maxDuration": 900})
    assert resp.status == 200
    first = await resp.json()
    assert first["success"] is True
    assert first["trackCount"] > 0
    assert first["totalDuration"] <= 900
    assert first["algorithm"] == "balanced"

    resp = await client.post("/api/radio/playlist", json={"maxDuration": 900, "reuse": False})
    second = await resp.json()
    assert second["reused"] is False
    assert second["playlistId"] != first["playlistId"]

    resp = await client.get("/api/radio/status")
    data = await resp.json()
    assert data["playlistId"] == second["playlistId"]
    assert len(data["playlist"]) == second["trackCount"]

    resp = await client.post("/api/radio/playlist")
    assert (await resp.json())["success"] is True

    resp = await client.post("/api/radio/playlist", json={"maxDuration": 60})
    assert resp.status == 200
    assert (await resp.json())["success"] is False

    resp = await client.post("/api/radio/playlist", json={"algorithm": "random"})
    assert resp.status == 400


async def test_algorithms(client: TestClient) -> None:
    """Test the playlist algorithms endpoint."""
    resp = await client.get("/api/radio/algorithms")
    data = await resp.json()
    assert data["success"] is True
    assert len(data["algorithms"]) == 4
    assert data["algorithms"][0]["key"] == "balanced"
    assert set(data["algorithms"][0]["weights"]) == {
        "genre",
        "artist",
        "popularity",
        "recency",
        "diversity",
    }


async def test_like(client: TestClient) -> None:
    """Test the like endpoint."""
    for _ in range(2):
        resp = await client.post("/api/radio/like", json={"trackId": "t2"})
        data = await resp.json()
        assert data == {"success": True, "liked": True, "likeCount": 1}
    resp = await client.post("/api/radio/like", json={"trackId": "t2", "action": "unlike"})
    assert (await resp.json())["likeCount"] == 0

    resp = await client.post("/api/radio/like", json={"trackId": "t2", "action": "love"})
    assert resp.status == 400
    resp = await client.post("/api/radio/like", json={})
    assert resp.status == 400
    resp = await client.post("/api/radio/like", json={"trackId": "unknown"})
    assert resp.status == 404


async def test_api_command(client: TestClient, radio: RadioServer) -> None:
    """Test the generic api command endpoint."""
    resp = await client.post("/api", json={"command": "live_audio/listeners", "args": {"count": 3}})
    assert resp.status == 200
    data = await resp.json()
    assert data["success"] is True
    assert data["result"]["total_listeners"] == 3

    resp = await client.post("/api", json={"command": "live_audio/metadata"})
    data = await resp.json()
    assert data["result"]["state"] == "idle"
    assert data["result"]["peak_listeners"] == 3

    resp = await client.post(
        "/api", json={"command": "live_audio/config/update", "args": {"values": {"autoFade": False}}}
    )
    assert (await resp.json())["result"]["auto_fade"] is False
    assert radio.live_audio.mix_config.auto_fade is False

    resp = await client.post("/api", json={"command": "live_audio/listeners", "args": {"count": -1}})
    assert resp.status == 400
    data = await resp.json()
    assert data["success"] is False
    assert data["error_code"] == 3

    resp = await client.post("/api", json={"command": "does/not/exist"})
    assert resp.status == 400
    assert (await resp.json())["errorCode"] == 12

    resp = await client.post("/api", data="[]")
    assert resp.status == 400

"""Tests for the real-time fan-out channel."""
import asyncio
import json
import time

import pytest

from smartcycle.settings import settings
from smartcycle.ws_manager import Broadcaster, ConnectionManager, encode_message
from tests.helpers import reading


class FakeSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(message))


@pytest.mark.asyncio
async def test_broadcast_reaches_every_session():
    manager = ConnectionManager()
    a, b = FakeSocket(), FakeSocket()
    await manager.connect(a)
    await manager.connect(b)

    await manager.broadcast_text(encode_message("bikeData", {"bikeId": "BIKE001"}))

    assert a.accepted and b.accepted
    assert a.sent == b.sent == [{"event": "bikeData", "data": {"bikeId": "BIKE001"}}]


@pytest.mark.asyncio
async def test_failed_send_drops_session():
    manager = ConnectionManager()
    good, bad = FakeSocket(), FakeSocket(fail=True)
    await manager.connect(good)
    await manager.connect(bad)

    await manager.broadcast_text(encode_message("bikeUpdate", {}))

    assert len(manager) == 1
    assert good in manager.active_connections


@pytest.mark.asyncio
async def test_broadcaster_preserves_publish_order():
    manager = ConnectionManager()
    sock = FakeSocket()
    await manager.connect(sock)
    broadcaster = Broadcaster(manager)
    broadcaster.bind(asyncio.get_running_loop())
    task = asyncio.create_task(broadcaster.forward())

    for i in range(5):
        broadcaster.publish("bikeData", {"n": i})
    for _ in range(50):
        if len(sock.sent) == 5:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert [m["data"]["n"] for m in sock.sent] == [0, 1, 2, 3, 4]


def test_unbound_publish_is_a_noop():
    broadcaster = Broadcaster(ConnectionManager())
    broadcaster.publish("bikeData", {"bikeId": "BIKE001"})


def test_reading_fans_out_to_all_sessions_unfiltered(client):
    with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
        assert ws1.receive_json()["event"] == "connected"
        assert ws2.receive_json()["event"] == "connected"
        assert client.get("/health").json()["clientsConnected"] == 2

        # neither session owns this bike; both still receive it
        resp = client.post("/api/bike/data", json=reading(bike_id="BIKE042"))
        assert resp.status_code == 200

        for ws in (ws1, ws2):
            full = ws.receive_json()
            brief = ws.receive_json()
            assert full["event"] == "bikeData"
            assert full["data"]["bikeId"] == "BIKE042"
            assert full["data"]["receivedAt"] > 0
            assert brief["event"] == "bikeUpdate"
            assert set(brief["data"]) == {"bikeId", "data", "timestamp"}
            assert brief["data"]["timestamp"] == full["data"]["timestamp"]


def test_rejected_reading_is_not_broadcast(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        assert client.post("/api/bike/data", json={"bikeId": "BIKE001"}).status_code == 400
        client.post("/api/bike/data", json=reading(bike_id="BIKE002"))
        assert ws.receive_json()["data"]["bikeId"] == "BIKE002"


def test_health_payload(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert isinstance(body["clientsConnected"], int)
    assert body["environment"] == settings.environment
    assert body["uptime"] >= 0


def test_env_info_hidden_in_production(client, monkeypatch):
    assert client.get("/env-info").json()["jwtSecretSet"] is (not settings.jwt_secret_is_default)
    monkeypatch.setattr(settings, "environment", "production")
    assert client.get("/env-info").status_code == 404


def test_listen_only_session_keeps_receiving(client, monkeypatch):
    # a dashboard that never sends a frame must not be dropped by the app
    monkeypatch.setattr(settings, "ws_ping_interval", 0.05)
    monkeypatch.setattr(settings, "ws_ping_timeout", 0.1)

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["event"] == "connected"
        time.sleep(0.3)
        assert client.get("/health").json()["clientsConnected"] == 1

        assert client.post("/api/bike/data", json=reading(bike_id="BIKE007")).status_code == 200
        full = ws.receive_json()
        brief = ws.receive_json()
        assert full["event"] == "bikeData"
        assert full["data"]["bikeId"] == "BIKE007"
        assert brief["event"] == "bikeUpdate"


def test_closed_session_leaves_registry(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        assert client.get("/health").json()["clientsConnected"] == 1
    for _ in range(50):
        if client.get("/health").json()["clientsConnected"] == 0:
            break
        time.sleep(0.01)
    assert client.get("/health").json()["clientsConnected"] == 0


def test_failed_greeting_does_not_leak_session(client, monkeypatch):
    from smartcycle import main

    def refuse(event, payload):
        raise RuntimeError("encoder unavailable")

    monkeypatch.setattr(main, "encode_message", refuse)
    with pytest.raises(RuntimeError):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

    assert client.get("/health").json()["clientsConnected"] == 0


def test_runner_enables_protocol_pings(monkeypatch):
    import runpy

    import uvicorn

    calls = {}
    monkeypatch.setattr(uvicorn, "run", lambda app, **kw: calls.update(kw, app=app))
    runpy.run_module("smartcycle.__main__", run_name="__main__")

    assert calls["app"] == "smartcycle.main:app"
    assert calls["ws_ping_interval"] == settings.ws_ping_interval
    assert calls["ws_ping_timeout"] == settings.ws_ping_timeout

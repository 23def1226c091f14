"""API tests for the realtime service (WebSocket channels and /publish)."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import main


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "hub", main.ConnectionHub())
    with TestClient(main.app) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "clients": {"orders": 0, "iot": 0}}
    assert r.headers["X-Request-ID"]


def test_orders_channel_answers_ping(client):
    with client.websocket_connect("/ws/orders") as ws:
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong"}


def test_iot_channel_acknowledges_register(client):
    with client.websocket_connect("/ws/iot") as ws:
        ws.send_json({"event": "register", "deviceName": "locker-01"})
        assert ws.receive_json() == {"status": "connected", "deviceName": "locker-01"}


def test_unknown_channel_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as e:
        with client.websocket_connect("/ws/kitchen") as ws:
            ws.receive_json()
    assert e.value.code == main.POLICY_VIOLATION


def test_publish_fans_out_to_connected_clients(client):
    event = {"channel": "orders", "event": "orderStatusChanged", "data": {"code": "4821", "status": "READY"}}
    with client.websocket_connect("/ws/orders") as first, client.websocket_connect("/ws/orders") as second:
        for ws in (first, second):
            ws.send_json({"event": "ping"})
            assert ws.receive_json() == {"event": "pong"}

        r = client.post("/publish", json=event)

        assert r.status_code == 200
        assert r.json() == {"delivered": 2}
        expected = {"event": "orderStatusChanged", "data": {"code": "4821", "status": "READY"}}
        assert first.receive_json() == expected
        assert second.receive_json() == expected


def test_publish_does_not_cross_channels(client):
    with client.websocket_connect("/ws/iot") as device:
        device.send_json({"event": "register", "deviceName": "locker-01"})
        device.receive_json()

        r = client.post("/publish", json={"channel": "orders", "event": "orderCreated", "data": {}})
        assert r.json() == {"delivered": 0}

        r = client.post(
            "/publish",
            json={"channel": "iot", "event": "unlock", "data": {"deviceName": "locker-01", "orderCode": "4821"}},
        )
        assert r.json() == {"delivered": 1}
        assert device.receive_json() == {
            "event": "unlock",
            "data": {"deviceName": "locker-01", "orderCode": "4821"},
        }


def test_publish_without_clients_is_not_an_error(client):
    r = client.post("/publish", json={"channel": "orders", "event": "orderCreated", "data": {"code": "0001"}})
    assert r.status_code == 200
    assert r.json() == {"delivered": 0}


def test_publish_to_unknown_channel_is_404(client):
    r = client.post("/publish", json={"channel": "kitchen", "event": "x", "data": {}})
    assert r.status_code == 404
    assert r.json() == {"detail": "UNKNOWN_CHANNEL"}


def test_non_json_messages_are_ignored(client):
    with client.websocket_connect("/ws/orders") as ws:
        ws.send_text("hello")
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong"}

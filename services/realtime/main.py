"""Realtime service: WebSocket broadcast hub built with FastAPI.

Viewers and kitchen screens connect to ``/ws/orders``; locker devices
connect to ``/ws/iot``. The orders web app pushes events with
``POST /publish`` and every client on the named channel receives
``{"event": ..., "data": ...}``. There is no replay: clients that were not
connected re-poll the orders API instead.
"""

import json
import logging
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field
from pythonjsonlogger import jsonlogger

from hub import ConnectionHub

app = FastAPI(title="Realtime Service")
hub = ConnectionHub()

logger = logging.getLogger("realtime")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)

POLICY_VIOLATION = 1008


class PublishRequest(BaseModel):
    """Request body for ``/publish``.

    Attributes:
        channel: Target channel (``orders`` or ``iot``).
        event: Event name, e.g. ``orderCreated`` or ``unlock``.
        data: Arbitrary JSON payload forwarded as is.
    """
    channel: str = Field(min_length=1)
    event: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class PublishResponse(BaseModel):
    delivered: int


def reply_to(channel: str, message: dict) -> dict | None:
    """Answer for a client message, or None when it needs no answer."""
    event = message.get("event")
    if channel == "orders" and event == "ping":
        return {"event": "pong"}
    if channel == "iot" and event == "register":
        return {"status": "connected", "deviceName": message.get("deviceName")}
    return None


@app.get("/health")
def health():
    return {"ok": True, "clients": {name: hub.count(name) for name in ("orders", "iot")}}


@app.post("/publish", response_model=PublishResponse)
async def publish(req: PublishRequest):
    """Broadcast one event to every client of a channel.

    Raises:
        HTTPException: 404 with ``UNKNOWN_CHANNEL``.
    """
    if not hub.has_channel(req.channel):
        raise HTTPException(status_code=404, detail="UNKNOWN_CHANNEL")
    delivered = await hub.broadcast(req.channel, {"event": req.event, "data": req.data})
    logger.info("event broadcast", extra={"channel": req.channel, "event": req.event, "delivered": delivered})
    return PublishResponse(delivered=delivered)


@app.websocket("/ws/{channel}")
async def websocket_endpoint(websocket: WebSocket, channel: str):
    if not hub.has_channel(channel):
        logger.info("refused connection", extra={"channel": channel})
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    hub.add(channel, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                logger.info("ignoring non-JSON message", extra={"channel": channel})
                continue
            if not isinstance(message, dict):
                continue
            answer = reply_to(channel, message)
            if answer is not None:
                await websocket.send_json(answer)
    except WebSocketDisconnect:
        pass
    finally:
        hub.remove(channel, websocket)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response

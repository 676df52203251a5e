"""Scan relay channel: /ws WebSocket + /api/scan, /api/latest HTTP fallbacks."""
import json
import logging

from fastapi import APIRouter, Body, HTTPException, Request, WebSocket, WebSocketDisconnect

from ..services.broadcaster import SessionBroadcaster
from ..state import format_timestamp

logger = logging.getLogger(__name__)
router = APIRouter()


def _broadcaster(scope) -> SessionBroadcaster:
    return scope.app.state.broadcaster


async def handle_message(broadcaster: SessionBroadcaster, websocket: WebSocket, msg: dict) -> None:
    """Dispatch one decoded client frame to the broadcaster."""
    event = msg.get("event")
    if event == "join-as-scanner":
        await broadcaster.join_as_scanner(websocket)
    elif event == "join-as-viewer":
        await broadcaster.join_as_viewer(websocket)
    elif event == "qr-scanned":
        await broadcaster.qr_scanned(websocket, msg.get("data"))
    else:
        logger.debug("Ignoring unknown event %r", event)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    broadcaster = _broadcaster(websocket)
    # Only accepted sockets are registered; broadcasts before this point are not replayed.
    await broadcaster.connect(websocket)
    logger.info("Client connected: %s", websocket.client)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("text")
            if data is None:
                logger.warning("Dropping binary frame (%d bytes)", len(message.get("bytes") or b""))
                continue
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Dropping non-JSON frame: %.60r", data)
                continue
            if not isinstance(msg, dict):
                logger.warning("Dropping frame without event envelope: %.60r", data)
                continue
            await handle_message(broadcaster, websocket, msg)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("WebSocket error: %s", e)
    finally:
        logger.info("Client disconnected: %s", websocket.client)
        await broadcaster.disconnect(websocket)


@router.post("/api/scan")
async def api_scan(request: Request, body: dict = Body(default={})):
    """HTTP fallback for scanners when WebSocket is blocked."""
    if not body:
        raise HTTPException(status_code=400, detail='Need { "content": "...", "timestamp": "..." }')
    payload = await _broadcaster(request).qr_scanned(None, body)
    return {"ok": True, "timestamp": format_timestamp(payload.timestamp)}


@router.get("/api/latest")
async def api_latest(request: Request):
    """Poll for the latest scan (viewers without WebSocket)."""
    latest = _broadcaster(request).latest_message()
    if latest is None:
        return {"pending": True}
    return latest

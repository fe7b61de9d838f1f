"""
api/routes/v1/channel.py -- Authenticated websocket channel.

WS /api/v1/ws

The HTTP authorization middleware never sees websocket scopes, so the
handshake checks the token itself with authorize_channel(): same token
sources and the same validation as HTTP, but no redirect -- an invalid token
closes the socket with code 4401 before it is accepted.

Once open, the channel announces {"type": "ready"} and answers the text frame
"ping" with "pong" so clients can keep long-lived connections warm.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from auth.dependencies import authorize_channel, resolve_token

logger = logging.getLogger("admingate.api")

# Application close code: "unauthorized" in the 4000-4999 private range.
WS_UNAUTHORIZED = 4401

router = APIRouter()


@router.websocket("/ws")
async def channel(websocket: WebSocket) -> None:
    if not authorize_channel(websocket.app.state.auth, resolve_token(websocket)):
        await websocket.close(code=WS_UNAUTHORIZED)
        return
    await websocket.accept()
    await websocket.send_json({"type": "ready"})
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect as exc:
        logger.debug("Websocket closed (code=%s)", exc.code)

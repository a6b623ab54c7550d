# backend/chatrelay/api/websocket.py

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatrelay.core.state import RelayState

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
@router.websocket("/")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for the chat relay.

    The frame protocol is documented on Dispatcher. This endpoint only
    adapts the socket to it:

    Lifecycle:
    ==========
    1. Connection accepted, an anonymous session is registered
    2. Every text (or UTF-8 binary) frame is handed to the dispatcher
    3. On disconnect the session is closed, which leaves its room and
       tells the remaining members

    The endpoint is mounted on both /ws and / since the browser
    client connects to the server root.
    """
    relay: RelayState = websocket.app.state.relay

    await websocket.accept()
    session = relay.dispatcher.open_session(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""
            await relay.dispatcher.dispatch(session, data)

    except WebSocketDisconnect:
        logger.debug("Connection %s disconnected", session.connection_id)
    except Exception as e:
        logger.error("WebSocket error on %s: %s", session.connection_id, e)
    finally:
        await relay.dispatcher.close_session(session)

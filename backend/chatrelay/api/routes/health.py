# backend/chatrelay/api/routes/health.py

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from chatrelay.core.state import RelayState

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    """
    Health check endpoint.

    Returns current system status, connection counts, and room counts.

    Returns:
        dict: Status, connection count, room count, rooms with live sessions, uptime
    """
    relay: RelayState = request.app.state.relay
    uptime_seconds = (datetime.now(timezone.utc) - relay.app_start_time).total_seconds()
    return {
        "status": "healthy",
        "connections": len(relay.connection_manager.sessions),
        "rooms": len(relay.room_manager),
        "active_rooms_with_members": len(relay.connection_manager.rooms),
        "uptime_seconds": round(uptime_seconds, 1),
    }

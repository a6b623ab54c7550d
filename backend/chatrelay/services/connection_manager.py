# backend/chatrelay/services/connection_manager.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Set

if TYPE_CHECKING:
    from chatrelay.services.session import ChatSession

logger = logging.getLogger(__name__)

# ============================================================================
# CONNECTION MANAGER / BROADCASTER
# ============================================================================

class ConnectionManager:
    """
    Tracks live sessions and which room each one is attached to.

    Data Structures:
        sessions: Maps connection_id -> ChatSession
                  Example: {"3f2a...": <ChatSession alice in 1A2B3C4D5E>}

        rooms: Maps room_code -> Set of sessions currently in that room
               Example: {"1A2B3C4D5E": {session_a, session_b}}

    The ``rooms`` index is what makes a broadcast O(room size) instead of a
    scan over every open connection. It is kept in step with the session's
    current room by ChatSession itself via attach()/detach().
    """

    def __init__(self) -> None:
        # Map: connection_id -> session
        self.sessions: Dict[str, ChatSession] = {}

        # Map: room_code -> sessions currently in that room
        self.rooms: Dict[str, Set[ChatSession]] = {}

    def connect(self, session: ChatSession) -> None:
        """Register a freshly accepted connection's session."""
        self.sessions[session.connection_id] = session
        logger.info("✓ Connection %s opened. Total: %d", session.connection_id, len(self.sessions))

    def disconnect(self, session: ChatSession) -> None:
        """
        Forget a session. Removes it from the session table and from the
        room index; membership in the registry is handled by the session.
        """
        if self.sessions.pop(session.connection_id, None) is None:
            return
        if session.room_code is not None:
            self.detach(session, session.room_code)
        logger.info("✗ Connection %s closed. Total: %d", session.connection_id, len(self.sessions))

    def get_session(self, connection_id: str) -> Optional[ChatSession]:
        return self.sessions.get(connection_id)

    def attach(self, session: ChatSession, room_code: str) -> None:
        self.rooms.setdefault(room_code, set()).add(session)

    def detach(self, session: ChatSession, room_code: str) -> None:
        members = self.rooms.get(room_code)
        if members is None:
            return
        members.discard(session)
        # Clean up empty index entries
        if not members:
            del self.rooms[room_code]

    def broadcast_to_room(self, room_code: str, event: dict) -> int:
        """
        Deliver ``event`` to every open session attached to a room.

        The sender is included: it sees its own message echoed back, so
        every client renders the room in the server's order.

        Delivery is fire-and-forget. Each frame goes onto the session's
        outbound queue and is written by that session's writer task, so
        calling this never suspends. Sessions that are closing are skipped
        silently.

        Args:
            room_code: Target room code
            event: Frame dict to send (JSON serialized by the writer)

        Returns:
            int: Number of sessions the event was queued for
        """
        sessions = self.rooms.get(room_code)
        if not sessions:
            logger.debug("[routing] Skipped broadcast: room=%s has 0 sessions", room_code)
            return 0

        delivered = 0
        for session in list(sessions):
            if session.send(event):
                delivered += 1

        logger.debug("📨 Broadcast %s to room %s: %d sessions", event.get("type"), room_code, delivered)
        return delivered

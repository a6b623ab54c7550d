# backend/chatrelay/services/session.py

from __future__ import annotations

import asyncio
import logging
import secrets
import uuid
from enum import Enum
from typing import Any, Optional

from chatrelay.core.config import settings
from chatrelay.core.errors import NotFoundError, PreconditionError, ValidationError
from chatrelay.models.models import Message
from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.room_manager import RoomManager

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of one connection."""
    ANONYMOUS = "anonymous"
    IDENTIFIED = "identified"
    IN_ROOM = "in_room"
    CLOSED = "closed"


# ============================================================================
# CONNECTION SESSION
# ============================================================================

class ChatSession:
    """
    Per-connection protocol state: who the client says it is and which
    room it is in.

    The session only ever stores the room code. All room state lives in
    the RoomManager and is changed through it.

    Outbound frames are queued and written by a dedicated writer task
    (see start()), so neither the dispatcher nor a broadcast waits on a
    slow or dying socket.

    State machine:
        ANONYMOUS  --set_identity-->  IDENTIFIED
        IDENTIFIED --create_room/join_room-->  IN_ROOM
        IN_ROOM    --join_room/create_room/send_message-->  IN_ROOM
        *          --close-->  CLOSED
    """

    def __init__(
        self,
        websocket: Any,
        room_manager: RoomManager,
        connection_manager: ConnectionManager,
        connection_id: Optional[str] = None,
    ) -> None:
        self.connection_id = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self.room_manager = room_manager
        self.connection_manager = connection_manager

        self.identity: Optional[str] = None
        self.room_code: Optional[str] = None

        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._transport_open = True
        self._closed = False

    def __repr__(self) -> str:
        return f"<ChatSession {self.connection_id} identity={self.identity!r} room={self.room_code!r}>"

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.CLOSED
        if self.identity is None:
            return SessionState.ANONYMOUS
        if self.room_code is None:
            return SessionState.IDENTIFIED
        return SessionState.IN_ROOM

    @property
    def is_open(self) -> bool:
        return self._transport_open and not self._closed

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, frame: dict) -> bool:
        """
        Queue a frame for this connection.

        Returns:
            bool: False if the connection is closing and the frame was dropped
        """
        if not self.is_open:
            return False
        self._outbox.put_nowait(frame)
        return True

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the transport."""
        if self._writer is None or self._writer.done():
            return
        await self._outbox.join()

    async def _drain(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                if self._transport_open:
                    await self.websocket.send_json(frame)
            except Exception as e:
                # Socket is already closing; the read loop will close the session.
                self._transport_open = False
                logger.debug("Send to %s failed, dropping frames: %s", self.connection_id, e)
            finally:
                self._outbox.task_done()

    # ------------------------------------------------------------------
    # Protocol operations
    # ------------------------------------------------------------------

    async def set_identity(self, user_id: Optional[str], ack_type: str = "identity-set") -> None:
        """
        Bind the connection's identity and acknowledge with ``ack_type``.

        Overwriting an existing identity is allowed. While in a room the
        member entry is swapped to the new identity.
        """
        if not user_id:
            raise ValidationError("userId is required")

        previous = self.identity
        if self.room_code is not None and previous and previous != user_id:
            await self.room_manager.rename_member(self.room_code, previous, user_id)
        self.identity = user_id
        self.send({"type": ack_type, "userId": user_id})

    async def create_room(self) -> str:
        if not self.identity:
            raise PreconditionError("Must set userId before creating a room")

        if self.room_code is not None:
            await self._leave_room()

        room_code = await self.room_manager.create_room(self.identity)
        self.room_code = room_code
        self.connection_manager.attach(self, room_code)
        self.send({"type": "room-created", "roomCode": room_code})
        return room_code

    async def join_room(self, room_code: Optional[str]) -> None:
        if not room_code:
            raise ValidationError("roomCode is required")
        if not self.identity:
            raise PreconditionError("Must set userId before joining a room")
        if self.room_manager.get_room(room_code) is None:
            raise NotFoundError("Room not found")

        # Switching rooms leaves the previous one first.
        if self.room_code is not None and self.room_code != room_code:
            await self._leave_room()

        user_count = await self.room_manager.add_member(room_code, self.identity)

        # No suspension from here on: the backlog snapshot, the index update
        # and the broadcast happen before any other task touches the room.
        room = self.room_manager.get_room(room_code)
        self.room_code = room_code
        self.connection_manager.attach(self, room_code)
        self.send({
            "type": "joined-room",
            "roomCode": room_code,
            "messages": [m.model_dump(mode="json") for m in room.messages],
        })
        self.connection_manager.broadcast_to_room(
            room_code, {"type": "user-joined", "userCount": user_count}
        )
        logger.info("→ %s joined %s (%d members)", self.identity, room_code, user_count)

    async def send_message(self, content: Optional[str], display_name: Optional[str]) -> Message:
        if not content or not display_name:
            raise ValidationError("Message content and sender is required")
        if not self.room_code or not self.identity:
            raise PreconditionError("Not joined to a room or userId not set")

        message = Message(
            id=secrets.token_hex(settings.MESSAGE_ID_BYTES),
            content=content,
            sender=display_name,
            senderId=self.identity,
        )
        await self.room_manager.append_message(self.room_code, message)
        self.connection_manager.broadcast_to_room(
            self.room_code, {"type": "new-message", "message": message.model_dump(mode="json")}
        )
        return message

    async def close(self) -> None:
        """
        End the session. If it was in a room, the identity leaves that room
        and the remaining members get one "user-left". Safe to call twice.
        """
        if self._closed:
            return
        self._closed = True

        if self.room_code is not None and self.identity:
            await self._leave_room()
        self.connection_manager.disconnect(self)

        if self._writer is not None:
            self._writer.cancel()

    async def _leave_room(self) -> None:
        room_code = self.room_code
        self.connection_manager.detach(self, room_code)
        self.room_code = None
        try:
            user_count = await self.room_manager.remove_member(room_code, self.identity)
        except NotFoundError:
            return
        self.connection_manager.broadcast_to_room(
            room_code, {"type": "user-left", "userCount": user_count}
        )
        logger.info("← %s left %s (%d members)", self.identity, room_code, user_count)

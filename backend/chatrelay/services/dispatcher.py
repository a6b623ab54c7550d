# backend/chatrelay/services/dispatcher.py

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chatrelay.core.errors import ChatError, ProtocolError, ValidationError
from chatrelay.models.models import ChatMessageFrame, JoinRoomFrame, SetIdentityFrame
from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.room_manager import RoomManager
from chatrelay.services.session import ChatSession

logger = logging.getLogger(__name__)

FrameT = TypeVar("FrameT", bound=BaseModel)
Handler = Callable[[ChatSession, Dict[str, Any]], Awaitable[None]]


def parse_frame(model: Type[FrameT], frame: Dict[str, Any]) -> FrameT:
    """Validate a decoded frame against ``model``, raising our ValidationError."""
    try:
        return model.model_validate(frame)
    except PydanticValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise ValidationError(f"Invalid field: {fields}" if fields else "Invalid message format")


# ============================================================================
# DISPATCHER
# ============================================================================

class Dispatcher:
    """
    Routes inbound frames to session operations.

    Protocol:
    =========

    Client -> Server:
        {"type": "set-identity", "userId": "alice"}
            -> {"type": "identity-set", "userId": "alice"}
        {"type": "set-userId", "userId": "alice"}
            -> {"type": "userId-set", "userId": "alice"}
        {"type": "create-room"}
            -> {"type": "room-created", "roomCode": "1A2B3C4D5E"}
        {"type": "join-room", "roomCode": "1A2B3C4D5E"}
            -> {"type": "joined-room", "roomCode": "...", "messages": [...]}   (joiner only)
            -> {"type": "user-joined", "userCount": 2}                         (whole room)
        {"type": "chat-message", "content": "hi", "sender": "Alice"}
            -> {"type": "new-message", "message": {...}}                        (whole room)

    Server -> Client on disconnect of a room member:
        {"type": "user-left", "userCount": 1}

    Error:
        {"type": "error", "message": "..."}

    Errors are only ever sent to the connection that caused them and never
    close it.
    """

    def __init__(self, room_manager: RoomManager, connection_manager: ConnectionManager) -> None:
        self.room_manager = room_manager
        self.connection_manager = connection_manager
        self.handlers: Dict[str, Handler] = {
            "set-identity": self.handle_set_identity,
            # Wire names used by the browser client
            "set-userId": self.handle_set_user_id,
            "create-room": self.handle_create_room,
            "join-room": self.handle_join_room,
            "chat-message": self.handle_chat_message,
        }

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def open_session(self, websocket: Any) -> ChatSession:
        """Create, register and start the session for an accepted connection."""
        session = ChatSession(websocket, self.room_manager, self.connection_manager)
        self.connection_manager.connect(session)
        session.start()
        return session

    async def close_session(self, session: ChatSession) -> None:
        await session.close()

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @staticmethod
    def decode(data: Union[str, bytes]) -> Dict[str, Any]:
        try:
            frame = json.loads(data)
        except ValueError:
            raise ProtocolError("Invalid message format")
        if not isinstance(frame, dict):
            raise ProtocolError("Invalid message format")
        return frame

    async def dispatch(self, session: ChatSession, data: Union[str, bytes]) -> None:
        """
        Handle one inbound frame to completion.

        Any ChatError is turned into an "error" frame for ``session``.
        Anything else is logged with a traceback and reported as an
        internal error; the connection stays usable either way.
        """
        try:
            frame = self.decode(data)
            message_type = frame.get("type")
            logger.debug("Websocket input from %s: type=%s", session.connection_id, message_type)

            handler = self.handlers.get(message_type) if isinstance(message_type, str) else None
            if handler is None:
                raise ProtocolError(f"Unknown message type: {message_type}")
            await handler(session, frame)

        except ChatError as e:
            logger.warning("Rejected frame from %s: %s", session.connection_id, e.message)
            session.send({"type": "error", "message": e.message})
        except Exception:
            logger.exception("Error processing frame from %s", session.connection_id)
            session.send({"type": "error", "message": "Internal server error"})

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def handle_set_identity(self, session: ChatSession, frame: Dict[str, Any]) -> None:
        request = parse_frame(SetIdentityFrame, frame)
        await session.set_identity(request.userId)

    async def handle_set_user_id(self, session: ChatSession, frame: Dict[str, Any]) -> None:
        request = parse_frame(SetIdentityFrame, frame)
        await session.set_identity(request.userId, ack_type="userId-set")

    async def handle_create_room(self, session: ChatSession, frame: Dict[str, Any]) -> None:
        await session.create_room()

    async def handle_join_room(self, session: ChatSession, frame: Dict[str, Any]) -> None:
        request = parse_frame(JoinRoomFrame, frame)
        await session.join_room(request.roomCode)

    async def handle_chat_message(self, session: ChatSession, frame: Dict[str, Any]) -> None:
        request = parse_frame(ChatMessageFrame, frame)
        # senderId is never read from the frame; the session's identity is used.
        await session.send_message(request.content, request.sender)

# backend/chatrelay/models/models.py
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """
    A chat message as stored in a room's log and sent on the wire.

    The server fills in id, senderId and timestamp; content and sender
    (the display name) come from the client. Messages are frozen once
    created since a room's log is append-only.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    sender: str
    senderId: str
    timestamp: datetime = Field(default_factory=utc_now)


# Inbound frames. Fields are optional so that a missing value and an empty
# one are reported with the same "... is required" error by the session.

class SetIdentityFrame(BaseModel):
    userId: Optional[str] = None

class JoinRoomFrame(BaseModel):
    roomCode: Optional[str] = None

class ChatMessageFrame(BaseModel):
    content: Optional[str] = None
    sender: Optional[str] = None

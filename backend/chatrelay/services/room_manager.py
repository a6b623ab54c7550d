# backend/chatrelay/services/room_manager.py

from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from chatrelay.core.config import settings
from chatrelay.core.errors import NotFoundError
from chatrelay.models.models import Message, utc_now

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM
# ============================================================================

class Room:
    """
    State of one chat room.

    Attributes:
        code: Server generated room code
        members: Identities currently in the room (read-only view)
        messages: Chronological message log (read-only view)
        last_active: Last membership change or message append

    Only RoomManager mutates a Room, and only while holding ``lock``.
    """

    def __init__(self, code: str, owner: str) -> None:
        self.code = code
        self.last_active: datetime = utc_now()
        self.lock = asyncio.Lock()
        self._members: Set[str] = {owner}
        self._messages: List[Message] = []

    @property
    def members(self) -> FrozenSet[str]:
        return frozenset(self._members)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def member_count(self) -> int:
        return len(self._members)

    def touch(self) -> None:
        self.last_active = utc_now()


# ============================================================================
# ROOM REGISTRY
# ============================================================================

class RoomManager:
    """
    In-memory registry of rooms, keyed by room code.

    The registry is the single owner of Room state. Sessions only keep a
    room code and go through the methods below for every mutation.

    Concurrency:
        Each Room carries its own asyncio.Lock. Membership changes and
        message appends on one room are serialized by that lock; rooms
        never share a lock, so traffic in one room never waits on another.

    Lifetime:
        Rooms are never deleted. An empty room keeps its message log for
        the life of the process.

    Usage:
        room_manager = RoomManager()
        code = await room_manager.create_room("alice")
        await room_manager.add_member(code, "bob")
    """

    def __init__(self, code_bytes: int = settings.ROOM_CODE_BYTES) -> None:
        self.rooms: Dict[str, Room] = {}
        self.code_bytes = code_bytes

    def __len__(self) -> int:
        return len(self.rooms)

    def _new_code(self) -> str:
        # Collisions are not checked; 40 bits of entropy by default.
        return secrets.token_hex(self.code_bytes).upper()

    def _require_room(self, room_code: str) -> Room:
        room = self.rooms.get(room_code)
        if room is None:
            raise NotFoundError("Room not found")
        return room

    async def create_room(self, owner: str) -> str:
        """
        Create a new room with ``owner`` as its only member.

        Args:
            owner: Identity of the creating connection

        Returns:
            str: The new room code
        """
        code = self._new_code()
        self.rooms[code] = Room(code, owner)
        logger.info("✓ Created room %s (owner=%s). Total rooms: %d", code, owner, len(self.rooms))
        return code

    def get_room(self, room_code: str) -> Optional[Room]:
        """
        Get a room by code.

        Returns:
            Room object if found, None otherwise
        """
        return self.rooms.get(room_code)

    async def add_member(self, room_code: str, identity: str) -> int:
        """
        Add ``identity`` to a room. Adding a present member is a no-op on the
        member set but still refreshes the activity timestamp.

        Returns:
            int: Member count after the change

        Raises:
            NotFoundError: If the room does not exist
        """
        room = self._require_room(room_code)
        async with room.lock:
            room._members.add(identity)
            room.touch()
            return room.member_count

    async def remove_member(self, room_code: str, identity: str) -> int:
        """
        Remove ``identity`` from a room. Removing an absent member is a no-op.

        Returns:
            int: Member count after the change

        Raises:
            NotFoundError: If the room does not exist
        """
        room = self._require_room(room_code)
        async with room.lock:
            room._members.discard(identity)
            room.touch()
            return room.member_count

    async def rename_member(self, room_code: str, old_identity: str, new_identity: str) -> int:
        """
        Replace ``old_identity`` with ``new_identity`` in one step, used when a
        session changes identity while in the room.

        Returns:
            int: Member count after the change

        Raises:
            NotFoundError: If the room does not exist
        """
        room = self._require_room(room_code)
        async with room.lock:
            room._members.discard(old_identity)
            room._members.add(new_identity)
            room.touch()
            return room.member_count

    async def append_message(self, room_code: str, message: Message) -> Message:
        """
        Append ``message`` to the end of a room's log.

        Raises:
            NotFoundError: If the room does not exist
        """
        room = self._require_room(room_code)
        async with room.lock:
            room._messages.append(message)
            room.touch()
        return message

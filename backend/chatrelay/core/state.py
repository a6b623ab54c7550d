# backend/chatrelay/core/state.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.dispatcher import Dispatcher
from chatrelay.services.room_manager import RoomManager


class RelayState:
    """
    Everything one running relay shares between connections.

    Built once per application by create_app() and stored on
    ``app.state.relay``; tests build their own to stay isolated.
    """

    def __init__(self, room_manager: Optional[RoomManager] = None) -> None:
        self.room_manager = room_manager if room_manager is not None else RoomManager()
        self.connection_manager = ConnectionManager()
        self.dispatcher = Dispatcher(self.room_manager, self.connection_manager)
        self.app_start_time: datetime = datetime.now(timezone.utc)

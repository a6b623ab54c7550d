"""Shared test fixtures and configuration for backend tests."""
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from chatrelay.main import create_app
from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.dispatcher import Dispatcher
from chatrelay.services.room_manager import RoomManager


class FakeWebSocket:
    """Stands in for a Starlette WebSocket; records every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket is closing")
        self.sent.append(data)


@pytest.fixture
def room_manager():
    return RoomManager()


@pytest.fixture
def connection_manager():
    return ConnectionManager()


@pytest.fixture
def dispatcher(room_manager, connection_manager):
    return Dispatcher(room_manager, connection_manager)


@pytest_asyncio.fixture
async def open_session(dispatcher):
    """Factory that opens sessions on fake sockets; closes them after the test.

    Frames a session was sent are on ``session.websocket.sent`` once
    ``await session.flush()`` returns.
    """
    sessions = []

    def _open(fail: bool = False):
        session = dispatcher.open_session(FakeWebSocket(fail=fail))
        sessions.append(session)
        return session

    yield _open

    for session in sessions:
        await session.close()


@pytest.fixture
def api_client():
    """Provide a TestClient for a fresh relay app.

    Used as a context manager so every WebSocket opened by a test shares
    one event loop, the way connections share one loop under uvicorn.
    """
    with TestClient(create_app()) as client:
        yield client

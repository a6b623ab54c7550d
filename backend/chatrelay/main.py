# backend/chatrelay/main.py

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.core.config import settings
from chatrelay.core.logging import setup_logging, get_logger
from chatrelay.core.state import RelayState
from chatrelay.services.room_manager import RoomManager
from chatrelay.api.routes import root, health
from chatrelay.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Chat relay starting on port %s", settings.PORT)
    yield
    relay: RelayState = app.state.relay
    logger.info(
        "Chat relay shutting down (%d connections, %d rooms)",
        len(relay.connection_manager.sessions),
        len(relay.room_manager),
    )


def create_app(room_manager: Optional[RoomManager] = None) -> FastAPI:
    """
    Build the relay application.

    Args:
        room_manager: Registry to serve; a fresh empty one when omitted

    Returns:
        FastAPI: App with its own RelayState on ``app.state.relay``
    """
    app = FastAPI(title="Chat Relay", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.relay = RelayState(room_manager=room_manager)

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    return app


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run("chatrelay.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()

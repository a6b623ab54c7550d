# backend/chatrelay/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Liveness endpoint.

    Answers as long as the process is serving requests.
    """
    return {"message": "WebSocket server is running"}

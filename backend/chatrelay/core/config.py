# backend/chatrelay/core/config.py
import os
from typing import List
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - HOST / PORT where uvicorn binds the relay
        - LOG_LEVEL root logger level (DEBUG, INFO, WARNING, ...)
        - CORS_ORIGINS comma separated list of allowed origins ("*" for any)
        - ROOM_CODE_BYTES random bytes behind each room code (hex encoded, upper-case)
        - MESSAGE_ID_BYTES random bytes behind each message id (hex encoded)
    """

    # Load environment variables from the .env file
    load_dotenv()

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "5001"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

    ROOM_CODE_BYTES: int = int(os.getenv("ROOM_CODE_BYTES", "5"))
    MESSAGE_ID_BYTES: int = int(os.getenv("MESSAGE_ID_BYTES", "4"))

settings = Settings()

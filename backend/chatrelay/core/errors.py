# backend/chatrelay/core/errors.py

"""
Errors raised by the session state machine and the room registry.

Every ChatError is recoverable: the Dispatcher catches it, reports the
message back to the originating connection as an "error" frame and keeps
the connection open.
"""


class ChatError(Exception):
    """Base class for all errors reported back to a client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """A required frame field is missing, empty or of the wrong type."""


class PreconditionError(ChatError):
    """The session is in the wrong state for the operation (no identity, no room)."""


class NotFoundError(ChatError):
    """The referenced room does not exist."""


class ProtocolError(ChatError):
    """The frame could not be decoded or carries an unknown type."""

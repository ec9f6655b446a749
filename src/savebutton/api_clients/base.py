"""Shared remote API types and exceptions."""

from enum import Enum
from typing import Optional


class UploadResult(str, Enum):
    """Outcome of a successful upload call."""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class RemoteError(Exception):
    """Base class for failures talking to the sync server."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransportError(RemoteError):
    """Raised when the server is unreachable, times out or answers with an unexpected status."""
    pass


class AuthenticationError(RemoteError):
    """Raised when the server rejects the account credentials (HTTP 401)."""
    pass


class ValidationError(RemoteError):
    """Raised when the server rejects an uploaded body (HTTP 417/422)."""
    pass

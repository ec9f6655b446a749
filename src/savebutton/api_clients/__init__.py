"""API clients package for the Save Button sync server."""

from .base import (
    UploadResult,
    RemoteError,
    TransportError,
    AuthenticationError,
    ValidationError
)

from .remote import RemoteClient, mime_type_for, parse_listing

__all__ = [
    # Results and exceptions
    "UploadResult",
    "RemoteError",
    "TransportError",
    "AuthenticationError",
    "ValidationError",

    # Client
    "RemoteClient",
    "mime_type_for",
    "parse_listing"
]

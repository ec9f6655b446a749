"""Local storage package: file collections and the persistent key/value store."""

from .file_store import (
    Collection,
    BIDIRECTIONAL_COLLECTIONS,
    FileNotFoundInStore,
    LocalFileStore,
    is_hidden_name
)
from .kv import KeyValueStore

__all__ = [
    "Collection",
    "BIDIRECTIONAL_COLLECTIONS",
    "FileNotFoundInStore",
    "LocalFileStore",
    "KeyValueStore",
    "is_hidden_name"
]

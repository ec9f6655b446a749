"""Core sync logic package."""

from .sync_engine import (
    SyncEngine,
    SyncReport,
    CollectionResult,
    WordsResult,
    WordsDownload,
    TransferError,
    plan_transfers
)
from .bookmarks import BookmarkIndex
from .capture import CapturedFile, bookmark_file, quote_file, image_file, note_file
from .orchestrator import SyncOrchestrator

__all__ = [
    "SyncEngine",
    "SyncReport",
    "CollectionResult",
    "WordsResult",
    "WordsDownload",
    "TransferError",
    "plan_transfers",
    "BookmarkIndex",
    "CapturedFile",
    "bookmark_file",
    "quote_file",
    "image_file",
    "note_file",
    "SyncOrchestrator"
]

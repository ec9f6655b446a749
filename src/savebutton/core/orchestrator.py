"""Sync orchestrator: single-flight sync cycles, local saves and connection tests."""

from typing import Callable, Optional, Union

from .bookmarks import BookmarkIndex
from .capture import CapturedFile
from .sync_engine import SyncEngine, SyncReport
from ..api_clients import RemoteClient
from ..bridge import DaemonBridge
from ..config.store import AccountConfig, ConfigStore
from ..storage import Collection, LocalFileStore
from ..storage.file_store import BOOKMARK_SUFFIX
from ..utils.logging import get_logger, log_async_execution_time


ClientFactory = Callable[[AccountConfig], RemoteClient]


class SyncOrchestrator:
    """Entry point for everything that triggers a sync.

    ``trigger_sync`` may be called by the scheduler, by an explicit user
    action and after every local save. Only one pass runs at a time; a call
    made while a pass is in flight returns ``None`` without syncing.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        file_store: LocalFileStore,
        bridge: Optional[DaemonBridge] = None,
        client_factory: Optional[ClientFactory] = None
    ):
        """Initialize the orchestrator.

        Args:
            config_store: Account configuration store
            file_store: Local file store
            bridge: Daemon bridge; a default one is created if omitted
            client_factory: Builds a remote client for a loaded config
        """
        self.config_store = config_store
        self.file_store = file_store
        self.bridge = bridge or DaemonBridge()
        self.client_factory = client_factory or RemoteClient
        self.bookmarks = BookmarkIndex(file_store)
        self.logger = get_logger(self.__class__.__name__)

        self._in_flight = False
        self.last_report: Optional[SyncReport] = None

    @property
    def sync_in_progress(self) -> bool:
        return self._in_flight

    async def trigger_sync(self) -> Optional[SyncReport]:
        """Run one sync cycle unless one is already running.

        Failures are logged, never raised.

        Returns:
            The cycle's report, or None if skipped or failed before syncing
        """
        if self._in_flight:
            self.logger.info("Sync already in progress, skipping trigger")
            return None

        self._in_flight = True
        try:
            return await self._run_sync()
        except Exception as e:
            self.logger.error("Sync cycle failed", error=str(e))
            return None
        finally:
            self._in_flight = False

    @log_async_execution_time
    async def _run_sync(self) -> Optional[SyncReport]:
        config = await self.config_store.load()
        if not config.is_complete:
            self.logger.debug("Not configured, skipping sync")
            return None

        self.bridge.schedule(self.bridge.push_config(config))

        async with self.client_factory(config) as client:
            report = await SyncEngine(self.file_store, client).sync_all()

        for download in report.words.files:
            self.bridge.schedule(
                self.bridge.push_words_file(download.namespace, download.filename, download.content)
            )

        if report.total_transferred > 0:
            await self.bookmarks.rebuild()

        for failure in report.failures:
            self.logger.warning("Collection not synced", failure=failure)
        for error in report.errors:
            self.logger.warning(
                "File not transferred",
                collection=error.collection,
                filename=error.filename,
                operation=error.operation,
                error=error.error
            )

        self.last_report = report
        return report

    async def test_connection(self, config: Optional[AccountConfig] = None) -> None:
        """Check the server accepts the given (or stored) credentials.

        Raises:
            AuthenticationError: Credentials were rejected
            TransportError: Server unreachable or answered with an error
        """
        config = config or await self.config_store.load()
        async with self.client_factory(config) as client:
            await client.test_connection()

    async def save_local(
        self,
        collection: Collection,
        filename: str,
        content: Union[bytes, str]
    ) -> Optional[SyncReport]:
        """Write a freshly captured file, mirror it to the daemon and sync."""
        collection = Collection(collection)
        await self.file_store.write(collection, filename, content)
        self.bridge.schedule(self.bridge.push_file(collection, filename, content))

        self.logger.info("Saved local file", collection=collection.value, filename=filename)

        if collection is Collection.ANGA and filename.endswith(BOOKMARK_SUFFIX):
            await self.bookmarks.rebuild()

        return await self.trigger_sync()

    async def capture(self, captured: CapturedFile) -> Optional[SyncReport]:
        return await self.save_local(captured.collection, captured.filename, captured.content)

    async def is_saved(self, url: str) -> bool:
        """Whether ``url`` is already bookmarked locally."""
        return await self.bookmarks.contains(url)

    async def shutdown(self) -> None:
        await self.bridge.drain()

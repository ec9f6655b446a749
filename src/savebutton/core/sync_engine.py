"""Reconciliation engine: existence-based diffs between local and remote collections."""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from ..api_clients import RemoteClient, UploadResult
from ..api_clients.base import AuthenticationError, RemoteError
from ..storage import (
    Collection,
    BIDIRECTIONAL_COLLECTIONS,
    FileNotFoundInStore,
    LocalFileStore,
    is_hidden_name
)
from ..utils.logging import get_logger, log_async_execution_time


@dataclass
class TransferError:
    """A failed transfer of a single file."""

    collection: str
    filename: str
    operation: str
    error: str
    namespace: Optional[str] = None


@dataclass
class CollectionResult:
    """Result of reconciling one bidirectional collection."""

    collection: Collection
    downloaded: int = 0
    uploaded: int = 0
    skipped: int = 0
    errors: List[TransferError] = field(default_factory=list)
    aborted: bool = False
    error_message: Optional[str] = None

    @property
    def transferred(self) -> int:
        return self.downloaded + self.uploaded

    @property
    def success(self) -> bool:
        return not self.aborted and not self.errors


@dataclass
class WordsDownload:
    """A words file fetched during this cycle."""

    namespace: str
    filename: str
    content: str


@dataclass
class WordsResult:
    """Result of the download-only words walk."""

    files: List[WordsDownload] = field(default_factory=list)
    errors: List[TransferError] = field(default_factory=list)
    aborted: bool = False
    error_message: Optional[str] = None

    @property
    def downloaded(self) -> int:
        return len(self.files)


@dataclass
class SyncReport:
    """Aggregate result of one reconciliation cycle."""

    anga: CollectionResult
    meta: CollectionResult
    words: WordsResult
    sync_duration: Optional[float] = None

    @property
    def total_downloaded(self) -> int:
        return self.anga.downloaded + self.meta.downloaded + self.words.downloaded

    @property
    def total_uploaded(self) -> int:
        return self.anga.uploaded + self.meta.uploaded

    @property
    def total_transferred(self) -> int:
        return self.total_downloaded + self.total_uploaded

    @property
    def errors(self) -> List[TransferError]:
        return self.anga.errors + self.meta.errors + self.words.errors

    @property
    def failures(self) -> List[str]:
        """Collection-level failure messages."""
        return [
            result.error_message
            for result in (self.anga, self.meta, self.words)
            if result.aborted and result.error_message
        ]

    @property
    def success(self) -> bool:
        return not self.failures and not self.errors


def plan_transfers(remote: Set[str], local: Set[str]) -> Tuple[List[str], List[str]]:
    """Return ``(to_download, to_upload)`` for two filename sets.

    Existence is the only signal: a name present on both sides is converged.
    Both lists are sorted so transfers happen in filename (timestamp) order.
    """
    to_download = sorted(remote - local)
    to_upload = sorted(local - remote)
    return to_download, to_upload


def _visible(names: Set[str]) -> Set[str]:
    # Dotfiles are excluded on both sides of the diff
    return {name for name in names if not is_hidden_name(name)}


class SyncEngine:
    """Moves files between the local store and the server until both sides
    hold the same filenames.

    Transfers are strictly sequential. For ``anga`` and ``meta`` a failed
    download aborts the rest of that collection's pass, while upload failures
    are recorded and the remaining uploads continue. ``words`` is download
    only.
    """

    def __init__(self, store: LocalFileStore, client: RemoteClient):
        """Initialize sync engine.

        Args:
            store: Local file store
            client: Remote client bound to the account
        """
        self.store = store
        self.client = client
        self.logger = get_logger(self.__class__.__name__)

    @log_async_execution_time
    async def sync_collection(self, collection: Collection) -> CollectionResult:
        """Reconcile one bidirectional collection.

        A failed download stops the pass and marks the result aborted.

        Raises:
            RemoteError: The remote listing failed
        """
        collection = Collection(collection)
        if not collection.bidirectional:
            raise ValueError(f"{collection.value} is download-only, use sync_words")

        result = CollectionResult(collection=collection)

        remote_files = _visible(await self.client.list_remote(collection))
        local_files = await self.store.list(collection)
        to_download, to_upload = plan_transfers(remote_files, local_files)

        self.logger.info(
            "Reconciling collection",
            collection=collection.value,
            remote=len(remote_files),
            local=len(local_files),
            to_download=len(to_download),
            to_upload=len(to_upload)
        )

        for filename in to_download:
            try:
                content = await self.client.fetch_remote(collection, filename)
                await self.store.write(collection, filename, content)
            except (RemoteError, OSError, ValueError) as e:
                self.logger.error(
                    "Download failed, aborting collection pass",
                    collection=collection.value,
                    filename=filename,
                    error=str(e)
                )
                result.aborted = True
                result.error_message = f"{collection.value}: {e}"
                return result
            result.downloaded += 1
            self.logger.debug("Downloaded file", collection=collection.value, filename=filename)

        for filename in to_upload:
            try:
                await self._upload_one(collection, filename, result)
            except AuthenticationError as e:
                self.logger.error("Credentials rejected during upload", collection=collection.value)
                result.aborted = True
                result.error_message = f"{collection.value}: {e}"
                return result

        return result

    async def _upload_one(self, collection: Collection, filename: str, result: CollectionResult) -> None:
        try:
            content = await self.store.read(collection, filename)
            outcome = await self.client.put_remote(collection, filename, content)
        except AuthenticationError:
            raise
        except (RemoteError, FileNotFoundInStore, OSError) as e:
            self.logger.warning(
                "Upload failed",
                collection=collection.value,
                filename=filename,
                error=str(e)
            )
            result.errors.append(TransferError(
                collection=collection.value,
                filename=filename,
                operation="upload",
                error=str(e)
            ))
            return

        result.uploaded += 1
        if outcome is UploadResult.ALREADY_EXISTS:
            result.skipped += 1
            self.logger.info(
                "Upload skipped, already exists on server",
                collection=collection.value,
                filename=filename
            )
        else:
            self.logger.debug("Uploaded file", collection=collection.value, filename=filename)

    @log_async_execution_time
    async def sync_words(self) -> WordsResult:
        """Download every words file the server has that is missing locally.

        A failed single-file fetch or write is recorded and skipped. A failed
        listing or rejected credentials abort the pass; files downloaded
        before that stay on the result.
        """
        result = WordsResult()

        try:
            await self._walk_words(result)
        except RemoteError as e:
            self.logger.error(
                "Words sync aborted",
                downloaded=len(result.files),
                error=str(e)
            )
            result.aborted = True
            result.error_message = f"{Collection.WORDS.value}: {e}"

        if result.files:
            self.logger.info("Downloaded words files", count=len(result.files))

        return result

    async def _walk_words(self, result: WordsResult) -> None:
        namespaces = _visible(await self.client.list_word_namespaces())

        for namespace in sorted(namespaces):
            remote_files = _visible(await self.client.list_words(namespace))
            try:
                local_files = await self.store.list_within_namespace(namespace)
            except (OSError, ValueError) as e:
                self.logger.warning("Skipping words namespace", namespace=namespace, error=str(e))
                result.errors.append(TransferError(
                    collection=Collection.WORDS.value,
                    filename="",
                    operation="download",
                    error=str(e),
                    namespace=namespace
                ))
                continue

            to_download, _ = plan_transfers(remote_files, local_files)

            for filename in to_download:
                try:
                    content = await self.client.fetch_word(namespace, filename)
                    await self.store.write_within_namespace(namespace, filename, content)
                except AuthenticationError:
                    raise
                except (RemoteError, OSError, ValueError) as e:
                    self.logger.warning(
                        "Words download failed",
                        namespace=namespace,
                        filename=filename,
                        error=str(e)
                    )
                    result.errors.append(TransferError(
                        collection=Collection.WORDS.value,
                        filename=filename,
                        operation="download",
                        error=str(e),
                        namespace=namespace
                    ))
                    continue

                result.files.append(WordsDownload(namespace=namespace, filename=filename, content=content))

    @log_async_execution_time
    async def sync_all(self) -> SyncReport:
        """Reconcile anga, meta and words in that order.

        A collection-level failure is recorded on that collection's result
        and does not stop the remaining collections.
        """
        start_time = time.monotonic()
        results = {}

        for collection in BIDIRECTIONAL_COLLECTIONS:
            try:
                results[collection] = await self.sync_collection(collection)
            except (RemoteError, OSError, ValueError) as e:
                self.logger.error(
                    "Collection sync aborted",
                    collection=collection.value,
                    error=str(e)
                )
                results[collection] = CollectionResult(
                    collection=collection,
                    aborted=True,
                    error_message=f"{collection.value}: {e}"
                )

        words = await self.sync_words()

        report = SyncReport(
            anga=results[Collection.ANGA],
            meta=results[Collection.META],
            words=words,
            sync_duration=time.monotonic() - start_time
        )

        self.logger.info(
            "Sync cycle completed",
            downloaded=report.total_downloaded,
            uploaded=report.total_uploaded,
            errors=len(report.errors),
            failures=len(report.failures),
            duration=f"{report.sync_duration:.2f}s"
        )

        return report

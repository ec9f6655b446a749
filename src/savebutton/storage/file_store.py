"""Local file store for the anga, meta and words collections."""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Set, Union

from ..utils.logging import get_logger


class Collection(str, Enum):
    """Named buckets of files, each with its own sync semantics."""
    ANGA = "anga"
    META = "meta"
    WORDS = "words"

    @property
    def bidirectional(self) -> bool:
        """Whether local files are uploaded as well as downloaded."""
        return self is not Collection.WORDS


BIDIRECTIONAL_COLLECTIONS = (Collection.ANGA, Collection.META)

BOOKMARK_SUFFIX = ".url"
BOOKMARK_URL_PREFIX = "URL="


class FileNotFoundInStore(Exception):
    """Raised when a requested file does not exist in the local store."""

    def __init__(self, collection: str, filename: str):
        super().__init__(f"{collection}/{filename} not found in local store")
        self.collection = collection
        self.filename = filename


def _check_name(name: str, kind: str = "filename") -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise ValueError(f"Invalid {kind}: {name!r}")
    return name


def is_hidden_name(name: str) -> bool:
    """Dotfiles are never listed or synced."""
    return name.startswith(".")


class LocalFileStore:
    """Durable, namespaced local storage of files grouped into collections.

    Layout under ``root``::

        anga/<filename>
        meta/<filename>
        words/<namespace>/<filename>

    Directories are created on demand. Listings skip dotfiles and any entry
    that cannot be inspected; single-file reads raise ``FileNotFoundInStore``.
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize the store.

        Args:
            root: Base directory holding the collection directories
        """
        self.root = Path(root).expanduser()
        self.logger = get_logger(self.__class__.__name__)

    def collection_dir(self, collection: Collection) -> Path:
        return self.root / Collection(collection).value

    def ensure_dirs(self) -> None:
        """Create the directory of every collection if absent."""
        for collection in Collection:
            self.collection_dir(collection).mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # anga / meta
    # ------------------------------------------------------------------

    def _flat_path(self, collection: Collection, filename: str) -> Path:
        collection = Collection(collection)
        if collection is Collection.WORDS:
            raise ValueError("words files live inside a namespace")
        return self.collection_dir(collection) / _check_name(filename)

    async def write(self, collection: Collection, filename: str, content: Union[bytes, str]) -> None:
        """Write ``content`` to ``collection/filename``, replacing any existing file."""
        path = self._flat_path(collection, filename)
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        await asyncio.to_thread(self._write_bytes, path, data)

        self.logger.debug(
            "Wrote local file",
            collection=Collection(collection).value,
            filename=filename,
            size=len(data)
        )

    async def read(self, collection: Collection, filename: str) -> bytes:
        """Read ``collection/filename``.

        Raises:
            FileNotFoundInStore: The file does not exist
        """
        path = self._flat_path(collection, filename)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise FileNotFoundInStore(Collection(collection).value, filename)

    async def read_text(self, collection: Collection, filename: str) -> str:
        data = await self.read(collection, filename)
        return data.decode("utf-8")

    async def list(self, collection: Collection) -> Set[str]:
        """Return the filenames stored in ``collection``."""
        directory = self.collection_dir(collection)
        return await asyncio.to_thread(self._scan, directory, False)

    # ------------------------------------------------------------------
    # words
    # ------------------------------------------------------------------

    def _words_dir(self, namespace: str) -> Path:
        return self.collection_dir(Collection.WORDS) / _check_name(namespace, "namespace")

    async def list_namespaces(self) -> Set[str]:
        """Return the namespaces present under ``words``."""
        return await asyncio.to_thread(self._scan, self.collection_dir(Collection.WORDS), True)

    async def list_within_namespace(self, namespace: str) -> Set[str]:
        """Return the filenames stored in ``words/namespace`` (empty if absent)."""
        return await asyncio.to_thread(self._scan, self._words_dir(namespace), False)

    async def write_within_namespace(self, namespace: str, filename: str, text: str) -> None:
        path = self._words_dir(namespace) / _check_name(filename)
        await asyncio.to_thread(self._write_bytes, path, text.encode("utf-8"))

        self.logger.debug("Wrote words file", namespace=namespace, filename=filename)

    async def read_within_namespace(self, namespace: str, filename: str) -> str:
        path = self._words_dir(namespace) / _check_name(filename)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise FileNotFoundInStore(f"{Collection.WORDS.value}/{namespace}", filename)
        return data.decode("utf-8")

    # ------------------------------------------------------------------
    # bookmarks
    # ------------------------------------------------------------------

    async def read_all_bookmark_urls(self) -> Set[str]:
        """Collect the ``URL=`` values of every ``.url`` file in ``anga``."""
        urls: Set[str] = set()
        for filename in await self.list(Collection.ANGA):
            if not filename.endswith(BOOKMARK_SUFFIX):
                continue
            try:
                text = await self.read_text(Collection.ANGA, filename)
            except (FileNotFoundInStore, OSError, UnicodeDecodeError) as e:
                self.logger.debug("Skipping unreadable bookmark", filename=filename, error=str(e))
                continue

            for line in text.splitlines():
                if line.startswith(BOOKMARK_URL_PREFIX):
                    urls.add(line[len(BOOKMARK_URL_PREFIX):].strip())

        return urls

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _write_bytes(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _scan(self, directory: Path, want_dirs: bool) -> Set[str]:
        names: Set[str] = set()
        try:
            entries = list(directory.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return names

        for entry in entries:
            if is_hidden_name(entry.name):
                continue
            try:
                matches = entry.is_dir() if want_dirs else entry.is_file()
            except OSError as e:
                self.logger.warning("Skipping unreadable entry", path=str(entry), error=str(e))
                continue
            if matches:
                names.add(entry.name)

        return names

"""HTTP client for the Save Button sync API."""

import asyncio
from typing import Optional, Set
from urllib.parse import quote, unquote

import aiohttp

from .base import (
    AuthenticationError,
    TransportError,
    UploadResult,
    ValidationError
)
from ..config.settings import get_settings
from ..config.store import AccountConfig
from ..storage.file_store import Collection
from ..utils.logging import get_logger, log_async_execution_time


AUTH_FAILED_MESSAGE = "Authentication failed - check your email and password"

MIME_TYPES = {
    "md": "text/markdown",
    "url": "text/plain",
    "txt": "text/plain",
    "json": "application/json",
    "toml": "application/toml",
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "html": "text/html",
    "htm": "text/html",
}


def mime_type_for(filename: str) -> str:
    """Guess an upload content type from the file extension."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return MIME_TYPES.get(ext, "application/octet-stream")


def encode_component(value: str) -> str:
    """Percent-encode a single path segment."""
    return quote(value, safe="")


def parse_listing(body: str) -> Set[str]:
    """Parse a newline-separated, percent-encoded listing into a set of names."""
    names = set()
    for line in body.split("\n"):
        name = unquote(line.strip())
        if name:
            names.add(name)
    return names


class RemoteClient:
    """Stateless accessor for listing and transferring files on the server.

    Every request carries HTTP Basic credentials. A 401 anywhere raises
    ``AuthenticationError``; network failures, timeouts and other non-2xx
    answers raise ``TransportError``.
    """

    def __init__(
        self,
        config: AccountConfig,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: Optional[float] = None
    ):
        """Initialize the remote client.

        Args:
            config: Account configuration with a decrypted password
            session: Optional shared session; one is created on demand otherwise
            timeout_seconds: Total timeout for each request
        """
        self.config = config
        self.logger = get_logger(self.__class__.__name__)
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or get_settings().remote.request_timeout_seconds
        )
        self.auth = aiohttp.BasicAuth(config.email, config.password, encoding="utf-8")
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self.session

    async def close(self):
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        server = self.config.server.rstrip("/")
        return f"{server}/api/v1/{encode_component(self.config.email)}"

    def collection_url(self, collection: Collection, *parts: str) -> str:
        url = f"{self.base_url}/{Collection(collection).value}"
        for part in parts:
            url += "/" + encode_component(part)
        return url

    # ------------------------------------------------------------------
    # request helpers
    # ------------------------------------------------------------------

    def _raise_for_status(self, status: int, what: str) -> None:
        if status == 401:
            raise AuthenticationError(AUTH_FAILED_MESSAGE, status=status)
        if not 200 <= status < 300:
            raise TransportError(f"Server returned {status} for {what}", status=status)

    async def _get(self, url: str, what: str, as_text: bool) -> object:
        session = self._ensure_session()
        try:
            async with session.get(url, auth=self.auth, timeout=self.timeout) as response:
                self._raise_for_status(response.status, what)
                if as_text:
                    return await response.text(encoding="utf-8", errors="replace")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Network error during {what}: {e}")

    # ------------------------------------------------------------------
    # anga / meta
    # ------------------------------------------------------------------

    @log_async_execution_time
    async def list_remote(self, collection: Collection) -> Set[str]:
        """List the filenames the server holds for ``collection``."""
        collection = Collection(collection)
        body = await self._get(self.collection_url(collection), f"{collection.value} listing", True)
        names = parse_listing(body)

        self.logger.debug("Fetched remote listing", collection=collection.value, count=len(names))
        return names

    async def fetch_remote(self, collection: Collection, filename: str) -> bytes:
        """Download ``collection/filename``."""
        collection = Collection(collection)
        return await self._get(
            self.collection_url(collection, filename),
            f"download of {collection.value}/{filename}",
            False
        )

    async def put_remote(self, collection: Collection, filename: str, content: bytes) -> UploadResult:
        """Upload ``content`` as ``collection/filename``.

        Returns:
            ``UploadResult.CREATED`` on 2xx, ``UploadResult.ALREADY_EXISTS`` on 409

        Raises:
            ValidationError: The server rejected the body (417/422)
            AuthenticationError: Credentials were rejected
            TransportError: Any other failure
        """
        collection = Collection(collection)
        if not collection.bidirectional:
            raise ValueError(f"{collection.value} is download-only")

        what = f"upload of {collection.value}/{filename}"
        form = aiohttp.FormData()
        form.add_field("file", content, filename=filename, content_type=mime_type_for(filename))

        session = self._ensure_session()
        try:
            async with session.post(
                self.collection_url(collection, filename),
                data=form,
                auth=self.auth,
                timeout=self.timeout
            ) as response:
                if response.status == 409:
                    return UploadResult.ALREADY_EXISTS
                if response.status == 417:
                    raise ValidationError(f"Filename mismatch for {what}", status=417)
                if response.status == 422:
                    detail = await response.text()
                    raise ValidationError(f"Invalid body for {what}: {detail}".strip(), status=422)
                self._raise_for_status(response.status, what)
                return UploadResult.CREATED
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Network error during {what}: {e}")

    # ------------------------------------------------------------------
    # words (download only)
    # ------------------------------------------------------------------

    async def list_word_namespaces(self) -> Set[str]:
        body = await self._get(self.collection_url(Collection.WORDS), "words listing", True)
        return parse_listing(body)

    async def list_words(self, namespace: str) -> Set[str]:
        body = await self._get(
            self.collection_url(Collection.WORDS, namespace),
            f"words listing of {namespace}",
            True
        )
        return parse_listing(body)

    async def fetch_word(self, namespace: str, filename: str) -> str:
        return await self._get(
            self.collection_url(Collection.WORDS, namespace, filename),
            f"download of words/{namespace}/{filename}",
            True
        )

    # ------------------------------------------------------------------
    # connection check
    # ------------------------------------------------------------------

    async def test_connection(self) -> None:
        """Verify the server is reachable and accepts the credentials.

        Raises:
            AuthenticationError: HTTP 401
            TransportError: Network failure or any other non-2xx status
        """
        await self._get(self.collection_url(Collection.ANGA), "connection test", True)
        self.logger.info("Connection test succeeded", server=self.config.server)

"""Best-effort bridge to the optional local companion daemon."""

import asyncio
from typing import Awaitable, Optional, Set, Union

import aiohttp

from ..config.settings import get_settings
from ..config.store import AccountConfig
from ..storage.file_store import Collection
from ..api_clients.remote import encode_component
from ..utils.logging import get_logger


class DaemonBridge:
    """Mirrors freshly written files and the account config to the daemon.

    The daemon is optional. Every call has a short timeout and every failure,
    including timeouts and non-2xx answers, is logged at debug level and
    otherwise ignored. ``schedule`` runs a call in the background so the
    caller's result never waits on the daemon.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        enabled: Optional[bool] = None
    ):
        """Initialize the bridge.

        Args:
            base_url: Daemon base URL, defaults to settings
            timeout_seconds: Per-call timeout, defaults to settings
            enabled: Set False to turn every call into a no-op
        """
        settings = get_settings().daemon
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.timeout_seconds)
        self.enabled = settings.enabled if enabled is None else enabled
        self.logger = get_logger(self.__class__.__name__)
        self._tasks: Set[asyncio.Task] = set()

    async def _request(self, method: str, path: str, **kwargs) -> bool:
        if not self.enabled:
            return False
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if not 200 <= response.status < 300:
                        self.logger.debug("Daemon rejected request", url=url, status=response.status)
                        return False
                    return True
        except Exception as e:
            self.logger.debug("Daemon unreachable", url=url, error=str(e))
            return False

    async def is_running(self) -> bool:
        """Check ``GET /health``."""
        return await self._request("GET", "/health")

    async def push_file(self, collection: Collection, filename: str, content: Union[bytes, str]) -> bool:
        collection = Collection(collection)
        if not collection.bidirectional:
            raise ValueError("Use push_words_file for the words collection")
        body = content.encode("utf-8") if isinstance(content, str) else content
        return await self._request("POST", f"/{collection.value}/{encode_component(filename)}", data=body)

    async def push_words_file(self, namespace: str, filename: str, text: str) -> bool:
        path = f"/words/{encode_component(namespace)}/{encode_component(filename)}"
        return await self._request("POST", path, data=text.encode("utf-8"))

    async def push_config(self, config: AccountConfig) -> bool:
        return await self._request("POST", "/config", json=config.daemon_payload())

    def schedule(self, call: Awaitable[bool]) -> asyncio.Task:
        """Run ``call`` in the background and discard its result."""
        task = asyncio.ensure_future(call)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled call to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

"""Derived index of bookmarked URLs, rebuilt from the anga collection."""

from typing import FrozenSet, Optional

from ..storage import LocalFileStore
from ..utils.logging import get_logger


class BookmarkIndex:
    """Read-through set of URLs found in ``anga/*.url`` files.

    Never authoritative: ``rebuild`` can always recreate it from the store.
    """

    def __init__(self, store: LocalFileStore):
        self.store = store
        self.logger = get_logger(self.__class__.__name__)
        self._urls: Optional[FrozenSet[str]] = None

    async def rebuild(self) -> FrozenSet[str]:
        self._urls = frozenset(await self.store.read_all_bookmark_urls())
        self.logger.debug("Bookmark index rebuilt", urls=len(self._urls))
        return self._urls

    async def urls(self) -> FrozenSet[str]:
        if self._urls is None:
            return await self.rebuild()
        return self._urls

    async def contains(self, url: str) -> bool:
        return url in await self.urls()

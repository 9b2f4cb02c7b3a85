"""Capability set every supported page layout implements."""
from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Any

from job_assistant.annotator import UIAnnotator
from job_assistant.extractor import ListingExtractor
from job_assistant.log import get_logger
from job_assistant.models import CacheEntry, Listing
from job_assistant.pagination import PaginationCrawler
from job_assistant.watcher import ContentChangeWatcher

log = get_logger(__name__)


class SiteAdapter(ABC):
    """One page layout: how to find, read, page through and annotate its listings.

    Subclasses describe the layout (selectors, markers); the shared
    components do the work.
    """

    name: str = "base"
    origin_patterns: tuple[str, ...] = ()

    def __init__(self, page: Any) -> None:
        self.page = page
        self.extractor = self.build_extractor()
        self.crawler = self.build_crawler()
        self.watcher = self.build_watcher()
        self.annotator = UIAnnotator(page)
        self.initialized = False

    @classmethod
    def detect_site(cls, url: str) -> bool:
        return any(re.search(p, url or "", re.IGNORECASE) for p in cls.origin_patterns)

    @abstractmethod
    def build_extractor(self) -> ListingExtractor: ...

    @abstractmethod
    def build_crawler(self) -> PaginationCrawler: ...

    @abstractmethod
    def build_watcher(self) -> ContentChangeWatcher | None: ...

    @abstractmethod
    async def find_listings(self) -> list[Any]:
        """Listing handles in page order."""

    async def listing_id(self, listing: Any) -> str | None:
        return await self.extractor.listing_id(listing)

    async def extract(self, listing: Any) -> Listing:
        return await self.extractor.extract(listing)

    async def find_next_page(self) -> Any | None:
        return await self.crawler.find_next()

    async def advance_page(self) -> bool:
        return await self.crawler.advance()

    async def render(self, listing: Any, entry: CacheEntry) -> bool:
        return await self.annotator.render(listing, entry)

    async def init(self) -> None:
        """Styles and change watching; called once per page by the registry."""
        if self.initialized:
            return
        await self.annotator.install_styles()
        await self.start_watching()
        self.initialized = True
        log.info("%s initialized", type(self).__name__)

    async def start_watching(self) -> None:
        if self.watcher is not None:
            await self.watcher.start()

    async def close(self) -> None:
        if self.watcher is not None:
            await self.watcher.stop()

    async def wait_for_listings(self, attempts: int = 10, delay: float = 1.0) -> list[Any]:
        for attempt in range(1, attempts + 1):
            listings = await self.find_listings()
            if listings:
                return listings
            log.debug("No listings yet (attempt %d/%d)", attempt, attempts)
            if attempt < attempts:
                await asyncio.sleep(delay)
        return []

"""
Pagination driver: turns a thread target into a complete BuildingRecord.

Pages are fetched strictly one after another, with a fixed pause before each
page request so the forum is not hammered. Any error on any page aborts the
whole scrape: a BuildingRecord is either complete or not returned at all.
"""

import asyncio
import logging
from typing import Tuple

from bs4 import BeautifulSoup
from tqdm import tqdm

from .models import BuildingRecord, PageRecord
from .parser import (
    DisabledPredicate,
    default_disabled_predicate,
    make_soup,
    parse_building_page_and_title,
    parse_extended_replies,
    parse_page,
)
from .store import BuildingStore, SyncReport
from .target import TargetInfo
from .transport import Transport

logger = logging.getLogger(__name__)

# Pause before every page fetch of a one-shot scrape.
PAGE_DELAY = 1.0


class Crawler:
    """
    Extracts threads through an authenticated Transport.

    Usage:
        crawler = Crawler(transport)
        building = await crawler.scrape_building(TargetInfo(bsn=60076, sna=8292214))
    """

    def __init__(
        self,
        transport: Transport,
        *,
        page_delay: float = PAGE_DELAY,
        is_disabled: DisabledPredicate = default_disabled_predicate,
        show_progress: bool = False,
    ):
        self.transport = transport
        self.page_delay = page_delay
        self.is_disabled = is_disabled
        self.show_progress = show_progress

    async def get_document(self, url: str) -> BeautifulSoup:
        body = await self.transport.fetch(url)
        return make_soup(body)

    async def get_building_page_and_title(self, target: TargetInfo) -> Tuple[int, str]:
        """Fetch the thread's first page and read its page count and title."""
        soup = await self.get_document(target.building_url())
        return parse_building_page_and_title(soup)

    async def extract_page(self, document, bsn: int, sna: int, page_index: int) -> PageRecord:
        """
        Parse one page and resolve the truncated reply lists it contains.

        Each truncated floor costs one extra request to the expand endpoint.
        """
        parsed = parse_page(document, bsn, sna, page_index, self.is_disabled)
        for floor, expand in parsed.pending:
            payload = await self.transport.fetch_json(expand.url)
            floor.messages = parse_extended_replies(payload)
            logger.debug("Floor %d: expanded %d replies", floor.floor_index, len(floor.messages))
        return parsed.page

    async def fetch_page(self, url: str, bsn: int, sna: int, page_index: int = 0) -> PageRecord:
        """Fetch and extract a single page (page_index 0 for "last page" views)."""
        body = await self.transport.fetch(url)
        return await self.extract_page(body, bsn, sna, page_index)

    async def scrape_building(self, target: TargetInfo) -> BuildingRecord:
        """
        Scrape every page of a thread in order.

        Raises:
            InvalidTarget: if the target ids are not positive
            BahaMinerError: the first extraction or fetch error, unchanged
        """
        target.validate()

        last_page_index, title = await self.get_building_page_and_title(target)
        logger.info("Building %d/%d %r has %d pages", target.bsn, target.sna, title, last_page_index)

        building = BuildingRecord(
            bsn=target.bsn,
            sna=target.sna,
            building_title=title,
            last_page_index=last_page_index,
        )

        pages = range(1, last_page_index + 1)
        for page_index in tqdm(pages, desc="Scraping pages", disable=not self.show_progress):
            await asyncio.sleep(self.page_delay)
            page = await self.fetch_page(target.page_url(page_index), target.bsn, target.sna, page_index)
            logger.info("Page %d/%d: %d floors", page_index, last_page_index, len(page.floor_records))
            building.pages.append(page)

        if building.pages and building.pages[0].floor_records:
            building.poster_floor = building.pages[0].floor_records[0]
        return building

    async def scrape_building_with_url(self, url: str) -> BuildingRecord:
        return await self.scrape_building(TargetInfo.from_url(url))

    async def scrape_and_sync(
        self, target: TargetInfo, store: BuildingStore
    ) -> Tuple[BuildingRecord, SyncReport]:
        """Scrape a thread, then persist it through the store."""
        building = await self.scrape_building(target)
        report = store.sync_building_tree(building)
        return building, report

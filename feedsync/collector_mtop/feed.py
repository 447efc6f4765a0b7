"""Paginated crawl of the home recommendation feed."""
from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from feedsync.errors import FeedPageError
from feedsync.models import FeedItem

from .client import MtopClient
from .filters import FeedFilter, filter_items
from .parser import parse_page

FEED_API = "mtop.taobao.idlehome.home.webpc.feed"
DEFAULT_MACH_ID = ""
LOGGER = logging.getLogger(__name__)


class FeedOptions(BaseModel):
    start_page: int = Field(default=1, ge=1)
    max_pages: int = Field(default=10, ge=1)
    page_size: int = Field(default=30, ge=1)
    mach_id: str = DEFAULT_MACH_ID
    min_want_count: int = Field(default=0, ge=0)
    days_within: int = Field(default=0, ge=0)

    @property
    def criteria(self) -> FeedFilter:
        return FeedFilter(min_want_count=self.min_want_count, days_within=self.days_within)


class FeedResult(BaseModel):
    items: List[FeedItem] = Field(default_factory=list)
    pages_fetched: int = 0
    raw_count: int = 0


def build_feed_payload(page: int, options: FeedOptions) -> dict:
    return {
        "itemId": "",
        "machId": options.mach_id,
        "pageNumber": page,
        "pageSize": options.page_size,
    }


class FeedCrawler:
    """Walk feed pages until ``max_pages`` or the upstream runs out."""

    def __init__(self, client: MtopClient, *, now: Optional[int] = None) -> None:
        self.client = client
        self.now = now

    def fetch_page(self, page: int, options: FeedOptions):
        envelope = self.client.call(FEED_API, build_feed_payload(page, options))
        return parse_page(envelope)

    def crawl(self, options: Optional[FeedOptions] = None) -> FeedResult:
        """Fetch, parse and filter every page in range.

        Any failure on a page aborts the crawl with ``FeedPageError``.
        """
        options = options or FeedOptions()
        result = FeedResult()
        criteria = options.criteria
        for page in range(options.start_page, options.max_pages + 1):
            try:
                items, has_next = self.fetch_page(page, options)
            except Exception as exc:
                raise FeedPageError(page, exc) from exc

            kept = filter_items(items, criteria, now=self.now)
            result.pages_fetched += 1
            result.raw_count += len(items)
            result.items.extend(kept)
            LOGGER.info("Page %d: %d item(s), %d kept after filtering", page, len(items), len(kept))

            if not has_next:
                LOGGER.info("Feed reports no next page after page %d", page)
                break
        return result

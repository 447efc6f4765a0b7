"""End-to-end run: convert, pre-check, enrich, sync."""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional

from pydantic import BaseModel, Field

from feedsync.bitable.converter import feed_items_to_products, merge_detail
from feedsync.bitable.service import BitableService, Period
from feedsync.collector_mtop.detail import DetailFetcher
from feedsync.collector_mtop.feed import FeedResult
from feedsync.errors import FeedSyncError, MissingCredentialError
from feedsync.models import SyncResult

LOGGER = logging.getLogger(__name__)


class RunReport(BaseModel):
    fetched: int = 0
    kept: int = 0
    admitted: int = 0
    enriched: int = 0
    pushed: int = 0
    table_id: str = ""
    success: bool = True
    message: str = ""
    failed_details: Dict[str, str] = Field(default_factory=dict)
    failed_fields: Dict[str, str] = Field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failed_details or self.failed_fields)

    def summary(self) -> str:
        text = (
            f"fetched={self.fetched} kept={self.kept} admitted={self.admitted} "
            f"enriched={self.enriched} pushed={self.pushed}"
        )
        if self.failed_details:
            text += f" failed_details={len(self.failed_details)}"
        if self.failed_fields:
            text += f" failed_fields={','.join(sorted(self.failed_fields))}"
        if not self.success:
            text += f" error={self.message}"
        return text


def run_sync(
    feed: FeedResult,
    service: BitableService,
    fetcher: Optional[DetailFetcher] = None,
    *,
    period: Optional[Period] = None,
    detail_retries: int = 3,
    capture_time_ms: Optional[int] = None,
) -> RunReport:
    """Push the items of one crawl into the period table.

    Items already stored are dropped before enrichment so details are only
    fetched for rows that will actually be written. The push reuses the
    prepared table and only repeats the dedup lookups. A failed detail lookup
    falls back to the feed data and is listed in ``failed_details``.
    """
    period = period or date.today()
    report = RunReport(fetched=feed.raw_count, kept=len(feed.items))

    products = feed_items_to_products(feed.items, capture_time_ms)
    prepared = service.prepare_period(period, products)
    report.admitted = len(prepared.admitted)
    report.table_id = prepared.table.table_id
    report.failed_fields.update(prepared.fields.failed)
    LOGGER.info("%d of %d record(s) are new for %s", report.admitted, len(products), prepared.table.name)

    if not prepared.admitted:
        report.message = "no new records"
        return report

    final = []
    for index, product in enumerate(prepared.admitted, start=1):
        if fetcher is None:
            final.append(product)
            continue
        LOGGER.info("[%d/%d] Fetching detail for %s", index, report.admitted, product.item_id)
        try:
            detail = fetcher.fetch_with_retry(product.item_id, detail_retries)
        except MissingCredentialError:
            raise
        except FeedSyncError as exc:
            LOGGER.warning("Detail for %s failed, using feed data: %s", product.item_id, exc)
            report.failed_details[product.item_id] = str(exc)
            final.append(product)
            continue
        final.append(merge_detail(product, detail))
        report.enriched += 1

    result: SyncResult = service.sync_prepared(prepared, final)
    report.pushed = result.records_created
    report.success = result.success
    report.message = result.error or result.message
    report.table_id = result.table_id or report.table_id
    report.failed_fields.update(result.failed_fields)
    return report

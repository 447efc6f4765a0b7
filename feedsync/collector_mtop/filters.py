"""Pure filtering of parsed feed items."""
from __future__ import annotations

import time
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from feedsync.models import FeedItem

DAY_MS = 24 * 60 * 60 * 1000


class FeedFilter(BaseModel):
    """Zero disables a dimension."""

    min_want_count: int = Field(default=0, ge=0)
    days_within: int = Field(default=0, ge=0)

    @property
    def active(self) -> bool:
        return self.min_want_count > 0 or self.days_within > 0


def matches(item: FeedItem, criteria: FeedFilter, now_ms: int) -> bool:
    if criteria.min_want_count > 0 and item.want_count < criteria.min_want_count:
        return False
    if criteria.days_within > 0 and item.publish_time_ts > 0:
        cutoff = now_ms - criteria.days_within * DAY_MS
        if item.publish_time_ts < cutoff:
            return False
    return True


def filter_items(
    items: Sequence[FeedItem],
    criteria: FeedFilter,
    now: Optional[int] = None,
) -> List[FeedItem]:
    """Keep items that satisfy ``criteria``, preserving order.

    Parameters
    ----------
    items : sequence of FeedItem
        Parsed items
    criteria : FeedFilter
        Minimum want count and publication window in days
    now : int, optional
        Reference time in epoch milliseconds, defaults to the wall clock

    Returns
    -------
    list of FeedItem
        Items with unknown publish time always pass the recency check
    """
    if not criteria.active:
        return list(items)
    now_ms = now if now is not None else int(time.time() * 1000)
    return [item for item in items if matches(item, criteria, now_ms)]

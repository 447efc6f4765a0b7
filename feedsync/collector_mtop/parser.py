"""Helpers that convert raw feed cards into ``FeedItem`` models."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from feedsync.errors import CardDecodeError, FeedDecodeError
from feedsync.models import FeedItem

from .client import MtopEnvelope

LOGGER = logging.getLogger(__name__)

WANT_SUFFIX = "人想要"
CREDIT_MARKER = "信用"
LEVEL_MARKER = "level"
FREE_SHIPPING_ICON = "freeShippingIcon"
FREE_SHIPPING_TAG = "包邮"
_HOT_POINT_RE = re.compile(r"^\s*(\d+)\s*人想要")
# Raised by datetime for epoch values outside the platform range.
TIMESTAMP_ERRORS = (ValueError, OverflowError, OSError)


@dataclass
class TagContext:
    """Accumulates what the classifier chain learns from one card."""

    shop_level: str = ""
    seller_credit: str = ""
    want_count: int = 0
    free_shipping: bool = False
    tags: List[str] = field(default_factory=list)

    def add_tag(self, tag: str) -> None:
        if tag and tag not in self.tags:
            self.tags.append(tag)


class ShopLevelClassifier:
    def classify(self, content: str, tracked: str, ctx: TagContext) -> bool:
        level = ""
        if LEVEL_MARKER in tracked:
            level = tracked
        elif LEVEL_MARKER in content:
            level = content
        if not level:
            return False
        ctx.shop_level = level
        ctx.add_tag(level)
        return True


class SellerCreditClassifier:
    def classify(self, content: str, tracked: str, ctx: TagContext) -> bool:
        if CREDIT_MARKER not in content:
            return False
        ctx.seller_credit = content
        ctx.add_tag(content)
        return True


class WantCountClassifier:
    """Consume ``N人想要`` tags; a non-numeric prefix is dropped silently."""

    def classify(self, content: str, tracked: str, ctx: TagContext) -> bool:
        if not content.endswith(WANT_SUFFIX):
            return False
        number = _safe_int(content[: -len(WANT_SUFFIX)].strip())
        if number is not None and number >= 0:
            ctx.want_count = number
        return True


class GeneralTagClassifier:
    def classify(self, content: str, tracked: str, ctx: TagContext) -> bool:
        if FREE_SHIPPING_ICON in content:
            ctx.free_shipping = True
            ctx.add_tag(FREE_SHIPPING_TAG)
        else:
            ctx.add_tag(content)
        return True


DEFAULT_CLASSIFIERS: Tuple[Any, ...] = (
    ShopLevelClassifier(),
    SellerCreditClassifier(),
    WantCountClassifier(),
    GeneralTagClassifier(),
)


def classify_tags(tag_list: Iterable[Dict[str, Any]], classifiers: Sequence[Any] = DEFAULT_CLASSIFIERS) -> TagContext:
    """Run every tag through the classifier chain, first match wins."""
    ctx = TagContext()
    for tag in tag_list:
        if not isinstance(tag, dict):
            continue
        content = str(_dig(tag, "data", "content") or "")
        if not content:
            continue
        tracked = str(_dig(tag, "utParams", "args", "content") or "")
        for classifier in classifiers:
            if classifier.classify(content, tracked, ctx):
                break
    return ctx


def _dig(data: Any, *path: str) -> Any:
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _safe_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _iter_fish_tags(fish_tags: Any) -> Iterable[Dict[str, Any]]:
    if not isinstance(fish_tags, dict):
        return
    for region in fish_tags.values():
        tag_list = _dig(region, "tagList")
        if isinstance(tag_list, list):
            yield from tag_list


def format_timestamp(ms: int) -> str:
    """Render epoch milliseconds as local ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _read_timestamp(attributes: Dict[str, Any], key: str) -> Tuple[int, str]:
    ms = _safe_int(attributes.get(key))
    if not ms or ms <= 0:
        return 0, ""
    try:
        return ms, format_timestamp(ms)
    except TIMESTAMP_ERRORS:
        LOGGER.debug("Ignoring out-of-range %s=%s", key, ms)
        return 0, ""


def parse_want_text(text: str) -> int:
    match = _HOT_POINT_RE.match(text or "")
    return int(match.group(1)) if match else 0


def parse_card(card: Any) -> FeedItem:
    """Map one ``cardList`` entry onto a ``FeedItem``."""
    card_data = _dig(card, "cardData")
    if not isinstance(card_data, dict):
        raise CardDecodeError("card has no cardData object")
    detail_params = card_data.get("detailParams") or {}
    attributes = card_data.get("attributeMap") or {}
    if not isinstance(detail_params, dict) or not isinstance(attributes, dict):
        raise CardDecodeError("card detailParams/attributeMap must be objects")

    try:
        return _build_item(card_data, detail_params, attributes)
    except ValidationError as exc:
        raise CardDecodeError(f"card fields are invalid: {exc}") from exc


def _build_item(card_data: Dict[str, Any], detail_params: Dict[str, Any], attributes: Dict[str, Any]) -> FeedItem:
    ctx = classify_tags(_iter_fish_tags(card_data.get("fishTags")))
    want_count = ctx.want_count
    if want_count == 0:
        want_count = parse_want_text(str(_dig(card_data, "hotPoint", "text") or ""))

    publish_ts, publish_time = _read_timestamp(attributes, "gmtShelf")
    modified_ts, modified_time = _read_timestamp(attributes, "gmtModified")
    polish_ts, polish_time = _read_timestamp(attributes, "proPolishTime")

    return FeedItem(
        item_id=str(detail_params.get("itemId") or ""),
        title=str(detail_params.get("title") or ""),
        price=str(_dig(card_data, "priceInfo", "price") or ""),
        image_url=str(detail_params.get("picUrl") or ""),
        video_url=str(detail_params.get("videoUrl") or ""),
        category_id=_safe_int(card_data.get("categoryId")) or 0,
        location=str(card_data.get("city") or ""),
        want_count=want_count,
        view_count=_safe_int(card_data.get("viewCount")) or 0,
        status=str(card_data.get("status") or ""),
        seller_nick=str(_dig(card_data, "user", "userNick") or detail_params.get("userNick") or ""),
        seller_credit=ctx.seller_credit,
        shop_level=ctx.shop_level,
        free_shipping=ctx.free_shipping or str(attributes.get("freeShipping")) == "1",
        publish_time=publish_time,
        publish_time_ts=publish_ts,
        modified_time=modified_time,
        modified_time_ts=modified_ts,
        polish_time=polish_time,
        polish_time_ts=polish_ts,
        is_video=str(detail_params.get("isVideo")) == "1",
        tags=ctx.tags,
    )


def parse_page(envelope: MtopEnvelope) -> Tuple[List[FeedItem], bool]:
    """Decode a feed page into items and the ``nextPage`` flag.

    Cards that fail to decode or carry no item id are skipped with a log
    line. A missing ``nextPage`` means the last page; a missing or non-list
    ``cardList`` or a non-boolean ``nextPage`` raises ``FeedDecodeError``.
    """
    data = envelope.data
    if not isinstance(data, dict):
        raise FeedDecodeError("feed data must be an object")
    cards = data.get("cardList")
    next_page = data.get("nextPage", False)
    if not isinstance(cards, list):
        raise FeedDecodeError("feed data has no cardList array")
    if not isinstance(next_page, bool):
        raise FeedDecodeError("feed data has no boolean nextPage")

    items: List[FeedItem] = []
    for index, card in enumerate(cards):
        try:
            item = parse_card(card)
        except CardDecodeError as exc:
            LOGGER.warning("Skipping card %d: %s", index, exc)
            continue
        if not item.item_id:
            LOGGER.info("Skipping card %d (%s): empty itemId", index, item.title)
            continue
        items.append(item)
    return items, next_page

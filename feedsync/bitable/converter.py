"""Conversion of collected items into flat ``Product`` rows."""
from __future__ import annotations

import time
from typing import Iterable, List, Optional

from feedsync.models import FeedItem, ItemDetail, Product

DETAIL_URL_TEMPLATE = "https://2.taobao.com/item.htm?id={item_id}"
TAG_SEPARATOR = ", "


def build_detail_url(item_id: str) -> str:
    return DETAIL_URL_TEMPLATE.format(item_id=item_id)


def _now_ms() -> int:
    return int(time.time() * 1000)


def feed_item_to_product(item: FeedItem, capture_time_ms: Optional[int] = None) -> Product:
    """Basic row built from feed data alone; enough for dedup."""
    return Product(
        item_id=item.item_id,
        title=item.title,
        price=item.price,
        category_id=item.category_id,
        want_cnt=item.want_count,
        view_count=item.view_count,
        seller_nick=item.seller_nick,
        seller_city=item.location,
        seller_credit=item.seller_credit,
        shop_level=item.shop_level,
        free_ship=item.free_shipping,
        publish_time_ms=item.publish_time_ts,
        modified_time_ms=item.modified_time_ts,
        polish_time_ms=item.polish_time_ts,
        capture_time_ms=capture_time_ms if capture_time_ms is not None else _now_ms(),
        cover_url=item.image_url,
        detail_url=build_detail_url(item.item_id),
        video_url=item.video_url,
        tags=TAG_SEPARATOR.join(item.tags),
        status=item.status,
    )


def feed_items_to_products(items: Iterable[FeedItem], capture_time_ms: Optional[int] = None) -> List[Product]:
    capture = capture_time_ms if capture_time_ms is not None else _now_ms()
    return [feed_item_to_product(item, capture) for item in items]


def detail_to_product(detail: ItemDetail, capture_time_ms: Optional[int] = None) -> Product:
    return Product(
        item_id=detail.item_id,
        title=detail.title,
        price=detail.price,
        condition=detail.condition,
        category_id=detail.category_id,
        want_cnt=detail.want_count,
        view_count=detail.view_count,
        collect_count=detail.collect_count,
        seller_nick=detail.seller_nick,
        seller_city=detail.seller_city,
        seller_credit=detail.seller_credit,
        shop_level=detail.shop_level,
        seller_reg_days=detail.seller_reg_days,
        free_ship=detail.free_shipping,
        publish_time_ms=detail.publish_time_ts,
        capture_time_ms=capture_time_ms if capture_time_ms is not None else _now_ms(),
        cover_url=detail.image_url,
        detail_url=build_detail_url(detail.item_id),
        video_url=detail.video_url,
        tags=TAG_SEPARATOR.join(detail.tags),
        status=detail.status,
        description=detail.description,
    )


def merge_detail(basic: Product, detail: ItemDetail) -> Product:
    """Overlay detail fields on a basic row.

    Item id, price and want count stay as observed in the feed so the row
    keeps the dedup key it was admitted with. Empty detail values never
    erase feed values.
    """
    updates = {
        "title": detail.title,
        "condition": detail.condition,
        "category_id": detail.category_id,
        "view_count": detail.view_count,
        "collect_count": detail.collect_count,
        "seller_nick": detail.seller_nick,
        "seller_city": detail.seller_city,
        "seller_credit": detail.seller_credit,
        "shop_level": detail.shop_level,
        "seller_reg_days": detail.seller_reg_days,
        "publish_time_ms": detail.publish_time_ts,
        "cover_url": detail.image_url,
        "video_url": detail.video_url,
        "tags": TAG_SEPARATOR.join(detail.tags),
        "status": detail.status,
        "description": detail.description,
    }
    merged = basic.model_copy(update={key: value for key, value in updates.items() if value})
    if detail.free_shipping:
        merged.free_ship = True
    return merged

"""Pydantic models shared across collector and sync components."""
from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class CookieSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    domain: str = ""
    path: str = "/"


class SessionCredential(BaseModel):
    """Signing token plus the cookie set captured at login."""

    model_config = ConfigDict(frozen=True)

    token: str
    cookies: Tuple[CookieSpec, ...] = ()

    def cookie_header(self) -> str:
        return "; ".join(f"{c.name}={c.value}" for c in self.cookies)

    @classmethod
    def from_cookie_header(cls, header: str) -> "SessionCredential":
        from feedsync.collector_mtop.credentials import from_cookie_header

        return from_cookie_header(header)


class FeedItem(BaseModel):
    item_id: str
    title: str = ""
    price: str = ""
    image_url: str = ""
    video_url: str = ""
    category_id: int = 0
    location: str = ""
    # Heat
    want_count: int = Field(default=0, ge=0)
    view_count: int = 0
    status: str = ""
    # Seller and service
    seller_nick: str = ""
    seller_credit: str = ""
    shop_level: str = ""
    free_shipping: bool = False
    # Timestamps are epoch milliseconds, 0 when the card never carried them
    publish_time: str = ""
    publish_time_ts: int = 0
    modified_time: str = ""
    modified_time_ts: int = 0
    polish_time: str = ""
    polish_time_ts: int = 0
    is_video: bool = False
    tags: List[str] = Field(default_factory=list)


class SkuProperty(BaseModel):
    property_id: int = 0
    property_text: str = ""
    value_id: int = 0
    value_text: str = ""
    actual_value_text: str = ""


class Sku(BaseModel):
    sku_id: int = 0
    inventory_id: int = 0
    price_in_cent: int = 0
    quantity: int = 0
    properties: List[SkuProperty] = Field(default_factory=list)


class CpvLabel(BaseModel):
    property_id: int = 0
    property_name: str = ""
    value_id: int = 0
    value_name: str = ""


class ItemTag(BaseModel):
    channel_cate_id: int = 0
    source: str = ""
    text: str = ""
    properties: str = ""


class ItemDetail(BaseModel):
    """Single listing as returned by the detail API."""

    item_id: str
    title: str = ""
    description: str = ""
    image_url: str = ""
    video_url: str = ""
    image_list: List[str] = Field(default_factory=list)
    category_id: int = 0
    price: str = ""
    price_in_cent: int = 0
    status: str = ""
    item_status: int = 0
    want_count: int = 0
    view_count: int = 0
    collect_count: int = 0
    total_stock: int = 0
    publish_time: str = ""
    publish_time_ts: int = 0
    condition: str = ""
    is_new: bool = False
    free_shipping: bool = False
    tags: List[str] = Field(default_factory=list)
    sku_list: List[Sku] = Field(default_factory=list)
    cpv_labels: List[CpvLabel] = Field(default_factory=list)
    item_tags: List[ItemTag] = Field(default_factory=list)
    # Seller
    seller_id: str = ""
    seller_nick: str = ""
    seller_city: str = ""
    seller_credit: str = ""
    shop_level: str = ""
    seller_reg_days: int = 0
    seller_item_count: int = 0
    seller_sold_count: int = 0
    seller_signature: str = ""
    avatar_url: str = ""

    @property
    def has_sku(self) -> bool:
        return bool(self.sku_list)


class DedupKey(NamedTuple):
    item_id: str
    price: str
    want_cnt: int


class Product(BaseModel):
    """Flat record pushed to the destination table."""

    item_id: str
    title: str = ""
    price: str = ""
    condition: str = ""
    category_id: int = 0
    want_cnt: int = 0
    view_count: int = 0
    collect_count: int = 0
    seller_nick: str = ""
    seller_city: str = ""
    seller_credit: str = ""
    shop_level: str = ""
    seller_reg_days: int = 0
    free_ship: bool = False
    publish_time_ms: int = 0
    modified_time_ms: int = 0
    polish_time_ms: int = 0
    capture_time_ms: int = 0
    cover_url: str = ""
    detail_url: str = ""
    video_url: str = ""
    tags: str = ""
    status: str = ""
    description: str = ""

    def dedup_key(self) -> DedupKey:
        return DedupKey(self.item_id, self.price, self.want_cnt)


class TableRef(BaseModel):
    table_id: str
    name: str
    created: bool = False


class SyncResult(BaseModel):
    success: bool
    message: str = ""
    records_created: int = 0
    records_updated: int = 0
    table_id: str = ""
    failed_fields: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None

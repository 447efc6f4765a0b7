"""Declarative column schema of the destination table.

``PRODUCT_FIELDS`` is the single source of truth for table creation, field
reconciliation and record serialization. Extending the schema means adding a
row here and the matching attribute on ``Product``.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from feedsync.models import DedupKey, Product


class FieldType(IntEnum):
    TEXT = 1
    NUMBER = 2
    DATETIME = 5
    CHECKBOX = 7
    URL = 15


class FieldSpec(NamedTuple):
    key: str
    label: str
    type: FieldType
    attr: str


PRODUCT_FIELDS: Tuple[FieldSpec, ...] = (
    # Basic
    FieldSpec("itemId", "商品ID", FieldType.TEXT, "item_id"),
    FieldSpec("title", "商品标题", FieldType.TEXT, "title"),
    FieldSpec("price", "价格", FieldType.TEXT, "price"),
    FieldSpec("condition", "成色", FieldType.TEXT, "condition"),
    FieldSpec("categoryId", "分类ID", FieldType.NUMBER, "category_id"),
    # Heat
    FieldSpec("wantCnt", "想要人数", FieldType.NUMBER, "want_cnt"),
    FieldSpec("viewCount", "浏览次数", FieldType.NUMBER, "view_count"),
    FieldSpec("collectCount", "收藏次数", FieldType.NUMBER, "collect_count"),
    # Seller
    FieldSpec("sellerNick", "卖家昵称", FieldType.TEXT, "seller_nick"),
    FieldSpec("sellerCity", "卖家地区", FieldType.TEXT, "seller_city"),
    FieldSpec("sellerCredit", "卖家信用", FieldType.TEXT, "seller_credit"),
    FieldSpec("shopLevel", "店铺级别", FieldType.TEXT, "shop_level"),
    FieldSpec("sellerRegDays", "注册天数", FieldType.NUMBER, "seller_reg_days"),
    FieldSpec("freeShip", "包邮", FieldType.CHECKBOX, "free_ship"),
    # Time
    FieldSpec("publishTimeMs", "发布时间", FieldType.DATETIME, "publish_time_ms"),
    FieldSpec("modifiedTimeMs", "修改时间", FieldType.DATETIME, "modified_time_ms"),
    FieldSpec("polishTimeMs", "擦亮时间", FieldType.DATETIME, "polish_time_ms"),
    FieldSpec("captureTimeMs", "采集时间", FieldType.DATETIME, "capture_time_ms"),
    # Links
    FieldSpec("coverUrl", "封面图", FieldType.URL, "cover_url"),
    FieldSpec("detailUrl", "商品详情", FieldType.URL, "detail_url"),
    FieldSpec("videoUrl", "视频链接", FieldType.URL, "video_url"),
    # Other
    FieldSpec("tags", "商品标签", FieldType.TEXT, "tags"),
    FieldSpec("itemStatusStr", "商品状态", FieldType.TEXT, "status"),
    FieldSpec("description", "详细描述", FieldType.TEXT, "description"),
)

ITEM_ID_FIELD = "itemId"
PRICE_FIELD = "price"
WANT_FIELD = "wantCnt"


def field_create_payload(spec: FieldSpec) -> Dict[str, Any]:
    return {"field_name": spec.key, "type": int(spec.type), "options": {"label": spec.label}}


def build_field_creates(fields: Iterable[FieldSpec] = PRODUCT_FIELDS) -> List[Dict[str, Any]]:
    return [field_create_payload(spec) for spec in fields]


def encode_value(spec: FieldSpec, value: Any) -> Any:
    """Encode one attribute for the bitable API; absent values keep their column."""
    if spec.type is FieldType.TEXT:
        return "" if value is None else str(value)
    if spec.type is FieldType.NUMBER:
        return int(value or 0)
    if spec.type is FieldType.CHECKBOX:
        return bool(value)
    if spec.type is FieldType.DATETIME:
        return int(value) if value else None
    if spec.type is FieldType.URL:
        return {"link": value} if value else None
    raise ValueError(f"unsupported field type {spec.type!r}")


def product_to_fields(
    product: Product,
    fields: Iterable[FieldSpec] = PRODUCT_FIELDS,
    exclude: Iterable[str] = (),
) -> Dict[str, Any]:
    """Serialize a product into a ``fields`` mapping keyed by field name."""
    skipped = set(exclude)
    return {
        spec.key: encode_value(spec, getattr(product, spec.attr))
        for spec in fields
        if spec.key not in skipped
    }


def read_text(value: Any) -> str:
    """Stored text cells come back either as a string or as rich-text segments."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = []
        for segment in value:
            if isinstance(segment, dict):
                parts.append(str(segment.get("text", "")))
            else:
                parts.append(str(segment))
        return "".join(parts)
    if isinstance(value, dict):
        return str(value.get("text") or value.get("link") or "")
    return str(value)


def read_number(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(float(read_text(value)))
    except ValueError:
        return 0


def dedup_key_from_record(fields: Dict[str, Any]) -> Optional[DedupKey]:
    """Derive the dedup key of a stored row; ``None`` when it has no item id."""
    item_id = read_text(fields.get(ITEM_ID_FIELD))
    if not item_id:
        return None
    return DedupKey(item_id, read_text(fields.get(PRICE_FIELD)), read_number(fields.get(WANT_FIELD)))

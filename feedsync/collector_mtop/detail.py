"""Per-item detail lookups with rate-limit aware retries."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List

from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from feedsync.errors import DetailFetchError, EnvelopeDecodeError, RateLimitedError
from feedsync.models import CpvLabel, ItemDetail, ItemTag, Sku, SkuProperty

from .client import MtopClient, MtopEnvelope
from .parser import TIMESTAMP_ERRORS, format_timestamp

DETAIL_API = "mtop.taobao.idle.pc.detail"
CONDITION_PROPERTY = "成色"
BRAND_NEW = "全新"
FREE_SHIPPING_TAG = "包邮"
LOGGER = logging.getLogger(__name__)


def _safe_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _objects(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _parse_sku(raw: Dict[str, Any]) -> Sku:
    return Sku(
        sku_id=_safe_int(raw.get("skuId")),
        inventory_id=_safe_int(raw.get("inventoryId")),
        price_in_cent=_safe_int(raw.get("priceInCent")),
        quantity=_safe_int(raw.get("quantity")),
        properties=[
            SkuProperty(
                property_id=_safe_int(prop.get("propertyId")),
                property_text=_text(prop.get("propertyText")),
                value_id=_safe_int(prop.get("valueId")),
                value_text=_text(prop.get("valueText")),
                actual_value_text=_text(prop.get("actualValueText")),
            )
            for prop in _objects(raw.get("propertyList"))
        ],
    )


def _seller_credit(seller: Dict[str, Any]) -> str:
    for key in ("zhimaLevelInfo", "zhumaLevelInfo"):
        info = seller.get(key)
        if isinstance(info, dict) and info.get("levelName"):
            return _text(info["levelName"])
    return ""


def parse_detail(envelope: MtopEnvelope, item_id: str = "") -> ItemDetail:
    """Decode the ``itemDO``/``sellerDO`` payload of a detail response."""
    data = envelope.data
    item = data.get("itemDO") if isinstance(data, dict) else None
    if not isinstance(item, dict):
        raise EnvelopeDecodeError(f"{DETAIL_API} returned no itemDO object")
    seller = data.get("sellerDO") if isinstance(data.get("sellerDO"), dict) else {}

    detail = ItemDetail(
        item_id=_text(item.get("itemId") or item_id),
        title=_text(item.get("title")),
        description=_text(item.get("desc")),
        category_id=_safe_int(item.get("categoryId")),
        price=_text(item.get("soldPrice")),
        status=_text(item.get("itemStatusStr")),
        item_status=_safe_int(item.get("itemStatus")),
        want_count=max(_safe_int(item.get("wantCnt")), 0),
        view_count=_safe_int(item.get("browseCnt")),
        collect_count=_safe_int(item.get("collectCnt")),
        total_stock=_safe_int(item.get("quantity")),
    )

    created = _safe_int(item.get("gmtCreate"))
    if created > 0:
        try:
            detail.publish_time = format_timestamp(created)
        except TIMESTAMP_ERRORS:
            LOGGER.warning("Ignoring out-of-range gmtCreate %s for item %s", created, detail.item_id)
        else:
            detail.publish_time_ts = created

    for image in _objects(item.get("imageInfos")):
        url = _text(image.get("url"))
        detail.image_list.append(url)
        if image.get("major"):
            detail.image_url = url

    for raw_sku in _objects(item.get("skuList")):
        sku = _parse_sku(raw_sku)
        detail.sku_list.append(sku)
        if detail.price_in_cent == 0:
            detail.price_in_cent = sku.price_in_cent

    for label in _objects(item.get("cpvLabels")):
        cpv = CpvLabel(
            property_id=_safe_int(label.get("propertyId")),
            property_name=_text(label.get("propertyName")),
            value_id=_safe_int(label.get("valueId")),
            value_name=_text(label.get("valueName")),
        )
        detail.cpv_labels.append(cpv)
        if cpv.property_name == CONDITION_PROPERTY:
            detail.condition = cpv.value_name
            detail.is_new = cpv.value_name == BRAND_NEW

    for tag in _objects(item.get("itemLabelExtList")):
        detail.item_tags.append(
            ItemTag(
                channel_cate_id=_safe_int(tag.get("channelCateId")),
                source=_text(tag.get("from")),
                text=_text(tag.get("text")),
                properties=_text(tag.get("properties")),
            )
        )

    for tag in _objects(item.get("commonTags")):
        text = _text(tag.get("text"))
        if text and text not in detail.tags:
            detail.tags.append(text)
        if text == FREE_SHIPPING_TAG:
            detail.free_shipping = True

    seller_id = seller.get("sellerId")
    detail.seller_id = _text(seller_id) if seller_id else ""
    detail.seller_nick = _text(seller.get("nick"))
    detail.seller_city = _text(seller.get("city"))
    detail.avatar_url = _text(seller.get("portraitUrl"))
    detail.seller_signature = _text(seller.get("signature"))
    detail.seller_item_count = _safe_int(seller.get("itemCount"))
    detail.seller_sold_count = _safe_int(seller.get("hasSoldNumInteger"))
    detail.seller_credit = _seller_credit(seller)
    reg_days = _safe_int(seller.get("userRegDay"))
    if reg_days > 0:
        detail.seller_reg_days = reg_days
    track = seller.get("idleFishCreditTag") or {}
    if isinstance(track, dict) and isinstance(track.get("trackParams"), dict):
        detail.shop_level = _text(track["trackParams"].get("sellerLevel"))
    return detail


class DetailFetcher:
    """Fetch item details through a shared ``MtopClient``."""

    def __init__(self, client: MtopClient, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self.client = client
        self._sleep = sleep

    def fetch(self, item_id: str) -> ItemDetail:
        if not item_id:
            raise ValueError("item_id must not be empty")
        envelope = self.client.call(DETAIL_API, {"itemId": item_id})
        return parse_detail(envelope, item_id)

    def fetch_with_retry(self, item_id: str, max_attempts: int = 3) -> ItemDetail:
        """Fetch a detail, retrying only when the upstream throttles.

        Parameters
        ----------
        item_id : str
            Listing identifier
        max_attempts : int
            Total number of attempts, waits grow by one second per attempt

        Returns
        -------
        ItemDetail
            Decoded detail

        Raises
        ------
        DetailFetchError
            If every attempt was rate limited
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        retrying = Retrying(
            retry=retry_if_exception_type(RateLimitedError),
            wait=wait_incrementing(start=1, increment=1),
            stop=stop_after_attempt(max_attempts),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            return retrying(self.fetch, item_id)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            raise DetailFetchError(item_id, max_attempts, last_error) from last_error

    @staticmethod
    def _log_retry(retry_state) -> None:
        LOGGER.warning(
            "Detail throttled (attempt %d), retrying in %.0fs",
            retry_state.attempt_number,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

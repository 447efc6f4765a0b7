from feedsync.bitable.converter import build_detail_url, detail_to_product, feed_item_to_product, merge_detail
from feedsync.bitable.schema import PRODUCT_FIELDS, FieldType, product_to_fields
from feedsync.models import FeedItem, ItemDetail, Product

CAPTURE = 1_700_000_500_000


def _feed_item(**extra):
    base = dict(
        item_id="42",
        title="feed title",
        price="199",
        image_url="https://img/feed.jpg",
        want_count=25,
        view_count=3,
        location="杭州",
        seller_nick="feed-nick",
        publish_time_ts=1_700_000_000_000,
        tags=["包邮", "验货宝"],
        free_shipping=True,
    )
    base.update(extra)
    return FeedItem(**base)


def test_build_detail_url():
    assert build_detail_url("42") == "https://2.taobao.com/item.htm?id=42"


def test_feed_item_to_product():
    product = feed_item_to_product(_feed_item(), capture_time_ms=CAPTURE)
    assert product.item_id == "42"
    assert product.want_cnt == 25
    assert product.seller_city == "杭州"
    assert product.free_ship is True
    assert product.tags == "包邮, 验货宝"
    assert product.capture_time_ms == CAPTURE
    assert product.detail_url == "https://2.taobao.com/item.htm?id=42"
    assert product.cover_url == "https://img/feed.jpg"


def test_merge_detail_keeps_dedup_key_and_fills_fields():
    basic = feed_item_to_product(_feed_item(), capture_time_ms=CAPTURE)
    detail = ItemDetail(
        item_id="42",
        title="detail title",
        price="250",
        want_count=40,
        condition="几乎全新",
        collect_count=9,
        seller_city="上海",
        seller_credit="信用极好",
        seller_reg_days=700,
        image_url="https://img/detail.jpg",
        description="desc",
        tags=["验货宝"],
    )
    merged = merge_detail(basic, detail)

    assert merged.dedup_key() == basic.dedup_key()
    assert merged.title == "detail title"
    assert merged.condition == "几乎全新"
    assert merged.collect_count == 9
    assert merged.seller_city == "上海"
    assert merged.seller_reg_days == 700
    assert merged.cover_url == "https://img/detail.jpg"
    assert merged.description == "desc"
    assert merged.tags == "验货宝"
    assert merged.free_ship is True
    assert merged.seller_nick == "feed-nick"


def test_detail_to_product():
    detail = ItemDetail(item_id="7", title="t", price="5", want_count=2, free_shipping=True, status="在售")
    product = detail_to_product(detail, capture_time_ms=CAPTURE)
    assert product.dedup_key() == ("7", "5", 2)
    assert product.free_ship is True
    assert product.status == "在售"


def test_every_column_is_emitted_with_typed_empties():
    fields = product_to_fields(Product(item_id="1"))
    assert set(fields) == {spec.key for spec in PRODUCT_FIELDS}
    for spec in PRODUCT_FIELDS:
        value = fields[spec.key]
        if spec.type is FieldType.TEXT:
            assert isinstance(value, str)
        elif spec.type is FieldType.NUMBER:
            assert value == 0
        elif spec.type is FieldType.CHECKBOX:
            assert value is False
        else:
            assert value is None


def test_url_and_datetime_encoding():
    product = Product(item_id="1", cover_url="https://img/x.jpg", publish_time_ms=1_700_000_000_000)
    fields = product_to_fields(product)
    assert fields["coverUrl"] == {"link": "https://img/x.jpg"}
    assert fields["publishTimeMs"] == 1_700_000_000_000


def test_product_to_fields_exclude():
    fields = product_to_fields(Product(item_id="1"), exclude=["freeShip", "tags"])
    assert "freeShip" not in fields
    assert "tags" not in fields
    assert fields["itemId"] == "1"

from feedsync.collector_mtop.filters import DAY_MS, FeedFilter, filter_items
from feedsync.models import FeedItem

NOW = 1_700_000_000_000


def _item(item_id, want=0, published=0):
    return FeedItem(item_id=item_id, want_count=want, publish_time_ts=published)


def test_zero_filter_returns_input_unchanged():
    items = [_item("a"), _item("b", want=100)]
    assert filter_items(items, FeedFilter(), now=NOW) == items


def test_min_want_count():
    items = [_item("a", want=25), _item("b", want=5), _item("c", want=20)]
    kept = filter_items(items, FeedFilter(min_want_count=20), now=NOW)
    assert [item.item_id for item in kept] == ["a", "c"]


def test_days_within_drops_old_items():
    items = [
        _item("fresh", published=NOW - 2 * DAY_MS),
        _item("old", published=NOW - 30 * DAY_MS),
    ]
    kept = filter_items(items, FeedFilter(days_within=14), now=NOW)
    assert [item.item_id for item in kept] == ["fresh"]


def test_unknown_publish_time_passes_recency():
    kept = filter_items([_item("unknown", published=0)], FeedFilter(days_within=1), now=NOW)
    assert [item.item_id for item in kept] == ["unknown"]


def test_both_dimensions_apply():
    items = [
        _item("ok", want=30, published=NOW - DAY_MS),
        _item("cold", want=1, published=NOW - DAY_MS),
        _item("stale", want=30, published=NOW - 20 * DAY_MS),
    ]
    kept = filter_items(items, FeedFilter(min_want_count=10, days_within=7), now=NOW)
    assert [item.item_id for item in kept] == ["ok"]


def test_filter_preserves_order():
    items = [_item(str(i), want=i) for i in range(10)]
    kept = filter_items(items, FeedFilter(min_want_count=5), now=NOW)
    assert [item.item_id for item in kept] == ["5", "6", "7", "8", "9"]

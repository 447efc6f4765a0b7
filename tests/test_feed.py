import httpx
import orjson
import pytest

from conftest import envelope, form_data, json_response, make_card, make_mtop_client, tag
from feedsync.collector_mtop.feed import FEED_API, FeedCrawler, FeedOptions
from feedsync.errors import FeedDecodeError, FeedPageError, RateLimitedError


def _feed_handler(pages, requests):
    def handler(request: httpx.Request) -> httpx.Response:
        payload = orjson.loads(form_data(request)["data"])
        requests.append(payload)
        page = payload["pageNumber"]
        cards, next_page = pages[page]
        return json_response(envelope({"cardList": cards, "nextPage": next_page}, api=FEED_API))

    return handler


def test_crawl_filters_by_want_count(credential):
    pages = {1: ([make_card(item_id="1", tags=[tag("25人想要")]), make_card(item_id="2", tags=[tag("5人想要")])], False)}
    requests = []
    with make_mtop_client(credential, _feed_handler(pages, requests)) as client:
        result = FeedCrawler(client).crawl(FeedOptions(max_pages=3, min_want_count=20))

    assert [item.item_id for item in result.items] == ["1"]
    assert result.items[0].want_count == 25
    assert result.raw_count == 2
    assert result.pages_fetched == 1
    assert requests == [{"itemId": "", "machId": "", "pageNumber": 1, "pageSize": 30}]


def test_crawl_stops_when_no_next_page(credential):
    pages = {
        1: ([make_card(item_id="1")], True),
        2: ([make_card(item_id="2")], False),
        3: ([make_card(item_id="3")], True),
    }
    requests = []
    with make_mtop_client(credential, _feed_handler(pages, requests)) as client:
        result = FeedCrawler(client).crawl(FeedOptions(max_pages=5))

    assert [r["pageNumber"] for r in requests] == [1, 2]
    assert [item.item_id for item in result.items] == ["1", "2"]
    assert result.pages_fetched == 2


def test_crawl_respects_max_pages(credential):
    pages = {n: ([make_card(item_id=str(n))], True) for n in range(1, 10)}
    requests = []
    with make_mtop_client(credential, _feed_handler(pages, requests)) as client:
        result = FeedCrawler(client).crawl(FeedOptions(max_pages=3, page_size=10))

    assert [r["pageNumber"] for r in requests] == [1, 2, 3]
    assert all(r["pageSize"] == 10 for r in requests)
    assert len(result.items) == 3


def test_crawl_wraps_page_failures_with_page_number(credential):
    def handler(request):
        page = orjson.loads(form_data(request)["data"])["pageNumber"]
        if page == 2:
            return json_response(envelope(None, ret=["RGV587_ERROR::SM"]))
        return json_response(envelope({"cardList": [make_card()], "nextPage": True}))

    with make_mtop_client(credential, handler) as client:
        with pytest.raises(FeedPageError) as info:
            FeedCrawler(client).crawl(FeedOptions(max_pages=3))

    assert info.value.page == 2
    assert isinstance(info.value.__cause__, RateLimitedError)


def test_crawl_wraps_decode_failures(credential):
    handler = lambda r: json_response(envelope({"unexpected": True}))
    with make_mtop_client(credential, handler) as client:
        with pytest.raises(FeedPageError) as info:
            FeedCrawler(client).crawl(FeedOptions(max_pages=1))
    assert info.value.page == 1
    assert isinstance(info.value.__cause__, FeedDecodeError)

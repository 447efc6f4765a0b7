"""Collector for the marketplace mtop gateway."""

from .client import BASE_URL, MtopClient, MtopEnvelope
from .detail import DETAIL_API, DetailFetcher, parse_detail
from .feed import FEED_API, FeedCrawler, FeedOptions, FeedResult
from .filters import FeedFilter, filter_items
from .parser import parse_card, parse_page
from .signature import DEFAULT_APP_KEY, serialize_payload, sign, sign_request

__all__ = [
    "BASE_URL",
    "DEFAULT_APP_KEY",
    "DETAIL_API",
    "DetailFetcher",
    "FEED_API",
    "FeedCrawler",
    "FeedFilter",
    "FeedOptions",
    "FeedResult",
    "MtopClient",
    "MtopEnvelope",
    "filter_items",
    "parse_card",
    "parse_detail",
    "parse_page",
    "serialize_payload",
    "sign",
    "sign_request",
]

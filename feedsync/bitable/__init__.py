"""Sync engine for the Feishu bitable destination."""

from .client import BitableClient
from .converter import build_detail_url, detail_to_product, feed_item_to_product, merge_detail
from .schema import PRODUCT_FIELDS, FieldSpec, FieldType, product_to_fields
from .service import BitableService, FieldReport, PreparedPeriod, is_duplicate_name_error

__all__ = [
    "BitableClient",
    "BitableService",
    "FieldReport",
    "FieldSpec",
    "FieldType",
    "PRODUCT_FIELDS",
    "PreparedPeriod",
    "build_detail_url",
    "detail_to_product",
    "feed_item_to_product",
    "is_duplicate_name_error",
    "merge_detail",
    "product_to_fields",
]

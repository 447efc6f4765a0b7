from __future__ import annotations

import random
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import orjson
import pytest

from feedsync.collector_mtop.client import MtopClient
from feedsync.errors import BitableAPIError
from feedsync.models import CookieSpec, SessionCredential, TableRef

TOKEN = "a1b2c3d4e5"


@pytest.fixture
def credential() -> SessionCredential:
    return SessionCredential(
        token=TOKEN,
        cookies=(
            CookieSpec(name="_m_h5_tk", value=f"{TOKEN}_1700000000000", domain=".goofish.com"),
            CookieSpec(name="cookie2", value="c2value", domain=".goofish.com"),
        ),
    )


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


def envelope(data: Any, ret: Optional[List[str]] = None, api: str = "") -> Dict[str, Any]:
    return {"api": api, "v": "1.0", "ret": ret or ["SUCCESS::调用成功"], "data": data}


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=orjson.dumps(payload))


def form_data(request: httpx.Request) -> Dict[str, str]:
    parsed = parse_qs(request.content.decode("utf-8"))
    return {key: values[0] for key, values in parsed.items()}


def make_mtop_client(credential: SessionCredential, handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> MtopClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return MtopClient(credential, http_client=http, **kwargs)


def make_card(
    item_id: str = "1001",
    title: str = "二手相机",
    price: str = "199",
    tags: Optional[List[Dict[str, Any]]] = None,
    hot_point: str = "",
    attributes: Optional[Dict[str, Any]] = None,
    **card_fields: Any,
) -> Dict[str, Any]:
    card_data: Dict[str, Any] = {
        "categoryId": 50025386,
        "status": "0",
        "viewCount": 12,
        "city": "杭州",
        "detailParams": {
            "itemId": item_id,
            "picUrl": f"https://img.example/{item_id}.jpg",
            "title": title,
            "userNick": "detail-nick",
            "isVideo": "0",
        },
        "user": {"userNick": "seller-nick"},
        "priceInfo": {"price": price},
        "hotPoint": {"text": hot_point},
        "attributeMap": attributes or {},
        "fishTags": {"r1": {"tagList": tags or []}},
    }
    card_data.update(card_fields)
    return {"cardData": card_data}


def tag(content: str, tracked: Optional[str] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"data": {"content": content}}
    if tracked is not None:
        entry["utParams"] = {"args": {"content": tracked}}
    return entry


class FakeBitableClient:
    """In-memory stand-in for ``BitableClient``."""

    def __init__(self) -> None:
        self.tables: Dict[str, TableRef] = {}
        self.fields: Dict[str, Dict[str, str]] = {}
        self.records: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[str] = []
        self.fail_fields: Dict[str, BitableAPIError] = {}
        self.create_table_error: Optional[BitableAPIError] = None
        self.on_create_table: Optional[Callable[[str], None]] = None
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}{self._next_id}"

    def add_table(self, name: str, field_names: Optional[List[str]] = None) -> TableRef:
        table = TableRef(table_id=self._new_id("tbl"), name=name)
        self.tables[table.table_id] = table
        self.fields[table.table_id] = {name: self._new_id("fld") for name in field_names or []}
        self.records[table.table_id] = []
        return table

    def list_tables(self, app_token: str) -> List[TableRef]:
        self.calls.append("list_tables")
        return list(self.tables.values())

    def create_table(self, app_token: str, name: str, fields) -> TableRef:
        self.calls.append("create_table")
        if self.on_create_table is not None:
            self.on_create_table(name)
        if self.create_table_error is not None:
            raise self.create_table_error
        table = self.add_table(name, [field["field_name"] for field in fields])
        return TableRef(table_id=table.table_id, name=name, created=True)

    def list_fields(self, app_token: str, table_id: str) -> Dict[str, str]:
        self.calls.append("list_fields")
        return dict(self.fields[table_id])

    def create_field(self, app_token: str, table_id: str, field: Dict[str, Any]) -> str:
        self.calls.append("create_field")
        name = field["field_name"]
        if name in self.fail_fields:
            raise self.fail_fields[name]
        field_id = self._new_id("fld")
        self.fields[table_id][name] = field_id
        return field_id

    def batch_create_records(self, app_token: str, table_id: str, records) -> int:
        self.calls.append("batch_create_records")
        self.records[table_id].extend(dict(record) for record in records)
        return len(records)

    def search_records(self, app_token: str, table_id: str, field_name: str, value: str) -> List[Dict[str, Any]]:
        self.calls.append("search_records")
        return [record for record in self.records[table_id] if record.get(field_name) == value]


@pytest.fixture
def fake_bitable() -> FakeBitableClient:
    return FakeBitableClient()

"""Thin HTTP client for the Feishu bitable open API."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import httpx
import orjson

from feedsync.errors import BitableAPIError, TransportError
from feedsync.models import TableRef

BASE_URL = "https://open.feishu.cn"
AUTH_PATH = "/open-apis/auth/v3/tenant_access_token/internal"
APPS_PATH = "/open-apis/bitable/v1/apps/{app_token}"
DEFAULT_TIMEOUT = httpx.Timeout(30.0)
TOKEN_REFRESH_MARGIN = 300
BATCH_CREATE_LIMIT = 500
PAGE_SIZE = 100
LOGGER = logging.getLogger(__name__)


class BitableClient:
    """Authenticated access to tables, fields and records of one tenant.

    The tenant access token is exchanged with the app credentials on first
    use and cached until ``TOKEN_REFRESH_MARGIN`` seconds before it expires.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        *,
        base_url: str = BASE_URL,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._clock = clock
        self._token = ""
        self._token_expires_at = 0.0

    def __enter__(self) -> "BitableClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _send(self, method: str, path: str, *, json: Any = None, params: Any = None, auth: bool = True) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if auth:
            headers["Authorization"] = f"Bearer {self.tenant_access_token()}"
        content = orjson.dumps(json) if json is not None else None
        try:
            response = self._http.request(
                method, self.base_url + path, content=content, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        try:
            payload = orjson.loads(response.content)
        except orjson.JSONDecodeError as exc:
            raise BitableAPIError(response.status_code, f"non-JSON response: {response.text[:200]}", path) from exc
        if not isinstance(payload, dict):
            raise BitableAPIError(response.status_code, "response is not an object", path)
        raw_code = payload.get("code", 0)
        try:
            code = int(raw_code)
        except (TypeError, ValueError) as exc:
            raise BitableAPIError(-1, f"non-numeric code {raw_code!r}: {payload.get('msg', '')}", path) from exc
        if code != 0:
            raise BitableAPIError(code, str(payload.get("msg", "")), path)
        return payload

    def tenant_access_token(self) -> str:
        now = self._clock()
        if self._token and now < self._token_expires_at:
            return self._token
        payload = self._send(
            "POST",
            AUTH_PATH,
            json={"app_id": self.app_id, "app_secret": self.app_secret},
            auth=False,
        )
        token = payload.get("tenant_access_token") or ""
        if not token:
            raise BitableAPIError(-1, "token exchange returned no tenant_access_token", AUTH_PATH)
        self._token = token
        self._token_expires_at = now + int(payload.get("expire", 0)) - TOKEN_REFRESH_MARGIN
        LOGGER.debug("Refreshed tenant access token, valid for %ss", payload.get("expire"))
        return token

    def _paginate(self, method: str, path: str, *, json: Any = None) -> Iterator[Dict[str, Any]]:
        page_token = ""
        while True:
            params: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if page_token:
                params["page_token"] = page_token
            data = self._send(method, path, json=json, params=params).get("data") or {}
            yield from data.get("items") or []
            page_token = data.get("page_token") or ""
            if not data.get("has_more") or not page_token:
                break

    def list_tables(self, app_token: str) -> List[TableRef]:
        path = APPS_PATH.format(app_token=app_token) + "/tables"
        return [TableRef(table_id=item["table_id"], name=item.get("name", "")) for item in self._paginate("GET", path)]

    def create_table(self, app_token: str, name: str, fields: Sequence[Dict[str, Any]]) -> TableRef:
        path = APPS_PATH.format(app_token=app_token) + "/tables"
        payload = self._send("POST", path, json={"table": {"name": name, "fields": list(fields)}})
        data = payload.get("data") or {}
        table_id = data.get("table_id") or (data.get("table") or {}).get("table_id", "")
        return TableRef(table_id=table_id, name=name, created=True)

    def list_fields(self, app_token: str, table_id: str) -> Dict[str, str]:
        """Return ``field_name -> field_id`` for every field of the table."""
        path = APPS_PATH.format(app_token=app_token) + f"/tables/{table_id}/fields"
        return {item["field_name"]: item.get("field_id", "") for item in self._paginate("GET", path)}

    def create_field(self, app_token: str, table_id: str, field: Dict[str, Any]) -> str:
        path = APPS_PATH.format(app_token=app_token) + f"/tables/{table_id}/fields"
        data = self._send("POST", path, json=field).get("data") or {}
        return (data.get("field") or {}).get("field_id", "")

    def batch_create_records(self, app_token: str, table_id: str, records: Sequence[Dict[str, Any]]) -> int:
        """Create rows in chunks of ``BATCH_CREATE_LIMIT``; returns rows created."""
        path = APPS_PATH.format(app_token=app_token) + f"/tables/{table_id}/records/batch_create"
        created = 0
        for start in range(0, len(records), BATCH_CREATE_LIMIT):
            chunk = records[start : start + BATCH_CREATE_LIMIT]
            data = self._send("POST", path, json={"records": [{"fields": fields} for fields in chunk]}).get("data") or {}
            created += len(data.get("records") or chunk)
        return created

    def search_records(self, app_token: str, table_id: str, field_name: str, value: str) -> List[Dict[str, Any]]:
        """Return the ``fields`` of every row whose ``field_name`` equals ``value``."""
        path = APPS_PATH.format(app_token=app_token) + f"/tables/{table_id}/records/search"
        body = {
            "filter": {
                "conjunction": "and",
                "conditions": [{"field_name": field_name, "operator": "is", "value": [value]}],
            }
        }
        return [item.get("fields") or {} for item in self._paginate("POST", path, json=body)]

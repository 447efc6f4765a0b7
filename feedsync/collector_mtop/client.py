"""Synchronous client for the signed mtop gateway."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
import orjson
from pydantic import BaseModel, Field

from feedsync.antibot import STATIC_HEADERS, Evasion
from feedsync.errors import (
    EnvelopeDecodeError,
    MissingCredentialError,
    RateLimitedError,
    RemoteRejectionError,
    TransportError,
)
from feedsync.models import SessionCredential

from .signature import DEFAULT_APP_KEY, sign_request

BASE_URL = "https://h5api.m.goofish.com/h5"
JSV = "2.7.2"
DEFAULT_TIMEOUT = httpx.Timeout(30.0)
SUCCESS_MARKERS = ("SUCCESS", "SUCCESS::调用成功")
RATE_LIMIT_MARKERS = ("RGV587_ERROR", "被挤爆")
LOGGER = logging.getLogger(__name__)


class MtopEnvelope(BaseModel):
    """Decoded ``{ret, v, data}`` response."""

    api: str = ""
    ret: List[str] = Field(default_factory=list)
    v: str = ""
    data: Any = None

    @property
    def ok(self) -> bool:
        return is_success(self.ret)


def is_success(ret: List[str]) -> bool:
    return any(marker in SUCCESS_MARKERS for marker in ret)


def is_rate_limited(ret: List[str]) -> bool:
    return any(limit in marker for marker in ret for limit in RATE_LIMIT_MARKERS)


def spm_for(api: str) -> str:
    return "a21ybx.item.0.0" if "detail" in api else "a21ybx.home.0.0"


class MtopClient:
    """Send signed calls to the gateway and decode the envelope.

    The client is stateless apart from the underlying ``httpx.Client``
    connection pool and can be used as a context manager.
    """

    def __init__(
        self,
        credential: SessionCredential,
        *,
        app_key: str = DEFAULT_APP_KEY,
        base_url: str = BASE_URL,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        evasion: Optional[Evasion] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        if not credential.token:
            raise MissingCredentialError()
        self.credential = credential
        self.app_key = app_key
        self.base_url = base_url.rstrip("/")
        self.evasion = evasion
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "MtopClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def build_headers(self) -> Dict[str, str]:
        if self.evasion is not None:
            headers = self.evasion.headers.build_request_headers()
        else:
            headers = dict(STATIC_HEADERS)
        cookie = self.credential.cookie_header()
        if cookie:
            headers["Cookie"] = cookie
        return headers

    def build_params(self, api: str, t: str, signature: str) -> Dict[str, str]:
        return {
            "jsv": JSV,
            "appKey": self.app_key,
            "t": t,
            "sign": signature,
            "v": "1.0",
            "type": "originaljson",
            "accountSite": "xianyu",
            "dataType": "json",
            "timeout": "20000",
            "api": api,
            "sessionOption": "AutoLoginOnly",
            "spm_cnt": spm_for(api),
        }

    def call(self, api: str, payload: Any) -> MtopEnvelope:
        """Sign and send one call.

        Parameters
        ----------
        api : str
            Gateway API name, e.g. ``mtop.taobao.idle.pc.detail``
        payload : Any
            Request data, serialized to compact JSON before signing

        Returns
        -------
        MtopEnvelope
            Envelope whose ``ret`` carries a success marker
        """
        if self.evasion is not None:
            self.evasion.delay.wait()

        signed = sign_request(payload, self.credential.token, self.app_key)
        url = f"{self.base_url}/{api}/1.0/"
        try:
            response = self._http.post(
                url,
                params=self.build_params(api, signed.t, signed.sign),
                data={"data": signed.data},
                headers=self.build_headers(),
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{api} request failed: {exc}") from exc

        LOGGER.debug("POST %s -> %s", api, response.status_code)
        envelope = decode_envelope(api, response)
        if not envelope.ok:
            if is_rate_limited(envelope.ret):
                LOGGER.warning("%s throttled: %s", api, envelope.ret)
                raise RateLimitedError(api, envelope.ret)
            raise RemoteRejectionError(api, envelope.ret)
        return envelope


def decode_envelope(api: str, response: httpx.Response) -> MtopEnvelope:
    """Turn a raw response into an envelope without judging ``ret``."""
    body = response.text
    try:
        decoded = orjson.loads(response.content)
    except orjson.JSONDecodeError as exc:
        raise EnvelopeDecodeError(f"{api} returned non-JSON body", body, response.status_code) from exc
    if not isinstance(decoded, dict):
        raise EnvelopeDecodeError(f"{api} returned a non-object body", body, response.status_code)
    ret = decoded.get("ret") or []
    if not isinstance(ret, list):
        ret = [str(ret)]
    return MtopEnvelope(
        api=decoded.get("api") or api,
        ret=[str(marker) for marker in ret],
        v=str(decoded.get("v") or ""),
        data=decoded.get("data"),
    )

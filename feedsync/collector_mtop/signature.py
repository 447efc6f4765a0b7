"""Request signing for the mtop gateway.

The gateway authenticates every call with ``md5(token&t&appKey&data)`` where
``token`` is the prefix of the ``_m_h5_tk`` cookie and ``data`` is the exact
JSON string sent in the form body.
"""
from __future__ import annotations

import hashlib
import time
from typing import Any, NamedTuple, Optional

import orjson

from feedsync.errors import MissingCredentialError

DEFAULT_APP_KEY = "34839810"


class SignedPayload(NamedTuple):
    sign: str
    t: str
    app_key: str
    data: str


def serialize_payload(data: Any) -> str:
    """Serialize ``data`` the way the gateway expects it in the form body.

    Strings are sent as-is and bytes are decoded as UTF-8. Anything else is
    dumped as compact JSON with non-ASCII characters kept.
    """
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8")
    return orjson.dumps(data).decode("utf-8")


def sign(payload: str, token: str, timestamp_ms: int | str, app_key: str = DEFAULT_APP_KEY) -> str:
    """Compute the lowercase hex MD5 signature for one call.

    Parameters
    ----------
    payload : str
        Serialized request data, byte-identical to what is sent
    token : str
        Session token taken from the ``_m_h5_tk`` cookie
    timestamp_ms : int or str
        Request time in milliseconds, also sent as ``t``
    app_key : str
        Application key of the web client

    Returns
    -------
    str
        32 character hex digest
    """
    if not token:
        raise MissingCredentialError()
    raw = f"{token}&{timestamp_ms}&{app_key}&{payload}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


def current_timestamp_ms() -> int:
    return int(time.time() * 1000)


def sign_request(
    data: Any,
    token: str,
    app_key: str = DEFAULT_APP_KEY,
    timestamp_ms: Optional[int] = None,
) -> SignedPayload:
    """Serialize, timestamp and sign ``data`` in one step."""
    body = serialize_payload(data)
    t = str(timestamp_ms if timestamp_ms is not None else current_timestamp_ms())
    return SignedPayload(sign=sign(body, token, t, app_key), t=t, app_key=app_key, data=body)

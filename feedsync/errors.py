"""Exception hierarchy shared by the collector and the sync engine."""
from __future__ import annotations

from typing import Optional, Sequence


class FeedSyncError(Exception):
    """Base class for every error raised by feedsync."""


class ConfigError(FeedSyncError):
    """Configuration is missing or inconsistent."""


class MissingCredentialError(FeedSyncError):
    """No session token is available for signing."""

    def __init__(self, message: str = "mtop token is empty, read it from the _m_h5_tk cookie") -> None:
        super().__init__(message)


class TransportError(FeedSyncError):
    """Network or timeout failure while talking to a remote service."""


class RemoteRejectionError(FeedSyncError):
    """The marketplace answered without a success marker."""

    def __init__(self, api: str, ret: Sequence[str]) -> None:
        self.api = api
        self.ret = list(ret)
        super().__init__(f"{api} rejected the call: ret={self.ret}")


class RateLimitedError(RemoteRejectionError):
    """The rejection markers say the upstream is throttling us."""


class EnvelopeDecodeError(FeedSyncError):
    """The response body is not a valid mtop envelope."""

    def __init__(self, message: str, body: str = "", status_code: Optional[int] = None) -> None:
        self.body = body
        self.status_code = status_code
        super().__init__(f"{message} (status={status_code}, body={body[:500]!r})")


class FeedDecodeError(FeedSyncError):
    """A feed page payload does not have the expected structure."""


class CardDecodeError(FeedSyncError):
    """A single feed card could not be decoded."""


class FeedPageError(FeedSyncError):
    """Fetching or decoding one feed page failed."""

    def __init__(self, page: int, cause: Exception) -> None:
        self.page = page
        super().__init__(f"page {page} failed: {cause}")


class DetailFetchError(FeedSyncError):
    """Detail retrieval gave up after exhausting its attempts."""

    def __init__(self, item_id: str, attempts: int, cause: Exception) -> None:
        self.item_id = item_id
        self.attempts = attempts
        super().__init__(f"detail for item {item_id} still failing after {attempts} attempts: {cause}")


class BitableAPIError(FeedSyncError):
    """The bitable service returned a non-zero code."""

    def __init__(self, code: int, msg: str, path: str = "") -> None:
        self.code = code
        self.msg = msg
        self.path = path
        super().__init__(f"bitable error {code} on {path or '?'}: {msg}")

"""Randomized request headers for the mtop endpoint."""
from __future__ import annotations

import random
from typing import Dict, Optional

from .user_agent import UserAgentPool

# Headers the protocol requires; reapplied after randomization so they always win.
PROTOCOL_HEADERS: Dict[str, str] = {
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "Accept": "application/json, text/plain, */*",
    "Origin": "https://www.goofish.com",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-site",
}

# Used as-is when evasion is disabled.
STATIC_HEADERS: Dict[str, str] = {
    **PROTOCOL_HEADERS,
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Referer": "https://www.goofish.com/",
    "Sec-Ch-Ua": '"Google Chrome";v="143", "Chromium";v="143", "Not A(Brand";v="24"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
}


class HeaderRandomizer:
    """Pick User-Agent, Accept-Language and Referer from a fixed pool."""

    def __init__(self, pool: Optional[UserAgentPool] = None, rng: Optional[random.Random] = None) -> None:
        self.pool = pool or UserAgentPool()
        self.rng = rng or random.Random()

    def build(self) -> Dict[str, str]:
        """Return only the randomized headers."""
        return {
            "User-Agent": self.pool.get_random(self.rng),
            "Accept-Language": self.rng.choice(self.pool.accept_languages),
            "Referer": self.rng.choice(self.pool.referers),
        }

    def build_request_headers(self) -> Dict[str, str]:
        """Randomized headers with the protocol headers asserted on top."""
        headers = self.build()
        headers.update(PROTOCOL_HEADERS)
        return headers

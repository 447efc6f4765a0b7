"""Anti-bot helpers for the mtop collector.

This module provides the two services consulted before every upstream call:
- Header randomization from a fixed fingerprint pool
- Jittered request pacing
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .headers import PROTOCOL_HEADERS, STATIC_HEADERS, HeaderRandomizer
from .pacing import DelayManager
from .user_agent import UserAgentPool

if TYPE_CHECKING:
    from feedsync.config import AntiBotConfig


@dataclass
class Evasion:
    """Header randomizer and delay manager used together by the client."""

    headers: HeaderRandomizer
    delay: DelayManager

    @classmethod
    def from_config(cls, config: "AntiBotConfig", *, rng: Optional[random.Random] = None) -> Optional["Evasion"]:
        """Build from an ``AntiBotConfig``; ``None`` when evasion is disabled."""
        if not config.enabled:
            return None
        rng = rng or random.Random()
        return cls(
            headers=HeaderRandomizer(UserAgentPool(), rng=rng),
            delay=DelayManager(config.delay.min_ms, config.delay.max_ms, rng=rng),
        )


__all__ = [
    "DelayManager",
    "Evasion",
    "HeaderRandomizer",
    "PROTOCOL_HEADERS",
    "STATIC_HEADERS",
    "UserAgentPool",
]

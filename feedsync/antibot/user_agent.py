"""Fingerprint pools used for header randomization."""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence, Tuple

DESKTOP_USER_AGENTS: Tuple[str, ...] = (
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36",

    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",

    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36 Edg/119.0.0.0",

    # Safari on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Safari/605.1.15",

    # Firefox
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",

    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

ACCEPT_LANGUAGES: Tuple[str, ...] = (
    "zh-CN,zh;q=0.9,en;q=0.8",
    "zh-CN,zh;q=0.9",
    "zh-CN,zh;q=0.9,en;q=0.8,ja;q=0.7",
    "en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7",
)

REFERERS: Tuple[str, ...] = (
    "https://www.goofish.com/",
    "https://www.goofish.com/item/",
    "https://www.taobao.com/",
    "https://h5.m.goofish.com/",
)


@dataclass(frozen=True)
class UserAgentPool:
    """Immutable pool of realistic header values."""

    user_agents: Tuple[str, ...] = DESKTOP_USER_AGENTS
    accept_languages: Tuple[str, ...] = ACCEPT_LANGUAGES
    referers: Tuple[str, ...] = REFERERS

    def __post_init__(self) -> None:
        for name in ("user_agents", "accept_languages", "referers"):
            if not getattr(self, name):
                raise ValueError(f"{name} pool must not be empty")

    @classmethod
    def from_lists(
        cls,
        user_agents: Sequence[str] | None = None,
        accept_languages: Sequence[str] | None = None,
        referers: Sequence[str] | None = None,
    ) -> "UserAgentPool":
        return cls(
            user_agents=tuple(user_agents) if user_agents else DESKTOP_USER_AGENTS,
            accept_languages=tuple(accept_languages) if accept_languages else ACCEPT_LANGUAGES,
            referers=tuple(referers) if referers else REFERERS,
        )

    def get_random(self, rng: random.Random) -> str:
        """Get a random user-agent string.

        Parameters
        ----------
        rng : random.Random
            Source of randomness

        Returns
        -------
        str
            Random user-agent string
        """
        return rng.choice(self.user_agents)

    def get_by_browser(self, browser: str, rng: random.Random) -> str:
        """Get a random user-agent for a specific browser.

        Parameters
        ----------
        browser : str
            Browser name (chrome, firefox, safari, edge)
        rng : random.Random
            Source of randomness

        Returns
        -------
        str
            Random user-agent for the browser
        """
        browser = browser.lower()

        if browser == "chrome":
            agents = [ua for ua in self.user_agents if "Chrome" in ua and "Edg" not in ua]
        elif browser == "firefox":
            agents = [ua for ua in self.user_agents if "Firefox" in ua]
        elif browser == "safari":
            agents = [ua for ua in self.user_agents if "Safari" in ua and "Chrome" not in ua]
        elif browser == "edge":
            agents = [ua for ua in self.user_agents if "Edg" in ua]
        else:
            agents = list(self.user_agents)

        return rng.choice(agents) if agents else self.get_random(rng)

import random

import pytest

from feedsync.antibot import PROTOCOL_HEADERS, DelayManager, Evasion, HeaderRandomizer, UserAgentPool
from feedsync.config import AntiBotConfig, DelayConfig


def test_user_agent_pool_rejects_empty_pools():
    with pytest.raises(ValueError):
        UserAgentPool(user_agents=())


def test_user_agent_pool_from_lists_falls_back_to_defaults():
    pool = UserAgentPool.from_lists(user_agents=["UA-1"])
    assert pool.user_agents == ("UA-1",)
    assert pool.referers == UserAgentPool().referers


def test_get_by_browser_filters_family(rng):
    pool = UserAgentPool()
    for _ in range(20):
        ua = pool.get_by_browser("firefox", rng)
        assert "Firefox" in ua
        chrome = pool.get_by_browser("chrome", rng)
        assert "Chrome" in chrome and "Edg" not in chrome


def test_header_randomizer_picks_from_pool(rng):
    pool = UserAgentPool.from_lists(["UA-1", "UA-2"], ["zh-CN"], ["https://www.goofish.com/"])
    headers = HeaderRandomizer(pool, rng).build()
    assert set(headers) == {"User-Agent", "Accept-Language", "Referer"}
    assert headers["User-Agent"] in {"UA-1", "UA-2"}
    assert headers["Accept-Language"] == "zh-CN"


def test_header_randomizer_is_reproducible_with_seed():
    first = HeaderRandomizer(rng=random.Random(7)).build()
    second = HeaderRandomizer(rng=random.Random(7)).build()
    assert first == second


def test_request_headers_keep_protocol_headers(rng):
    headers = HeaderRandomizer(rng=rng).build_request_headers()
    for name, value in PROTOCOL_HEADERS.items():
        assert headers[name] == value


def test_delay_manager_sleeps_within_bounds(rng):
    slept = []
    manager = DelayManager(100, 300, rng=rng, sleep=slept.append)
    for _ in range(50):
        seconds = manager.wait()
        assert 0.1 <= seconds <= 0.3
    assert len(slept) == 50
    assert all(0.1 <= s <= 0.3 for s in slept)


def test_delay_manager_zero_range_is_noop():
    slept = []
    manager = DelayManager(0, 0, sleep=slept.append)
    assert manager.wait() == 0.0
    assert slept == []


@pytest.mark.parametrize("bounds", [(500, 100), (-1, 10), (0, -5)])
def test_delay_manager_rejects_bad_range(bounds):
    with pytest.raises(ValueError):
        DelayManager(*bounds)


def test_evasion_from_config():
    assert Evasion.from_config(AntiBotConfig(enabled=False)) is None
    evasion = Evasion.from_config(AntiBotConfig(enabled=True, delay=DelayConfig(min_ms=10, max_ms=20)))
    assert evasion.delay.min_ms == 10
    assert evasion.delay.max_ms == 20

"""Jittered pauses between upstream calls."""
from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class DelayManager:
    """Block the caller for a uniform random time in ``[min_ms, max_ms]``."""

    def __init__(
        self,
        min_ms: int = 0,
        max_ms: int = 0,
        *,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize delay manager.

        Parameters
        ----------
        min_ms : int
            Lower bound of the pause in milliseconds
        max_ms : int
            Upper bound of the pause in milliseconds; ``0`` disables pacing
        rng : random.Random, optional
            Source of randomness
        sleep : callable
            Blocking sleep function (seconds)
        """
        if min_ms < 0 or max_ms < 0:
            raise ValueError(f"delay bounds must be non-negative, got [{min_ms}, {max_ms}]")
        if min_ms > max_ms:
            raise ValueError(f"min delay {min_ms}ms is greater than max delay {max_ms}ms")
        self.min_ms = min_ms
        self.max_ms = max_ms
        self.rng = rng or random.Random()
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.max_ms > 0

    def wait(self) -> float:
        """Sleep and return the number of seconds slept."""
        if not self.enabled:
            return 0.0
        delay = self.rng.uniform(self.min_ms, self.max_ms) / 1000.0
        LOGGER.debug("Pacing request for %.2fs", delay)
        self._sleep(delay)
        return delay

#!/usr/bin/env python3
"""
Backoff Policy Module
Computes the delay inserted between retry attempts.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

from instacheck.config import INITIAL_DELAY_MS, MAX_DELAY_MS, MAX_JITTER_MS, BACKOFF_GROWTH_FACTOR


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with additive jitter and a ceiling.

    The policy keeps no state between calls: the caller threads the previous
    delay through successive ``next_delay`` calls, starting from
    ``initial_delay_ms``.
    """
    initial_delay_ms: float = INITIAL_DELAY_MS
    growth_factor: float = BACKOFF_GROWTH_FACTOR
    max_delay_ms: float = MAX_DELAY_MS
    max_jitter_ms: float = MAX_JITTER_MS

    def __post_init__(self):
        if self.growth_factor < 1:
            raise ValueError("growth_factor must be at least 1")
        if self.initial_delay_ms < 0 or self.max_jitter_ms < 0:
            raise ValueError("delays must be non-negative")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must not be lower than initial_delay_ms")

    def next_delay(self, attempt: int, previous_delay_ms: float, jitter: bool = True,
                   rng: Optional[random.Random] = None) -> float:
        """Return the delay (ms) to wait before retry number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        extra = 0.0
        if jitter and self.max_jitter_ms > 0:
            extra = (rng or random).uniform(0, self.max_jitter_ms)
        return min(self.max_delay_ms, max(previous_delay_ms, 0.0) * self.growth_factor + extra)

    def schedule(self, retries: int, jitter: bool = False, rng: Optional[random.Random] = None) -> List[float]:
        """Delays for retries 1..``retries`` as a caller would thread them."""
        delays = []
        delay = self.initial_delay_ms
        for attempt in range(1, retries + 1):
            delay = self.next_delay(attempt, delay, jitter=jitter, rng=rng)
            delays.append(delay)
        return delays

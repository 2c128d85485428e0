"""
Counter-to-rate conversion.

Brokers expose cumulative counters (queue totals, high-water offsets) rather
than rates. ``RateSampler`` keeps the previous reading per key and turns
consecutive readings into an approximate per-second rate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

DEFAULT_EPSILON_SECONDS = 0.001


def _wall_clock_ms() -> float:
    return time.time() * 1000


@dataclass(slots=True)
class RateSnapshot:
    """Last reading of one counter. Never persisted."""

    key: str
    last_value: float
    last_captured_at_ms: float


class RateSampler:
    """Per-key snapshot store producing rates from cumulative counters.

    Each collector owns its own sampler; there is no shared module-level
    instance, so tests can build isolated samplers per case.
    """

    def __init__(
        self,
        *,
        epsilon_seconds: float = DEFAULT_EPSILON_SECONDS,
        clock: Callable[[], float] = _wall_clock_ms,
    ) -> None:
        self._epsilon = epsilon_seconds
        self._clock = clock
        self._snapshots: dict[str, RateSnapshot] = {}

    def sample(self, key: str, cumulative_value: float, now_ms: float | None = None) -> int | None:
        """Record a reading and return the rate since the previous one.

        Returns ``None`` on the first reading for ``key``. A counter that went
        down (reset, compaction) yields 0, and the snapshot still moves to the
        new reading so the next delta is measured from the reset value.
        """
        now = self._clock() if now_ms is None else now_ms
        previous = self._snapshots.get(key)
        self._snapshots[key] = RateSnapshot(
            key=key, last_value=cumulative_value, last_captured_at_ms=now
        )

        if previous is None:
            return None

        elapsed = max(self._epsilon, (now - previous.last_captured_at_ms) / 1000)
        delta = cumulative_value - previous.last_value
        if delta <= 0:
            return 0
        return round(delta / elapsed)

    def snapshot(self, key: str) -> RateSnapshot | None:
        return self._snapshots.get(key)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._snapshots.clear()
        else:
            self._snapshots.pop(key, None)

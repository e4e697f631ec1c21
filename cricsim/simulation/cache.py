"""
Bounded LRU cache of simulated overs, keyed by a coarse situation fingerprint.

Near-identical situations deliberately share a key (required rate rounded,
momentum bucketed in steps of two) so a result can be reused.
"""

import logging

from cricsim.models import CricketContext, OverSimulationResult

logger = logging.getLogger(__name__)


def fingerprint(context: CricketContext) -> str:
    parts = [
        str(context.over),
        context.striker.name,
        context.bowler.name,
        context.phase.value,
        f"rrr:{round(context.pressure.required_run_rate)}",
        f"wickets:{context.pressure.wickets_in_hand}",
        f"bat_mom:{round(context.momentum.batting_momentum / 2)}",
        f"bowl_mom:{round(context.momentum.bowling_momentum / 2)}",
    ]
    return "|".join(parts)


class SimulationCache:
    """LRU with last-access stamps; eviction scans for the oldest entry."""

    def __init__(self, max_size: int = 100) -> None:
        if max_size < 1:
            raise ValueError("Cache size must be at least 1")
        self.max_size = max_size
        self._entries: dict[str, OverSimulationResult] = {}
        self._last_used: dict[str, int] = {}
        self._clock = 0
        self.hits = 0
        self.misses = 0

    def _touch(self, key: str) -> None:
        # Logical access clock, strictly increasing
        self._clock += 1
        self._last_used[key] = self._clock

    def get(self, key: str) -> OverSimulationResult | None:
        """Look up and count a hit or miss."""
        result = self._entries.get(key)
        if result is None:
            self.misses += 1
            return None
        self.hits += 1
        self._touch(key)
        return result

    def peek(self, key: str) -> OverSimulationResult | None:
        """Look up without touching counters or recency."""
        return self._entries.get(key)

    def has(self, key: str) -> bool:
        return key in self._entries

    def set(self, key: str, result: OverSimulationResult) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()
        self._entries[key] = result
        self._touch(key)

    def _evict_oldest(self) -> None:
        oldest_key = min(self._last_used, key=self._last_used.get)
        del self._entries[oldest_key]
        del self._last_used[oldest_key]
        logger.debug(f"Evicted cached over {oldest_key}")

    def clear(self) -> None:
        self._entries.clear()
        self._last_used.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get_analytics(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": len(self._entries),
            "max_size": self.max_size,
            "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
        }

"""Size-bounded memo for dependency calculations."""
from __future__ import annotations

import logging
import math
import time
from typing import Dict, Generic, Mapping, Optional, TypeVar

from . import config
from .diagnostics import Notifier, emit


logger = logging.getLogger(__name__)

V = TypeVar("V")

EMPTY_STATE_HASH = "empty"


def build_state_hash(state: Mapping[str, int]) -> str:
    """Return a deterministic digest of ``state``.

    Zero-level entries are dropped so an absent building and one recorded at
    level 0 hash identically. Entries are sorted by building id.
    """

    entries = sorted((building_id, int(level)) for building_id, level in state.items() if int(level) > 0)
    if not entries:
        return EMPTY_STATE_HASH
    return "|".join(f"{building_id}:{level}" for building_id, level in entries)


class DependencyCache(Generic[V]):
    """Insertion-ordered cache evicting its oldest entries in batches."""

    def __init__(
        self,
        max_size: int = config.CACHE_MAX_SIZE,
        cleanup_threshold: int = config.CACHE_CLEANUP_THRESHOLD,
        eviction_ratio: float = config.CACHE_EVICTION_RATIO,
        notifier: Notifier = None,
    ) -> None:
        if cleanup_threshold < max_size:
            raise ValueError("cleanup_threshold must not be lower than max_size")
        if not 0 < eviction_ratio <= 1:
            raise ValueError("eviction_ratio must be within (0, 1]")
        self.max_size = int(max_size)
        self.cleanup_threshold = int(cleanup_threshold)
        self.eviction_ratio = float(eviction_ratio)
        self.notifier = notifier
        self._entries: Dict[str, V] = {}
        self._reset_metrics()

    def _reset_metrics(self) -> None:
        self.hits = 0
        self.misses = 0
        self.key_generation_ms = 0.0
        self.average_key_size = 0.0

    # ------------------------------------------------------------------
    def make_key(self, target_id: str, target_level: int, state: Mapping[str, int]) -> str:
        start = time.perf_counter()
        state_hash = build_state_hash(state)
        self.key_generation_ms += (time.perf_counter() - start) * 1000.0
        if state_hash != EMPTY_STATE_HASH:
            self.average_key_size = (self.average_key_size + len(state_hash)) / 2
        return f"{target_id}-{int(target_level)}-{state_hash}"

    def get(self, key: str) -> Optional[V]:
        value = self._entries.get(key)
        if value is None:
            self.misses += 1
            return None
        self.hits += 1
        total = self.hits + self.misses
        if total % 50 == 0:
            logger.info(
                "Cache performance: %.1f%% hit rate, key generation %.2fms, avg key size %.0f chars",
                self.hit_rate * 100,
                self.key_generation_ms,
                self.average_key_size,
            )
        return value

    def put(self, key: str, value: V) -> None:
        if key not in self._entries and len(self._entries) >= self.cleanup_threshold:
            self.evict()
        self._entries[key] = value

    def evict(self) -> int:
        """Drop the oldest share of entries and return how many were removed.

        At least ``eviction_ratio`` of the entries go, and always enough to
        fall back to ``max_size``.
        """

        count = max(
            math.floor(len(self._entries) * self.eviction_ratio),
            len(self._entries) - self.max_size,
        )
        if count <= 0:
            return 0
        for key in list(self._entries)[:count]:
            del self._entries[key]
        emit(
            logger,
            self.notifier,
            "cache_evicted",
            "Cache cleanup: removed %d entries, %d remaining",
            count,
            len(self._entries),
            severity=logging.INFO,
            removed=count,
            remaining=len(self._entries),
        )
        return count

    def clear(self) -> None:
        self._entries.clear()
        self._reset_metrics()

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def metrics(self) -> Dict[str, float]:
        return {
            "cache_hits": self.hits,
            "cache_misses": self.misses,
            "hit_rate": self.hit_rate,
            "key_generation_ms": self.key_generation_ms,
            "average_key_size": self.average_key_size,
            "cache_size": len(self._entries),
            "max_size": self.max_size,
        }

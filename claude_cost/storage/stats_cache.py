"""
Per-query statistics cache.

Memoises a StatsSnapshot per (since, until) query for a short time-to-live
and revalidates expired entries against the corpus freshness, so a display
that re-queries every few seconds costs nothing while the logs are idle.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Callable, Dict, Optional, Tuple

from claude_cost.core.aggregator import StatsSnapshot, aggregate
from .corpus import CorpusLoader
from .models import CorpusSnapshot

logger = logging.getLogger(__name__)

UNBOUNDED = "all"
# Shorter than the 5 second display refresh
DEFAULT_TTL_SECONDS = 4.0

CacheKey = Tuple[str, str]


@dataclass(frozen=True)
class _CacheEntry:
    stamped_at: float
    snapshot: StatsSnapshot
    corpus_generation: int
    computed_on: date


def _normalize_bound(bound: Optional[datetime], tz: Optional[tzinfo]) -> Optional[datetime]:
    if bound is None or bound.tzinfo is not None:
        return bound
    # Naive bounds are wall-clock times in the bucketing zone
    return bound.astimezone() if tz is None else bound.replace(tzinfo=tz)


def make_cache_key(since: Optional[datetime], until: Optional[datetime]) -> CacheKey:
    """Cache key for a query; an absent bound maps to ``UNBOUNDED``."""
    return (
        since.isoformat() if since is not None else UNBOUNDED,
        until.isoformat() if until is not None else UNBOUNDED,
    )


class StatsCache:
    """Snapshot cache in front of a CorpusLoader.

    Only one query runs at a time; a caller arriving while another query is
    aggregating waits for it and then usually hits the fresh entry.
    """

    def __init__(
        self,
        loader: CorpusLoader,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
    ):
        """Initialize the cache.

        Args:
            loader: Source of the deduplicated corpus
            ttl_seconds: Age after which an entry is revalidated
            clock: Monotonic clock used for entry ages
            now: Wall clock used for "today" in aggregation
            tz: Time zone for day and hour buckets; host local zone if None
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._now = now or (lambda: datetime.now().astimezone())
        self._tz = tz
        self._entries: Dict[CacheKey, _CacheEntry] = {}
        self._corpus: Optional[CorpusSnapshot] = None
        self._corpus_generation = 0
        self._lock = threading.Lock()
        # Instrumentation: number of aggregation passes performed
        self.aggregate_count = 0

    def query(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> StatsSnapshot:
        """Statistics for events with ``since <= timestamp <= until``.

        Both bounds are optional and inclusive. Naive bounds are read in
        the cache's time zone.

        Args:
            since: Lower bound, or None for unbounded
            until: Upper bound, or None for unbounded

        Returns:
            StatsSnapshot for the range
        """
        since = _normalize_bound(since, self._tz)
        until = _normalize_bound(until, self._tz)
        key = make_cache_key(since, until)

        with self._lock:
            stamp = self._clock()
            cached = self._entries.get(key)
            if cached is not None and stamp - cached.stamped_at < self.ttl_seconds:
                return cached.snapshot

            now = self._now()
            today = now.astimezone(self._tz).date() if now.tzinfo is not None else now.date()

            paths = self.loader.discover()
            if self._corpus_unchanged(paths):
                if (cached is not None
                        and cached.corpus_generation == self._corpus_generation
                        and cached.computed_on == today):
                    logger.debug("Logs unchanged, re-stamping %s", key)
                    self._entries[key] = _CacheEntry(
                        stamped_at=stamp,
                        snapshot=cached.snapshot,
                        corpus_generation=cached.corpus_generation,
                        computed_on=cached.computed_on,
                    )
                    return cached.snapshot
            else:
                self._corpus = self.loader.load_all(paths)
                self._corpus_generation += 1
                logger.debug(
                    "Corpus reloaded (generation %d, %d events)",
                    self._corpus_generation, len(self._corpus.events),
                )

            events = self._corpus.events
            if since is not None:
                events = [e for e in events if e.timestamp >= since]
            if until is not None:
                events = [e for e in events if e.timestamp <= until]

            snapshot = aggregate(events, now=now, tz=self._tz)
            self.aggregate_count += 1
            self._entries[key] = _CacheEntry(
                stamped_at=stamp,
                snapshot=snapshot,
                corpus_generation=self._corpus_generation,
                computed_on=today,
            )
            return snapshot

    def _corpus_unchanged(self, paths) -> bool:
        if self._corpus is None:
            return False
        if tuple(paths) != self._corpus.files:
            return False
        return self._corpus.max_mtime_ns >= self.loader.max_mtime(paths)

    def invalidate(self) -> None:
        """Forget all snapshots and the loaded corpus."""
        with self._lock:
            self._entries.clear()
            self._corpus = None

    def __len__(self) -> int:
        return len(self._entries)

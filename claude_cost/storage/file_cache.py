"""
Per-file parse cache.

Memoises the usage events of each session log keyed by the file's
modification time, so unchanged files are never read twice.
"""

import logging
import os
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

from claude_cost.core.parser import ParseRejected, RejectCause, parse_line
from claude_cost.core.pricing import PRICING_TABLE, PricingTable
from .models import CachedFile, UsageEvent

logger = logging.getLogger(__name__)

# Attempts to get a read that starts and ends on the same mtime
MAX_READ_ATTEMPTS = 3


class FileCache:
    """Cache of parsed usage events, one entry per log file path.

    Entries are kept until the file's modification time changes or the file
    can no longer be read. There is no size bound.
    """

    def __init__(self, pricing_table: PricingTable = PRICING_TABLE):
        """Initialize an empty cache.

        Args:
            pricing_table: Table used to price parsed events
        """
        self.pricing_table = pricing_table
        self._entries: Dict[str, CachedFile] = {}
        self._lock = threading.Lock()
        # Instrumentation: full file parses performed and skipped lines by cause
        self.parse_count = 0
        self.rejections: Counter = Counter()

    def load(self, path: str) -> List[UsageEvent]:
        """Return the usage events of one log file.

        If the cached entry's mtime matches the file's current mtime, the
        cached events are returned without reading the file. Otherwise the
        file is read and parsed in full. A file that cannot be stat'ed or
        read is evicted and yields an empty list.

        Args:
            path: Path to a ``.jsonl`` session log

        Returns:
            Events in file order
        """
        with self._lock:
            try:
                mtime_ns = os.stat(path).st_mtime_ns
            except OSError as e:
                logger.debug("Cannot stat %s, evicting: %s", path, e)
                self._entries.pop(path, None)
                return []

            cached = self._entries.get(path)
            if cached is not None and cached.mtime_ns == mtime_ns:
                return list(cached.events)

            try:
                stable_mtime, events = self._read_stable(path, mtime_ns)
            except OSError as e:
                logger.debug("Cannot read %s, evicting: %s", path, e)
                self._entries.pop(path, None)
                return []

            if stable_mtime is None:
                # File kept changing while we read it; serve but do not cache
                self._entries.pop(path, None)
            else:
                self._entries[path] = CachedFile(path=path, mtime_ns=stable_mtime, events=events)
            return list(events)

    def _read_stable(self, path: str, mtime_ns: int) -> Tuple[Optional[int], Tuple[UsageEvent, ...]]:
        events: Tuple[UsageEvent, ...] = ()
        for _ in range(MAX_READ_ATTEMPTS):
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
            events = self._parse_content(content)
            after = os.stat(path).st_mtime_ns
            if after == mtime_ns:
                return mtime_ns, events
            logger.debug("%s changed while reading, retrying", path)
            mtime_ns = after
        return None, events

    def _parse_content(self, content: str) -> Tuple[UsageEvent, ...]:
        self.parse_count += 1
        events = []
        for line in content.split("\n"):
            if not line.strip():
                continue
            result = parse_line(line, self.pricing_table)
            if isinstance(result, ParseRejected):
                self.rejections[result.cause] += 1
                continue
            events.append(result)
        return tuple(events)

    def evict(self, path: str) -> None:
        """Drop the cached entry for a path, if any."""
        with self._lock:
            self._entries.pop(path, None)

    def clear(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._entries.clear()

    def get(self, path: str) -> Optional[CachedFile]:
        """Cached entry for a path without touching the file."""
        return self._entries.get(path)

    def rejection_count(self, cause: RejectCause) -> int:
        """Lines skipped for one cause since the cache was created."""
        return self.rejections[cause]

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

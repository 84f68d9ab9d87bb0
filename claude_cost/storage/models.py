"""
Data models for the storage layer.

Defines usage events and the cache entries that hold them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from claude_cost.core.token_counter import TokenUsage

UNKNOWN = "unknown"


@dataclass(frozen=True)
class UsageEvent:
    """Immutable record of one accounted model invocation.

    Built from a single assistant line of a session log. Events with no
    tokens at all are never created.
    """
    timestamp: datetime
    model: str
    usage: TokenUsage
    cost: float
    session_id: str = UNKNOWN
    project: str = UNKNOWN
    message_id: str = UNKNOWN

    @property
    def dedup_key(self) -> Tuple[str, str]:
        """Identity of the logical message across repeated log writes."""
        return (self.session_id, self.message_id)


@dataclass(frozen=True)
class CachedFile:
    """Parse result of one log file at a given modification time."""
    path: str
    mtime_ns: int
    events: Tuple[UsageEvent, ...]


@dataclass(frozen=True)
class CorpusSnapshot:
    """Deduplicated, timestamp-ascending events across all log files.

    ``max_mtime_ns`` is the newest modification time observed among
    ``files`` when the snapshot was taken.
    """
    events: Tuple[UsageEvent, ...]
    max_mtime_ns: int
    files: Tuple[str, ...]

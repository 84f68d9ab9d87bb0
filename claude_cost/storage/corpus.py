"""
Log corpus discovery and loading.

Finds every session log under the projects directory, loads each one
through the FileCache and merges them into one deduplicated event stream.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .file_cache import FileCache
from .models import CorpusSnapshot, UsageEvent

logger = logging.getLogger(__name__)

LOG_FILE_SUFFIX = ".jsonl"
DEFAULT_PROJECTS_DIR = Path.home() / ".claude" / "projects"


def discover_log_files(root_dir: str) -> List[str]:
    """Recursively find all session log files under a directory.

    Unreadable subdirectories are skipped; a missing root yields an empty
    list. Paths are returned sorted so downstream ordering is stable.

    Args:
        root_dir: Directory to scan

    Returns:
        Sorted list of ``.jsonl`` file paths
    """
    if not os.path.isdir(root_dir):
        return []

    def _skip(error: OSError) -> None:
        logger.debug("Skipping unreadable directory %s: %s", error.filename, error)

    files = []
    for dirpath, _dirnames, filenames in os.walk(root_dir, onerror=_skip):
        for name in filenames:
            if name.endswith(LOG_FILE_SUFFIX):
                files.append(os.path.join(dirpath, name))
    files.sort()
    return files


def deduplicate_events(events: Iterable[UsageEvent]) -> List[UsageEvent]:
    """Keep one event per (session_id, message_id), the latest by timestamp.

    The same message is logged several times while it streams, so the last
    write carries the final usage. Events are sorted newest first, the first
    one seen per key is kept, and the result is re-sorted oldest first. With
    equal timestamps the earlier-loaded record wins.

    Args:
        events: Events from any number of files

    Returns:
        Deduplicated events in ascending timestamp order
    """
    newest_first = sorted(events, key=lambda e: e.timestamp, reverse=True)

    seen: Set[Tuple[str, str]] = set()
    deduplicated = []
    for event in newest_first:
        key = event.dedup_key
        if key in seen:
            continue
        seen.add(key)
        deduplicated.append(event)

    deduplicated.sort(key=lambda e: e.timestamp)
    return deduplicated


class CorpusLoader:
    """Loads the full, deduplicated event stream of a projects directory."""

    def __init__(self, root_dir: str, file_cache: Optional[FileCache] = None):
        """Initialize the loader.

        Args:
            root_dir: Directory holding the session logs
            file_cache: Cache used for per-file parsing; a new one by default
        """
        self.root_dir = str(root_dir)
        self.file_cache = file_cache if file_cache is not None else FileCache()

    def discover(self) -> List[str]:
        """All log files currently under the root directory."""
        return discover_log_files(self.root_dir)

    @staticmethod
    def max_mtime(paths: Sequence[str]) -> int:
        """Newest modification time among paths, in nanoseconds.

        Files that vanish mid-scan are ignored. Returns 0 if none exist.
        """
        newest = 0
        for path in paths:
            try:
                mtime_ns = os.stat(path).st_mtime_ns
            except OSError:
                continue
            if mtime_ns > newest:
                newest = mtime_ns
        return newest

    def load_all(self, paths: Optional[Sequence[str]] = None) -> CorpusSnapshot:
        """Load every log file and return the deduplicated corpus.

        Args:
            paths: Already discovered files; discovered afresh when omitted

        Returns:
            CorpusSnapshot tagged with the newest observed mtime
        """
        if paths is None:
            paths = self.discover()

        max_mtime_ns = self.max_mtime(paths)

        all_events: List[UsageEvent] = []
        for path in paths:
            all_events.extend(self.file_cache.load(path))

        events = deduplicate_events(all_events)
        logger.debug(
            "Loaded %d events (%d before dedup) from %d files",
            len(events), len(all_events), len(paths),
        )
        return CorpusSnapshot(
            events=tuple(events),
            max_mtime_ns=max_mtime_ns,
            files=tuple(paths),
        )

"""
Shared fixtures for building session log trees.
"""

import json
import os
from typing import Dict, List, Optional

import pytest


def assistant_record(
    timestamp: str = "2025-01-15T10:00:00Z",
    model: str = "claude-3-5-sonnet-20241022",
    session_id: Optional[str] = "s1",
    message_id: Optional[str] = "m1",
    cwd: Optional[str] = "/home/dev/project",
    uuid: Optional[str] = None,
    record_type: str = "assistant",
    **usage: int,
) -> Dict:
    """Build one log record; usage defaults to 100 input / 50 output tokens."""
    if not usage:
        usage = {"input_tokens": 100, "output_tokens": 50}
    message = {"model": model, "usage": usage}
    if message_id is not None:
        message["id"] = message_id
    record = {"type": record_type, "timestamp": timestamp, "message": message}
    if session_id is not None:
        record["sessionId"] = session_id
    if cwd is not None:
        record["cwd"] = cwd
    if uuid is not None:
        record["uuid"] = uuid
    return record


@pytest.fixture
def make_record():
    """Factory for assistant log records."""
    return assistant_record


@pytest.fixture
def projects_dir(tmp_path):
    """Empty projects directory."""
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def write_log(projects_dir):
    """Write records (dicts or raw strings) to a .jsonl file under the projects dir."""

    def _write(relative_path: str, records: List, mtime_ns: Optional[int] = None) -> str:
        path = projects_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        if mtime_ns is not None:
            os.utime(path, ns=(mtime_ns, mtime_ns))
        return str(path)

    return _write

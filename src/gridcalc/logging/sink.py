"""NDJSON event log for the engine.

One JSON object per line in ``<log_dir>/events.ndjson``, keys sorted so
identical events serialize identically.  Appends take an exclusive
``fcntl.flock`` and reads a shared one, so several engines (or a CLI
``events`` call) can share a log directory.  Where ``fcntl`` is missing
the file is used unlocked.
"""

from __future__ import annotations

import json
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from gridcalc.logging.events import EngineEvent

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None  # type: ignore[assignment]
    print("[gridcalc] fcntl not available; event log locking disabled", file=sys.stderr)

LOG_FILENAME = "events.ndjson"

DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
MAX_READ_LIMIT = 2000


@contextmanager
def _locked(path: Path, flags: int, exclusive: bool) -> Iterator[int]:
    """Open *path* as a raw descriptor and hold a flock on it for the block."""
    fd = os.open(str(path), flags, 0o644)
    try:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        yield fd
    finally:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class EventSink:
    """Appends ``EngineEvent`` records to a log directory and reads them back.

    Args:
        log_dir: Directory holding ``events.ndjson``; created if missing.
        fsync: Flush every append to disk before releasing the lock.
        tail_bytes: How much of the end of the file ``read_events`` looks at.
    """

    def __init__(self, log_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.log_dir = Path(log_dir)
        self.path = self.log_dir / LOG_FILENAME
        self.fsync = fsync
        self.tail_bytes = DEFAULT_TAIL_BYTES if tail_bytes is None else tail_bytes
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, event: EngineEvent) -> None:
        payload = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str)
        data = (payload + "\n").encode("utf-8")
        with _locked(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, exclusive=True) as fd:
            os.write(fd, data)
            if self.fsync:
                os.fsync(fd)

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Newest events first, optionally filtered by level and event type.

        Only the last ``tail_bytes`` of the log are scanned, and at most
        ``MAX_READ_LIMIT`` events are returned.
        """
        limit = min(limit, MAX_READ_LIMIT)
        found: list[dict[str, Any]] = []
        for event in reversed(self._tail_records()):
            if level and event.get("level") != level:
                continue
            if event_type and event.get("event_type") != event_type:
                continue
            found.append(event)
            if len(found) >= limit:
                break
        return found

    def _tail_records(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        records: list[dict[str, Any]] = []
        for line in self._tail_text().splitlines():
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return records

    def _tail_text(self) -> str:
        with _locked(self.path, os.O_RDONLY, exclusive=False) as fd:
            size = os.fstat(fd).st_size
            start = max(0, size - self.tail_bytes)
            os.lseek(fd, start, os.SEEK_SET)
            data = os.read(fd, size - start)
        if start > 0:
            # The first line is probably cut off.
            _, _, data = data.partition(b"\n")
        return data.decode("utf-8", errors="replace")

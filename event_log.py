"""
Append-only JSON-lines event log.

Used for the pool-stats history and the performance ledger. Records are
appended one per line and read back through windowed scans; lines that
fail to parse are skipped.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_ts(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and Z suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_ts(value) -> Optional[datetime]:
    """Parse an ISO timestamp; naive values are treated as UTC. None if unparseable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class JsonlEventLog:
    """File-backed append(record) / scan(since) log"""

    def __init__(self, path):
        self.path = Path(path)

    def ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def append(self, record: dict) -> None:
        self.ensure()
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, separators=(",", ":"), ensure_ascii=False) + "\n")

    def scan(self, since: Optional[datetime] = None, ts_key: str = "ts") -> Iterator[dict]:
        """
        Yield records in file order.
        With `since`, only records whose timestamp parses and is >= since.
        """
        if not self.path.exists():
            return
        skipped = 0
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    skipped += 1
                    continue
                if not isinstance(record, dict):
                    skipped += 1
                    continue
                if since is not None:
                    ts = parse_ts(record.get(ts_key))
                    if ts is None or ts < since:
                        continue
                yield record
        if skipped:
            logger.debug(f"{self.path.name}: skipped {skipped} corrupt line(s)")

    def count(self) -> int:
        return sum(1 for _ in self.scan())

"""Recent activity feed.

A bounded, newest-first list of human-readable outcomes (campaigns created,
bills reconciled, failures) shown to administrators at GET /api/logs.
"""

from collections import deque
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any, Deque, Dict, List


class ActivityKind(str, Enum):
    OK = "ok"
    ERR = "err"


@dataclass
class ActivityEntry:
    kind: ActivityKind
    msg: str
    ts: str = field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


class ActivityFeed:
    """Keeps the most recent entries only."""

    def __init__(self, max_entries: int = 20):
        self._entries: Deque[ActivityEntry] = deque(maxlen=max_entries)
        self._lock = Lock()

    def record(self, kind: ActivityKind, msg: str) -> ActivityEntry:
        entry = ActivityEntry(kind=kind, msg=msg)
        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def ok(self, msg: str) -> ActivityEntry:
        return self.record(ActivityKind.OK, msg)

    def err(self, msg: str) -> ActivityEntry:
        return self.record(ActivityKind.ERR, msg)

    def recent(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

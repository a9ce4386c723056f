"""
Append-only trade event ledger.

Every trade lifecycle step creates an immutable event.
No deletions. No edits. History is permanent.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("henhouse.ledger")

EVENT_TYPES = frozenset({
    "trade_requested",
    "trade_request_declined",
    "trade_started",
    "trade_updated",
    "trade_locked",
    "trade_completed",
    "trade_cancelled",
    "item_transferred",
})


def _get_ledger_file() -> str:
    return os.environ.get("HENHOUSE_EVENT_LEDGER_FILE", "trade_events.jsonl")


@dataclass
class Event:
    event_id: int
    event_type: str
    trade_id: Optional[str]
    player_id: Optional[str]
    success: bool
    details: Dict[str, Any]
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "trade_id": self.trade_id,
            "player_id": self.player_id,
            "success": self.success,
            "details": self.details,
            "error": self.error,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            event_id=data["event_id"],
            event_type=data["event_type"],
            trade_id=data.get("trade_id"),
            player_id=data.get("player_id"),
            success=data.get("success", False),
            details=data.get("details", {}),
            error=data.get("error"),
            timestamp=data.get("timestamp", 0),
        )


class EventLedger:
    """
    Append-only event ledger.

    Events are stored both in memory and persisted to a JSONL file.
    Monotonic IDs guarantee ordering.
    """

    def __init__(self, filepath: Optional[str] = None) -> None:
        self._filepath = filepath or _get_ledger_file()
        self._events: List[Event] = []
        self._next_id: int = 0
        self._lock = threading.Lock()
        self._load_existing()

    def _load_existing(self) -> None:
        if not os.path.exists(self._filepath):
            return
        try:
            with open(self._filepath, "r") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    event = Event.from_dict(json.loads(line))
                    self._events.append(event)
                    self._next_id = max(self._next_id, event.event_id + 1)
        except (json.JSONDecodeError, KeyError, IOError):
            logger.warning("Event ledger %s unreadable; starting fresh", self._filepath)

    def append(self, event_data: dict) -> Event:
        """Append a new event. This is the ONLY write operation."""
        with self._lock:
            event = Event(
                event_id=self._next_id,
                event_type=event_data.get("event_type", "unknown"),
                trade_id=event_data.get("trade_id"),
                player_id=event_data.get("player_id"),
                success=event_data.get("success", True),
                details=event_data.get("details", {}),
                error=event_data.get("error"),
            )
            self._events.append(event)
            self._next_id += 1

            try:
                with open(self._filepath, "a") as f:
                    f.write(json.dumps(event.to_dict()) + "\n")
            except IOError:
                logger.warning("Could not persist event %d; in-memory copy kept", event.event_id)

            return event

    def get_events(
        self,
        trade_id: Optional[str] = None,
        event_type: Optional[str] = None,
        player_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Event]:
        results = []
        with self._lock:
            events = list(self._events)
        for event in events:
            if trade_id and event.trade_id != trade_id:
                continue
            if event_type and event.event_type != event_type:
                continue
            if player_id and event.player_id != player_id:
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    def get_event_by_id(self, event_id: int) -> Optional[Event]:
        with self._lock:
            if 0 <= event_id < len(self._events):
                return self._events[event_id]
        return None

    def count(self) -> int:
        return len(self._events)

# app/services/events.py
"""
Notification channel between the SMS pipeline and whatever UI listens.

Two event kinds:
  * "new_merchant"  - an SMS produced a merchant with no rule yet
  * "data_changed"  - transactions were inserted or relabeled

Subscribers are plain callables. Every published event is also kept in a
bounded deque so a polling client (GET /sms/events) can catch up.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

NEW_MERCHANT = "new_merchant"
DATA_CHANGED = "data_changed"

MAX_EVENTS = 500


@dataclass
class Event:
    kind: str
    owner_id: Optional[int]
    payload: Dict[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["ts"] = self.ts.isoformat()
        return d


Subscriber = Callable[[Event], None]


class EventBus:
    def __init__(self, max_events: int = MAX_EVENTS):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._events: Deque[Event] = deque(maxlen=max_events)
        self._lock = threading.RLock()

    def subscribe(self, kind: str, callback: Subscriber) -> Callable[[], None]:
        """Register `callback` for `kind`; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.setdefault(kind, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(kind, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def publish(self, kind: str, owner_id: Optional[int] = None, **payload: Any) -> Event:
        event = Event(kind=kind, owner_id=owner_id, payload=payload)
        with self._lock:
            self._events.append(event)
            callbacks = list(self._subscribers.get(kind, []))

        for cb in callbacks:
            # a broken listener must not undo an already-committed insert
            try:
                cb(event)
            except Exception:
                logger.exception("Event subscriber failed for %s", kind)
        return event

    def recent(self, owner_id: Optional[int] = None, limit: int = 50) -> List[Event]:
        with self._lock:
            events = [e for e in self._events if owner_id is None or e.owner_id == owner_id]
        return events[-limit:] if limit > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


# Process-wide bus used by the HTTP layer (tests make their own)
default_bus = EventBus()

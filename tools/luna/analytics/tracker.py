"""
Classification Analytics Tracker

In-memory, bounded log of classification events plus the feedback users
give on them. Aggregations run on a snapshot so recording never waits on
a dashboard query.

Usage:
    from tools.luna.analytics.tracker import AnalyticsTracker

    tracker = AnalyticsTracker()
    tracker.record(event)
    tracker.record_feedback(event.id, helpful=True)
    dashboard = tracker.aggregate()

Dependencies:
    - threading (stdlib)
"""

from __future__ import annotations

import json
import threading
from collections import deque
from pathlib import Path
from typing import Any

from tools.logging_config import get_logger
from tools.luna.analytics.metrics import AnalyticsFilter, FeedbackIndex, build_dashboard
from tools.luna.config import AnalyticsConfig
from tools.luna.models import ClassificationEvent, FeedbackRecord, Intent

logger = get_logger(__name__)

# Feedback records kept per event
MAX_FEEDBACK_PER_EVENT = 20


class AnalyticsTracker:
    """Thread-safe ring buffer of ClassificationEvents with feedback."""

    def __init__(self, config: AnalyticsConfig | None = None):
        self.config = config or AnalyticsConfig()
        self._events: deque[ClassificationEvent] = deque()
        self._index: dict[str, ClassificationEvent] = {}
        self._feedback: FeedbackIndex = {}
        self._lock = threading.Lock()

    def record(self, event: ClassificationEvent) -> ClassificationEvent:
        """Append an event; the oldest one (and its feedback) drops at capacity."""
        with self._lock:
            if event.id in self._index:
                raise ValueError(f"event {event.id} already recorded")
            while len(self._events) >= self.config.max_events:
                evicted = self._events.popleft()
                self._index.pop(evicted.id, None)
                self._feedback.pop(evicted.id, None)
            self._events.append(event)
            self._index[event.id] = event
        return event

    def record_feedback(
        self,
        event_id: str,
        helpful: bool | None = None,
        actual_intent: Intent | None = None,
        source: str = "explicit",
    ) -> FeedbackRecord | None:
        """Attach feedback to a recorded event. Returns None for unknown ids."""
        record = FeedbackRecord(
            event_id=event_id,
            helpful=helpful,
            actual_intent=actual_intent,
            source=source,
        )
        with self._lock:
            if event_id not in self._index:
                logger.debug("feedback_unknown_event", event_id=event_id)
                return None
            records = self._feedback.setdefault(event_id, [])
            records.append(record)
            del records[:-MAX_FEEDBACK_PER_EVENT]
        return record

    def confirm(self, event_id: str) -> FeedbackRecord | None:
        """Implicit ground truth: the user acted on the prediction, so it was right."""
        event = self.get_event(event_id)
        if event is None:
            return None
        return self.record_feedback(
            event_id,
            actual_intent=Intent(
                category=event.predicted.category,
                action=event.predicted.action,
                confidence=1.0,
            ),
            source="implicit",
        )

    def get_event(self, event_id: str) -> ClassificationEvent | None:
        with self._lock:
            return self._index.get(event_id)

    def feedback_for(self, event_id: str) -> list[FeedbackRecord]:
        with self._lock:
            return list(self._feedback.get(event_id, []))

    def events(self, filter: AnalyticsFilter | None = None) -> list[ClassificationEvent]:
        """Snapshot of recorded events, oldest first."""
        with self._lock:
            events = list(self._events)
        return filter.apply(events) if filter else events

    def aggregate(
        self,
        filter: AnalyticsFilter | None = None,
        total_capabilities: int = 0,
    ) -> dict[str, Any]:
        """Overview, performance, accuracy and insights over the selected events."""
        with self._lock:
            events = list(self._events)
            feedback = {k: list(v) for k, v in self._feedback.items()}
        if filter is not None:
            events = filter.apply(events)

        dashboard = build_dashboard(events, feedback, self.config, total_capabilities)
        dashboard["filter"] = filter.to_dict() if filter else None
        return dashboard

    def export_events(self, filter: AnalyticsFilter | None = None) -> list[dict[str, Any]]:
        """Events as dicts with their feedback attached."""
        with self._lock:
            events = list(self._events)
            feedback = {k: list(v) for k, v in self._feedback.items()}
        if filter is not None:
            events = filter.apply(events)
        return [
            {**e.to_dict(), "feedback": [f.to_dict() for f in feedback.get(e.id, [])]}
            for e in events
        ]

    def dump_events(self, path: str | Path, filter: AnalyticsFilter | None = None) -> int:
        """Write exported events to a JSON file. Returns the number written."""
        rows = self.export_events(filter)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(rows, f, indent=2)
        logger.info("analytics_exported", path=str(path), events=len(rows))
        return len(rows)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._index.clear()
            self._feedback.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


__all__ = ["AnalyticsTracker"]

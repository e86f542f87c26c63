from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from quickmap.core.logger import current_pair, get_logger

logger = get_logger(__name__)


@dataclass
class MappingEvent:
    """Structured timing event for a mapping call.

    Decoupled from debug logging; observers decide how to render or keep it.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    stage: str = "-"  # e.g., map.object, map.collection, map.batch
    status: str = "-"  # started|completed|failed
    pair: str = "-"

    duration_ms: Optional[float] = None
    counts: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


class EventObserver:
    """Observer interface for handling mapping events."""

    def handle(self, event: MappingEvent) -> None:  # pragma: no cover
        raise NotImplementedError


class LoggingObserver(EventObserver):
    """Render finished stages as one log line on the quickmap logger."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self.log = log or logger
        self.level = level

    def handle(self, event: MappingEvent) -> None:
        if event.status == "started":
            return
        msg = f"{event.stage} {event.status} pair={event.pair}"
        if event.duration_ms is not None:
            msg += f" took {event.duration_ms:.3f} ms"
        if event.counts:
            msg += f" | counts={event.counts}"
        if event.error:
            brief_err = {k: event.error.get(k) for k in ("code", "message") if k in event.error}
            msg += f" | error={brief_err}"
        self.log.log(self.level, msg)


class MemoryObserver(EventObserver):
    """Keeps every event in memory; handy in tests and notebooks."""

    def __init__(self) -> None:
        self.events: List[MappingEvent] = []

    def handle(self, event: MappingEvent) -> None:
        self.events.append(event)

    def completed(self) -> List[MappingEvent]:
        return [e for e in self.events if e.status == "completed"]


def publish_event(observers: List[EventObserver], event: MappingEvent) -> None:
    """Deliver an event to every observer on the calling thread.

    Observer failures are isolated; mapping never fails because of one.
    """
    for obs in observers:
        try:
            obs.handle(event)
        except Exception:
            logger.debug("Observer %r failed to handle %s", obs, event.stage, exc_info=True)


class timed_stage:
    """Context manager to time a mapping stage and publish start/complete/fail events.

    Usage:
        with timed_stage(observers, "map.object") as stage:
            target = mapper(source)
            stage.counts = {"fields": 4}
    """

    def __init__(
        self,
        observers: List[EventObserver],
        stage: str,
        *,
        counts: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.observers = observers
        self.stage = stage
        self.counts = counts
        self.details = details
        self.duration_ms: Optional[float] = None
        self._start: Optional[float] = None

    def __enter__(self) -> "timed_stage":
        self._start = time.perf_counter()
        publish_event(
            self.observers,
            MappingEvent(stage=self.stage, status="started", pair=current_pair(), details=self.details),
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # type: ignore
        self.duration_ms = (time.perf_counter() - (self._start or 0.0)) * 1000.0
        event = MappingEvent(
            stage=self.stage,
            status="completed",
            pair=current_pair(),
            duration_ms=self.duration_ms,
            counts=self.counts,
            details=self.details,
        )
        if exc_type is not None:
            event.status = "failed"
            event.error = {
                "code": exc_type.__name__,
                "message": str(exc_val),
            }
        publish_event(self.observers, event)
        return False  # Don't suppress exceptions

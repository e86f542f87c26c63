"""Test timing events, observers and engine timing diagnostics."""
import logging
from dataclasses import dataclass
from typing import List

import pytest

from quickmap.core.events import (
    EventObserver,
    LoggingObserver,
    MappingEvent,
    MemoryObserver,
    publish_event,
    timed_stage,
)
from quickmap.core.exceptions import ConversionFailure
from quickmap.core.logger import push_pair, reset_pair
from quickmap.engine import MappingEngine


@dataclass
class Reading:
    sensor: str
    value: str


@dataclass
class ReadingDto:
    sensor: str
    value: float


class ExplodingObserver(EventObserver):
    def handle(self, event):
        raise RuntimeError("observer down")


def test_timed_stage_publishes_started_and_completed():
    """A successful stage publishes a start event and a timed completion."""
    memory = MemoryObserver()
    token = push_pair("Reading->ReadingDto")
    try:
        with timed_stage([memory], "map.object") as stage:
            stage.counts = {"fields": 2}
    finally:
        reset_pair(token)

    assert [e.status for e in memory.events] == ["started", "completed"]
    done = memory.completed()[0]
    assert done.stage == "map.object"
    assert done.pair == "Reading->ReadingDto"
    assert done.counts == {"fields": 2}
    assert done.duration_ms is not None and done.duration_ms >= 0
    assert stage.duration_ms == done.duration_ms


def test_timed_stage_publishes_failure_and_reraises():
    """Exceptions are recorded on the event and never suppressed."""
    memory = MemoryObserver()

    with pytest.raises(KeyError):
        with timed_stage([memory], "map.batch"):
            raise KeyError("boom")

    failed = memory.events[-1]
    assert failed.status == "failed"
    assert failed.error["code"] == "KeyError"
    assert memory.completed() == []


def test_observer_failures_are_isolated():
    memory = MemoryObserver()
    publish_event([ExplodingObserver(), memory], MappingEvent(stage="map.object", status="completed"))
    assert len(memory.events) == 1


def test_logging_observer_renders_finished_stages(caplog):
    observer = LoggingObserver(level=logging.INFO)

    with caplog.at_level(logging.INFO, logger="quickmap"):
        observer.handle(MappingEvent(stage="map.object", status="started", pair="A->B"))
        observer.handle(
            MappingEvent(stage="map.object", status="completed", pair="A->B", duration_ms=1.5, counts={"n": 1})
        )

    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["map.object completed pair=A->B took 1.500 ms | counts={'n': 1}"]


class TestEngineTiming:
    def setup_method(self):
        self.memory = MemoryObserver()
        self.engine = MappingEngine(observers=[self.memory])

    def test_no_events_without_timing_diagnostics(self):
        self.engine.map(Reading("t1", "20.5"), ReadingDto)
        assert self.memory.events == []

    def test_object_mapping_is_timed(self):
        dto = self.engine.map(Reading("t1", "20.5"), ReadingDto, timing_diagnostics=True)

        assert dto.value == 20.5
        done = self.memory.completed()
        assert [e.stage for e in done] == ["map.object"]
        assert done[0].pair == "Reading->ReadingDto"

    def test_collection_mapping_is_timed(self):
        self.engine.map([Reading("t1", "1")], List[ReadingDto], timing_diagnostics=True)
        assert [e.stage for e in self.memory.completed()] == ["map.collection"]

    def test_batch_records_element_count(self):
        readings = [Reading("t1", "1"), Reading("t2", "2"), Reading("t3", "3")]
        self.engine.map_many(readings, ReadingDto, timing_diagnostics=True)

        done = self.memory.completed()[0]
        assert done.stage == "map.batch"
        assert done.pair == "*->ReadingDto"
        assert done.counts == {"elements": 3}

    def test_failed_mapping_publishes_failed_event(self):
        with pytest.raises(ConversionFailure):
            self.engine.map(Reading("t1", "1,5"), ReadingDto, timing_diagnostics=True)

        assert self.memory.events[-1].status == "failed"
        assert self.memory.events[-1].error["code"] == "ConversionFailure"

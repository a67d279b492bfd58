"""
Shared fakes for the event cache tests. Nothing here touches the network.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from tonight.interfaces import AlertSink, Enricher, Source
from tonight.models import Event, ProbeResult
from tonight.registry import SourceDescriptor, SourceRegistry


def make_event(event_id: str, name: Optional[str] = None, **attrs) -> Event:
    return Event(id=event_id, name=name or f"Event {event_id}", **attrs)


class FakeSource(Source):
    """Returns canned events (fresh copies each call) after an optional delay."""

    def __init__(self, label: str, events=(), error: Optional[BaseException] = None, delay: float = 0.0):
        self.label = label
        self.events = list(events)
        self.error = error
        self.delay = delay
        self.calls = 0

    @property
    def name(self) -> str:
        return self.label

    async def fetch(self) -> List[Event]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [e.model_copy() for e in self.events]


class StubChecker:
    """Stands in for EndpointChecker."""

    def __init__(self, statuses: Optional[Dict[str, int]] = None):
        self.statuses = statuses or {}
        self.calls = 0

    async def check_all(self, endpoints):
        self.calls += 1
        return {
            label: ProbeResult(http_status=self.statuses.get(label, 200), duration_ms=1)
            for label in endpoints
        }


class RecordingSink(AlertSink):
    name = "RecordingSink"

    def __init__(self, error: Optional[BaseException] = None):
        self.calls = []
        self.error = error

    async def notify(self, failures, stats) -> None:
        self.calls.append((failures, stats))
        if self.error is not None:
            raise self.error


class RecordingEnricher(Enricher):
    def __init__(self, neighborhood: str = "Bushwick", learned: Optional[dict] = None):
        self.neighborhood = neighborhood
        self.learned = learned or {}
        self.calls = []

    async def enrich(self, events) -> None:
        self.calls.append(list(events))
        for event in events:
            if not event.neighborhood:
                event.neighborhood = self.neighborhood

    def export_learned(self):
        return dict(self.learned)

    def import_learned(self, data) -> None:
        self.learned.update(data)


def registry_of(*entries) -> SourceRegistry:
    """entries: (source, weight) or (source, weight, merge_rank) or (source, weight, merge_rank, endpoint)."""
    descriptors = []
    for entry in entries:
        source, weight, *rest = entry
        merge_rank = rest[0] if rest else 0
        endpoint = rest[1] if len(rest) > 1 else None
        descriptors.append(SourceDescriptor(
            label=source.label, source=source, weight=weight, merge_rank=merge_rank, endpoint=endpoint,
        ))
    return SourceRegistry(descriptors)


@pytest.fixture
def fakes():
    """Bundle of fake collaborators for building orchestrators in tests."""
    class Fakes:
        Source = FakeSource
        Checker = StubChecker
        Sink = RecordingSink
        Enricher = RecordingEnricher
        event = staticmethod(make_event)
        registry = staticmethod(registry_of)
    return Fakes

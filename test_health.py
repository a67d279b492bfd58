"""
Tests for per-source health tracking.
"""

from datetime import datetime, timedelta, timezone

from tonight.health import HealthTracker
from tonight.models import FetchResult, FetchStatus, ProbeResult, ScrapeStats


T0 = datetime(2026, 10, 17, 14, 0, tzinfo=timezone.utc)


def _result(count, status=None, error=None, fakes=None):
    events = [fakes.event(str(i)) for i in range(count)] if count else []
    status = status or (FetchStatus.OK if count else FetchStatus.EMPTY)
    return FetchResult(events=events, status=status, duration_ms=12, error=error)


def test_unknown_until_first_cycle():
    tracker = HealthTracker(["Skint"])

    assert tracker["Skint"].last_status is None
    assert tracker["Skint"].history == []
    assert tracker.overall_status(ScrapeStats()) == "ok"


def test_history_is_bounded_and_evicts_oldest(fakes):
    tracker = HealthTracker(["Skint"])

    for i in range(10):
        tracker.record_fetch("Skint", _result(i, fakes=fakes), T0 + timedelta(days=i))

    history = tracker["Skint"].history
    assert len(history) == 7
    assert [h.count for h in history] == [3, 4, 5, 6, 7, 8, 9]
    assert history[0].timestamp == T0 + timedelta(days=3)
    assert tracker["Skint"].total_scrapes == 10
    assert tracker["Skint"].total_successes == 9


def test_consecutive_zeros_count_empty_and_failed_and_reset_on_events(fakes):
    tracker = HealthTracker(["Skint"])

    tracker.record_fetch("Skint", _result(0, fakes=fakes), T0)
    tracker.record_fetch("Skint", _result(0, FetchStatus.ERROR, "boom", fakes=fakes), T0)
    tracker.record_fetch("Skint", _result(0, FetchStatus.TIMEOUT, "slow", fakes=fakes), T0)
    health = tracker["Skint"]
    assert health.consecutive_zeros == 3
    assert health.last_status == FetchStatus.TIMEOUT
    assert health.last_error == "slow"

    tracker.record_fetch("Skint", _result(2, fakes=fakes), T0)
    assert health.consecutive_zeros == 0
    assert health.last_error is None
    assert health.last_count == 2


def test_alertable_at_threshold(fakes):
    tracker = HealthTracker(["Skint", "RA"], threshold=3)

    for _ in range(2):
        tracker.record_fetch("Skint", _result(0, fakes=fakes), T0)
        tracker.record_fetch("RA", _result(1, fakes=fakes), T0)
    assert tracker.alertable() == []

    tracker.record_fetch("Skint", _result(0, FetchStatus.ERROR, "403", fakes=fakes), T0)
    failures = tracker.alertable()
    assert [f.label for f in failures] == ["Skint"]
    assert failures[0].consecutive_zeros == 3
    assert failures[0].last_error == "403"
    assert failures[0].last_status == FetchStatus.ERROR


def test_overall_status(fakes):
    tracker = HealthTracker(["Skint", "RA"])
    stats = ScrapeStats(started_at=T0)

    tracker.record_fetch("Skint", _result(1, fakes=fakes), T0)
    tracker.record_fetch("RA", _result(0, fakes=fakes), T0)
    assert tracker.overall_status(stats) == "ok"

    tracker.record_fetch("RA", _result(0, FetchStatus.ERROR, "boom", fakes=fakes), T0)
    assert tracker.overall_status(stats) == "degraded"

    tracker.record_fetch("Skint", _result(0, FetchStatus.TIMEOUT, "slow", fakes=fakes), T0)
    assert tracker.overall_status(stats) == "critical"


def test_probe_status_is_recorded_separately(fakes):
    tracker = HealthTracker(["Skint"])

    tracker.record_probe("Skint", ProbeResult(http_status=503, duration_ms=40))
    tracker.record_probe("Unknown", ProbeResult(http_status=200))
    tracker.record_fetch("Skint", _result(4, fakes=fakes), T0)

    assert tracker["Skint"].last_http_status == 503
    assert tracker["Skint"].last_status == FetchStatus.OK


def test_report_and_snapshot(fakes):
    tracker = HealthTracker(["Skint"])
    tracker.record_fetch("Skint", _result(3, fakes=fakes), T0)
    tracker.record_fetch("Skint", _result(0, fakes=fakes), T0)
    tracker.record_fetch("Skint", _result(1, fakes=fakes), T0)

    report = tracker.report()["Skint"]
    assert report["status"] == "ok"
    assert report["success_rate"] == "67%"
    assert report["last_scrape"] == T0.isoformat()
    assert [h["count"] for h in report["history"]] == [3, 0, 1]

    snapshot = tracker.snapshot()
    snapshot["Skint"]["history"].clear()
    assert len(tracker["Skint"].history) == 3

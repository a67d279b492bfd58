"""
End-to-end wiring of the event cache service with fake sources.
"""

import asyncio
import json

from tonight.config import Settings
from tonight.infra.scheduler import JOB_ID
from tonight.service import TonightService
from tonight.sinks import EmailAlertSink, TelegramAlertSink
from tonight.venues import VenueResolver


def _settings(tmp_path, **overrides):
    return Settings(venues_file=str(tmp_path / "venues.json"), geocode=False, **overrides)


def test_service_serves_enriched_events(fakes, tmp_path):
    (tmp_path / "venues.json").write_text(json.dumps({"mystery loft": {"lat": 40.6944, "lng": -73.9213}}))
    source = fakes.Source("A", [fakes.event("1", venue_name="Mystery Loft"), fakes.event("2", venue_name="Nowadays")])
    service = TonightService(_settings(tmp_path), fakes.registry((source, 0.9)), alert_sinks=[])

    async def scenario():
        try:
            return await service.refresh_cache()
        finally:
            await service.close()

    events = asyncio.run(scenario())

    assert isinstance(service.enricher, VenueResolver)
    assert [e.neighborhood for e in events] == ["Bushwick", "Bushwick"]
    assert service.get_cache_status()["cache_size"] == 2
    assert service.get_health_status()["sources"]["A"]["last_count"] == 2
    assert len(service.get_raw_cache()["events"]) == 2


def test_service_schedules_and_clears(fakes, tmp_path):
    service = TonightService(_settings(tmp_path, scrape_hour=7), fakes.registry((fakes.Source("A"), 0.9)), alert_sinks=[])

    async def scenario():
        next_run = service.schedule_daily_scrape()
        jobs = service.scheduler.list_jobs()
        await service.close()
        return next_run, jobs

    next_run, jobs = asyncio.run(scenario())

    assert next_run is not None
    assert JOB_ID in jobs
    assert service.scheduler.list_jobs() == {}


def test_default_alert_sinks_follow_settings(fakes, tmp_path):
    settings = _settings(tmp_path, resend_api_key="re_123", alert_email="ops@example.com", alert_cooldown_hours=1)
    service = TonightService(settings, fakes.registry((fakes.Source("A"), 0.9)))

    email, telegram = service.orchestrator.alert_sinks
    assert isinstance(email, EmailAlertSink)
    assert email.configured
    assert email.cooldown_s == 3600
    assert isinstance(telegram, TelegramAlertSink)
    assert not telegram.configured


def test_settings_feed_health_thresholds(fakes, tmp_path):
    settings = _settings(tmp_path, health_warn_threshold=1, history_max=2)
    sink = fakes.Sink()
    service = TonightService(settings, fakes.registry((fakes.Source("A"), 0.9)), alert_sinks=[sink])

    async def scenario():
        for _ in range(3):
            await service.refresh_cache()
        await service.close()

    asyncio.run(scenario())

    assert len(sink.calls) == 3
    assert len(service.orchestrator.state.health["A"].history) == 2


def test_malformed_venue_file_does_not_block_startup(fakes, tmp_path):
    (tmp_path / "venues.json").write_text(json.dumps({
        "some venue": None,
        "mystery loft": {"lat": 40.6944, "lng": -73.9213},
    }))

    service = TonightService(_settings(tmp_path), fakes.registry((fakes.Source("A"), 0.9)), alert_sinks=[])

    assert service.enricher.lookup("Mystery Loft") == {"lat": 40.6944, "lng": -73.9213}
    assert service.enricher.lookup("Some Venue") is None


def test_configured_timezone_reaches_query_and_scheduler(fakes, tmp_path):
    service = TonightService(
        _settings(tmp_path, timezone="America/Los_Angeles"),
        fakes.registry((fakes.Source("A"), 0.9)),
        alert_sinks=[],
    )

    assert service.query.tz.key == "America/Los_Angeles"
    assert service.scheduler.tz.key == "America/Los_Angeles"

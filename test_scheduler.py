"""
Tests for the daily civil-time scheduler.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from tonight.infra.scheduler import JOB_ID, DailyScheduler, next_run_time, seconds_until_next_run


NY = ZoneInfo("America/New_York")


class Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


@pytest.mark.parametrize("now, expected", [
    (datetime(2026, 10, 17, 9, 0, tzinfo=NY), 3600),
    (datetime(2026, 10, 17, 10, 30, tzinfo=NY), 84600),
    (datetime(2026, 10, 17, 10, 0, tzinfo=NY), 86400),
    (datetime(2026, 10, 17, 9, 59, 30, tzinfo=NY), 30),
    (datetime(2026, 10, 17, 23, 0, tzinfo=NY), 11 * 3600),
])
def test_delay_until_next_civil_hour(now, expected):
    assert seconds_until_next_run(now, 10, NY) == expected


def test_delay_is_never_negative_after_target_hour():
    for minute in range(0, 60, 5):
        now = datetime(2026, 10, 17, 10, minute, tzinfo=NY)
        assert 0 < seconds_until_next_run(now, 10, NY) <= 86400


def test_utc_and_naive_inputs_are_converted():
    # 13:00 UTC is 09:00 EDT
    aware = datetime(2026, 10, 17, 13, 0, tzinfo=timezone.utc)
    naive = datetime(2026, 10, 17, 13, 0)

    assert seconds_until_next_run(aware, 10, NY) == 3600
    assert seconds_until_next_run(naive, 10, NY) == 3600


@pytest.mark.parametrize("now, expected_utc, expected_delay", [
    # DST ends overnight: 10:30 EDT to 10:00 EST is 24.5 hours
    (datetime(2026, 10, 31, 10, 30, tzinfo=NY), datetime(2026, 11, 1, 15, 0, tzinfo=timezone.utc), 88200),
    # DST starts overnight: 10:30 EST to 10:00 EDT is 22.5 hours
    (datetime(2026, 3, 7, 10, 30, tzinfo=NY), datetime(2026, 3, 8, 14, 0, tzinfo=timezone.utc), 81000),
])
def test_next_run_lands_on_civil_hour_across_dst(now, expected_utc, expected_delay):
    run_at = next_run_time(now, 10, NY)

    assert run_at == expected_utc
    assert run_at.astimezone(NY).hour == 10
    assert seconds_until_next_run(now, 10, NY) == expected_delay


def test_schedule_arms_one_job():
    clock = Clock(datetime(2026, 10, 17, 13, 0, tzinfo=timezone.utc))

    async def job():
        pass

    scheduler = DailyScheduler(job, hour=10, clock=clock)

    async def scenario():
        first = scheduler.schedule_daily_scrape()
        again = scheduler.schedule_daily_scrape()
        jobs = scheduler.list_jobs()
        scheduler.clear_schedule()
        return first, again, jobs

    first, again, jobs = asyncio.run(scenario())

    assert first == datetime(2026, 10, 17, 14, 0, tzinfo=timezone.utc)
    assert again == first
    assert list(jobs) == [JOB_ID]
    assert scheduler.list_jobs() == {}
    assert scheduler.next_run_at is None


def test_failing_job_still_rearms():
    clock = Clock(datetime(2026, 10, 17, 13, 0, tzinfo=timezone.utc))
    runs = []

    async def job():
        runs.append(clock())
        raise RuntimeError("all sources down")

    scheduler = DailyScheduler(job, hour=10, clock=clock)

    async def scenario():
        first = scheduler.schedule_daily_scrape()
        clock.now = first
        await scheduler._fire()
        second = scheduler.next_run_at
        jobs = scheduler.list_jobs()
        scheduler.clear_schedule()
        return first, second, jobs

    first, second, jobs = asyncio.run(scenario())

    assert runs == [first]
    assert second == first + timedelta(days=1)
    assert JOB_ID in jobs


def test_job_does_not_rearm_after_clear():
    clock = Clock(datetime(2026, 10, 17, 13, 0, tzinfo=timezone.utc))
    scheduler = DailyScheduler(lambda: asyncio.sleep(0), hour=10, clock=clock)

    async def scenario():
        scheduler.schedule_daily_scrape()
        scheduler.clear_schedule()
        await scheduler._fire()

    asyncio.run(scenario())

    assert scheduler.next_run_at is None
    assert scheduler.list_jobs() == {}


def test_clear_without_start_is_a_noop():
    scheduler = DailyScheduler(lambda: asyncio.sleep(0))

    scheduler.clear_schedule()

    assert scheduler.list_jobs() == {}

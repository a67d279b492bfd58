"""
Daily scheduler that fires at a fixed civil hour in a named timezone.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger


logger = logging.getLogger(__name__)

JOB_ID = "daily-scrape"


def next_run_time(now: datetime, hour: int, tz: ZoneInfo) -> datetime:
    """The next ``hour``:00 civil time in ``tz`` strictly after ``now``.

    Naive ``now`` is taken as UTC. Across a DST change the result still lands
    on ``hour``:00 local time.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    trigger = CronTrigger(hour=hour, minute=0, second=0, timezone=tz)
    return trigger.get_next_fire_time(None, now + timedelta(microseconds=1))


def seconds_until_next_run(now: datetime, hour: int, tz: ZoneInfo) -> float:
    """Seconds from ``now`` until the next ``hour``:00 civil time in ``tz``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    # Subtract in UTC: datetimes sharing a tzinfo subtract as wall-clock times
    return (next_run_time(now, hour, tz).astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()


class DailyScheduler:
    """Runs an async job once a day, re-arming itself after every run.

    Built on APScheduler's AsyncIOScheduler with an in-memory job store and a
    one-shot DateTrigger per day, so each run recomputes the next civil-time run.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        hour: int = 10,
        tz: Optional[ZoneInfo] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.job = job
        self.hour = hour
        self.tz = tz or ZoneInfo("America/New_York")
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self.next_run_at: Optional[datetime] = None

    def _ensure_started(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(
                timezone=self.tz,
                job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 3600},
            )
            self._scheduler.start()
            logger.info("Scheduler started")
        return self._scheduler

    def schedule_daily_scrape(self) -> datetime:
        """Arm the next run and return when it will fire."""
        scheduler = self._ensure_started()
        now = self._clock()
        self.next_run_at = next_run_time(now, self.hour, self.tz)
        delay = seconds_until_next_run(now, self.hour, self.tz)

        scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=self.next_run_at),
            id=JOB_ID,
            name=JOB_ID,
            replace_existing=True,
        )
        logger.info(f"Next scrape scheduled in {delay / 3600:.1f} hours ({self.hour}:00 {self.tz.key})")
        return self.next_run_at

    async def _fire(self) -> None:
        try:
            await self.job()
        except Exception as e:
            logger.error(f"Scheduled scrape failed: {e}", exc_info=True)
        finally:
            if self._scheduler is not None:
                self.schedule_daily_scrape()

    def clear_schedule(self) -> None:
        """Remove the pending run and stop the scheduler."""
        if self._scheduler is None:
            return
        if self._scheduler.get_job(JOB_ID):
            self._scheduler.remove_job(JOB_ID)
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self.next_run_at = None
        logger.info("Scheduler stopped")

    def list_jobs(self) -> dict:
        """Scheduled jobs, for status reporting."""
        if self._scheduler is None:
            return {}
        return {
            job.id: {"name": job.name, "next_run": job.next_run_time, "trigger": str(job.trigger)}
            for job in self._scheduler.get_jobs()
        }

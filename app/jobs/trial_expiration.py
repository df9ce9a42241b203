"""Daily trial expiration job.

Owned by the application lifespan: ``start()`` on boot, ``stop()`` on
shutdown. An APScheduler cron trigger fires once per calendar day at the
configured local time; each run expires lapsed trials and logs an advance
warning for trials about to lapse.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, utcnow
from app.services.trial_sweeper import sweep_expired_trials, scan_expiring_soon

logger = logging.getLogger(__name__)

JOB_ID = "trial-expiration"


class TrialExpirationJob:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        hour: int = 3,
        minute: int = 0,
        tz_name: str = "America/Sao_Paulo",
        warning_days: int = 3,
        clock: Clock = utcnow,
    ):
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid sweep time {hour:02d}:{minute:02d}")
        self.session_factory = session_factory
        self.tz = ZoneInfo(tz_name)
        self.trigger = CronTrigger(hour=hour, minute=minute, timezone=self.tz)
        self.warning_days = warning_days
        self.clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._last_run_date: Optional[date] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _aware_now(self) -> datetime:
        return self.clock().replace(tzinfo=timezone.utc)

    def next_fire_time(self) -> datetime:
        """Next instant the trigger fires, in the configured zone."""
        now = self._aware_now().astimezone(self.tz)
        return self.trigger.get_next_fire_time(None, now)

    def seconds_until_next_run(self) -> float:
        next_run = self.next_fire_time().astimezone(timezone.utc)
        return max(0.0, (next_run - self._aware_now()).total_seconds())

    async def run_once(self) -> int:
        """Sweep lapsed trials and report the ones about to lapse.

        Failures are logged, never raised: nobody is waiting on this run.
        """
        now = self.clock()
        self._last_run_date = self._aware_now().astimezone(self.tz).date()
        logger.info("[TRIAL-EXPIRATION] Checking for lapsed trials...")

        try:
            expired_count = await sweep_expired_trials(self.session_factory, now=now)
        except Exception:
            logger.exception("[TRIAL-EXPIRATION] Sweep failed")
            return 0

        if expired_count > 0:
            logger.info("[TRIAL-EXPIRATION] %d trial(s) expired", expired_count)
        else:
            logger.info("[TRIAL-EXPIRATION] No lapsed trials found")

        try:
            async with self.session_factory() as db:
                expiring = await scan_expiring_soon(db, self.warning_days, now=now)
        except Exception:
            logger.exception("[TRIAL-EXPIRATION] Could not list expiring trials")
            return expired_count

        if expiring:
            logger.warning(
                "[TRIAL-EXPIRATION] %d trial(s) expire in the next %d days",
                len(expiring),
                self.warning_days,
            )
            for trial in expiring:
                logger.warning(
                    "  - %s expires in %d day(s) (%s), admin: %s <%s>",
                    trial.clinic_name,
                    trial.days_remaining,
                    trial.trial_pro_expires_at.isoformat(),
                    trial.admin_name,
                    trial.admin_email,
                )

        return expired_count

    async def scheduled_run(self) -> Optional[int]:
        """Trigger callback. Skips when today's local run already happened."""
        today = self._aware_now().astimezone(self.tz).date()
        if self._last_run_date == today:
            logger.info("[TRIAL-EXPIRATION] Already ran on %s, skipping", today.isoformat())
            return None
        return await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone=self.tz)
        self._scheduler.add_job(
            self.scheduled_run,
            self.trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("[TRIAL-EXPIRATION] Scheduled daily, next run at %s", self.next_fire_time().isoformat())

    async def stop(self) -> None:
        if not self._scheduler:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("[TRIAL-EXPIRATION] Job stopped")

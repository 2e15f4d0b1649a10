import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from fx_rates import RateCache


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, rate_cache: Optional[RateCache] = None) -> None:
        settings = get_settings()
        self.rate_cache = rate_cache or RateCache(settings.fx_cache_path)
        self.refresh_minutes = settings.fx_refresh_minutes
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"fx_refresh_run: source={source}")
        snapshot = self.rate_cache.refresh()
        logger.info(
            f"fx_refresh_run: source={source} last_updated={snapshot.last_updated}"
        )

    def start(self) -> None:
        self._run_job("startup")

        trigger = IntervalTrigger(minutes=self.refresh_minutes)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["interval"],
            id="fx_refresh",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with exchange rate refresh every {self.refresh_minutes} minutes"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

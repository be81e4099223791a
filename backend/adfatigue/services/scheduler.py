"""APScheduler: periodic ad fatigue analysis."""
import asyncio
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from adfatigue.config import get_settings
from adfatigue.services.pipeline import run_scheduled_analysis

logger = logging.getLogger(__name__)

FATIGUE_JOB_ID = "analyze_ad_fatigue"


def _analyze_ad_fatigue() -> None:
    # Runs on a scheduler worker thread, which has no event loop of its own
    try:
        asyncio.run(run_scheduled_analysis())
    except Exception:
        logger.exception("Scheduled ad fatigue analysis failed")


def start_scheduler() -> BackgroundScheduler:
    settings = get_settings()
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        _analyze_ad_fatigue,
        IntervalTrigger(minutes=settings.fatigue_interval_minutes),
        id=FATIGUE_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler started: fatigue analysis every %s minutes", settings.fatigue_interval_minutes)
    return scheduler

"""Scheduler service for ledger cron jobs using APScheduler."""
import logging
import os
import multiprocessing
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from creator_ledger.config import settings
from creator_ledger.database import AsyncSessionLocal
from creator_ledger.exceptions import LedgerError
from creator_ledger.services.downloads import DownloadTracker
from creator_ledger.services.settlement import SettlementProcessor

logger = logging.getLogger(__name__)

# Initialize scheduler
scheduler = AsyncIOScheduler(timezone="UTC")

# Processes allowed to host the scheduler: the single-process server, or the
# first uvicorn worker when running with --workers
SCHEDULER_PROCESSES = ("MainProcess", "SpawnProcess-1")


async def run_monthly_settlement():
    """Move pending to available and create auto payouts.

    No external lock is needed: the settlement_runs row for the date makes a
    second invocation decline on its own.
    """
    logger.info("Running monthly settlement job")
    try:
        async with AsyncSessionLocal() as session:
            outcome = await SettlementProcessor(session).run()
        if outcome.already_ran:
            logger.info(f"Settlement job skipped: {outcome.message}")
        else:
            logger.info(
                f"Settlement job finished ({outcome.status}): {outcome.creators_processed} creators, "
                f"{outcome.auto_payouts_created} auto payouts, {outcome.creators_failed} failures"
            )
    except LedgerError as e:
        logger.error(f"Error in run_monthly_settlement: {e.message}")
    except Exception as e:
        logger.error(f"Error in run_monthly_settlement: {e}", exc_info=True)


async def reset_download_rollups(period: str):
    """Zero the weekly or monthly download counters."""
    logger.info(f"Running reset_download_rollups job ({period})")
    try:
        async with AsyncSessionLocal() as session:
            await DownloadTracker(session).reset_rollups(period)
    except Exception as e:
        logger.error(f"Error in reset_download_rollups({period}): {e}", exc_info=True)


def start_scheduler():
    """Start the APScheduler with all cron jobs."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by configuration")
        return

    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name not in SCHEDULER_PROCESSES:
        logger.info(f"Skipping scheduler on {current_process_name} (PID: {current_pid}) - scheduler only runs on SpawnProcess-1")
        return

    logger.info(f"Starting scheduler on {current_process_name} (PID: {current_pid})...")

    # Job 1: Monthly settlement on the payout day
    scheduler.add_job(
        run_monthly_settlement,
        trigger=CronTrigger(day=settings.PAYOUT_DAY_OF_MONTH, hour=settings.SETTLEMENT_HOUR_UTC, minute=0),
        id="monthly_settlement",
        name="Monthly creator settlement",
        replace_existing=True
    )

    # Job 2: Reset weekly download counters every Monday
    scheduler.add_job(
        reset_download_rollups,
        trigger=CronTrigger(day_of_week="mon", hour=0, minute=5),
        args=["week"],
        id="reset_weekly_downloads",
        name="Reset weekly download counters",
        replace_existing=True
    )

    # Job 3: Reset monthly download counters on the 1st
    scheduler.add_job(
        reset_download_rollups,
        trigger=CronTrigger(day=1, hour=0, minute=10),
        args=["month"],
        id="reset_monthly_downloads",
        name="Reset monthly download counters",
        replace_existing=True
    )

    scheduler.start()
    logger.info("Scheduler started with 3 cron jobs")


def stop_scheduler():
    """Stop the APScheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
    else:
        logger.info("Scheduler was not running")

from __future__ import annotations

import time

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config.settings import settings
from app_logging.activity_logger import ActivityLogger
from persistence.database import init_db
from persistence.repository import TicketRepository
from scheduler.dispatcher import (
    SPLIT_TICKET,
    Dispatcher,
    SchedulerDispatcher,
    get_dispatcher,
    set_dispatcher,
)
from scheduler.ticket_sync import sync_all_projects_daily

logger = ActivityLogger("poller")
_scheduler: BackgroundScheduler | None = None


# ── Lifecycle ──────────────────────────────────────────────────────────────────

def start_scheduler() -> BackgroundScheduler:
    """
    Start the background scheduler, register the daily tracker sweep, and route
    all dispatched follow-up work through it.
    """
    global _scheduler
    init_db()

    _scheduler = BackgroundScheduler(timezone="UTC")
    _scheduler.add_job(
        sync_all_projects_daily,
        trigger=CronTrigger(
            hour=settings.sync_hour_utc,
            minute=settings.sync_minute_utc,
            timezone="UTC",
        ),
        id="tracker_sync_daily",
        max_instances=1,    # Prevent concurrent sweeps
        coalesce=True,      # Skip missed fires during downtime
        replace_existing=True,
    )
    _scheduler.start()
    set_dispatcher(SchedulerDispatcher(_scheduler))
    resume_job_creation()

    logger.info(
        "scheduler_started",
        sync_hour_utc=settings.sync_hour_utc,
        sync_minute_utc=settings.sync_minute_utc,
    )
    return _scheduler


def resume_job_creation(dispatcher: Dispatcher | None = None) -> int:
    """
    Recover tickets left with creating_jobs set by a split that was queued in
    memory when the process stopped.

    Tickets that already have jobs only get the flag cleared (jobs are never
    re-split); the rest get a fresh split task. Returns the number re-dispatched.
    """
    dispatcher = dispatcher or get_dispatcher()
    tickets = TicketRepository()
    resumed = 0

    for ticket, job_count in tickets.list_interrupted_job_creation():
        if job_count:
            tickets.set_creating_jobs(ticket.id, False)
            logger.warning("job_creation_flag_cleared", ticket_id=ticket.id, job_count=job_count)
            continue
        try:
            dispatcher.enqueue(
                SPLIT_TICKET,
                ticket_id=ticket.id,
                title=ticket.title,
                description=ticket.description,
                project_id=ticket.project_id,
            )
        except Exception as exc:
            logger.error("job_creation_resume_failed", exc=exc, ticket_id=ticket.id)
            tickets.set_creating_jobs(ticket.id, False)
            continue
        resumed += 1
        logger.info("job_creation_resumed", ticket_id=ticket.id, project_id=ticket.project_id)

    return resumed


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        set_dispatcher(None)
        logger.info("scheduler_stopped")


def is_scheduler_running() -> bool:
    return _scheduler is not None and _scheduler.running


# ── Standalone entry point ─────────────────────────────────────────────────────

if __name__ == "__main__":
    from config.logging_config import configure_logging
    configure_logging()

    logger.info("starting_poller_process")
    start_scheduler()

    # Keep main thread alive
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        stop_scheduler()
        logger.info("poller_process_stopped")

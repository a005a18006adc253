from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from app_logging.activity_logger import ActivityLogger
from persistence.repository import JobRepository, ProjectRepository, TicketRepository
from scheduler.dispatcher import RECONCILE_TICKET, Dispatcher, get_dispatcher
from schemas.job import JobView
from schemas.reconcile import ReconcileResult, ReconcileStatus
from tracker.client import TrackerClient, TrackerError, TrackerStatus

logger = ActivityLogger("reconciler")


class Reconciler:
    """
    Records job completion and pushes the final ticket status to the tracker
    once every job of a ticket is complete.

    Tracker pushes are best-effort: failures are logged and returned, never
    retried, and never undo local state.
    """

    def __init__(
        self,
        tracker: Optional[TrackerClient] = None,
        projects: Optional[ProjectRepository] = None,
        tickets: Optional[TicketRepository] = None,
        jobs: Optional[JobRepository] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.tracker = tracker or TrackerClient()
        self.projects = projects or ProjectRepository()
        self.tickets = tickets or TicketRepository()
        self.jobs = jobs or JobRepository()
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher or get_dispatcher()

    def on_job_finished(
        self,
        job_id: str,
        pr_id: str,
        finished_at: Optional[datetime] = None,
    ) -> JobView:
        """Store the job's change-request id and completion time, then schedule reconciliation."""
        finished_at = finished_at or datetime.now(timezone.utc)
        job, changed = self.jobs.mark_finished(job_id, pr_id, finished_at)
        if not changed:
            logger.warning("job_already_finished", job_id=job_id, ticket_id=job.ticket_id)
            return job

        logger.info("job_finished", job_id=job_id, ticket_id=job.ticket_id, pr_id=pr_id)
        try:
            self.dispatcher.enqueue(RECONCILE_TICKET, ticket_id=job.ticket_id)
        except Exception as exc:
            logger.error("reconcile_dispatch_failed", exc=exc, ticket_id=job.ticket_id)
        return job

    def check_and_reconcile(self, ticket_id: str) -> ReconcileResult:
        ticket = self.tickets.get_ticket(ticket_id)
        if ticket is None:
            return ReconcileResult.error("Ticket not found")

        jobs = self.jobs.list_jobs_for_ticket(ticket_id)
        if not jobs:
            return ReconcileResult.skipped("no jobs")
        if not all(job.is_complete for job in jobs):
            return ReconcileResult.skipped("incomplete")

        url = self.projects.get_tracker_source_url(ticket.project_id)
        if not url:
            return ReconcileResult.skipped("no tracker url")

        try:
            self.tracker.push_status(url, ticket.external_id, TrackerStatus.DONE)
        except TrackerError as exc:
            logger.error(
                "tracker_done_update_failed",
                exc=exc,
                ticket_id=ticket_id,
                external_id=ticket.external_id,
                status_code=exc.status_code,
            )
            return ReconcileResult.error(str(exc))

        logger.info("tracker_ticket_done", ticket_id=ticket_id, external_id=ticket.external_id)
        return ReconcileResult(status=ReconcileStatus.SUCCESS)

    def notify_rejected(self, ticket_id: str) -> bool:
        """Tell the tracker a ticket was rejected. Returns whether the push succeeded."""
        ticket = self.tickets.get_ticket(ticket_id)
        if ticket is None:
            logger.warning("rejected_ticket_missing", ticket_id=ticket_id)
            return False

        url = self.projects.get_tracker_source_url(ticket.project_id)
        if not url:
            logger.error("tracker_url_missing", ticket_id=ticket_id, project_id=ticket.project_id)
            return False

        try:
            self.tracker.push_status(url, ticket.external_id, TrackerStatus.REJECTED)
        except TrackerError as exc:
            logger.error(
                "tracker_rejection_update_failed",
                exc=exc,
                ticket_id=ticket_id,
                external_id=ticket.external_id,
                status_code=exc.status_code,
            )
            return False

        logger.info("tracker_ticket_rejected", ticket_id=ticket_id, external_id=ticket.external_id)
        return True


# ── Task entry points ──────────────────────────────────────────────────────────

_reconciler = Reconciler()


def check_and_reconcile(ticket_id: str) -> dict:
    return _reconciler.check_and_reconcile(ticket_id).model_dump(mode="json")


def notify_rejected(ticket_id: str) -> bool:
    return _reconciler.notify_rejected(ticket_id)

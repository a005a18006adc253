from __future__ import annotations

from typing import Optional

from app_logging.activity_logger import ActivityLogger
from persistence.repository import ProjectRepository, TicketRepository
from scheduler.dispatcher import ASSESS_TICKET, Dispatcher, get_dispatcher
from schemas.sync import SweepResult, SyncResult
from tracker.client import TrackerClient

logger = ActivityLogger("ticket_sync")


class TicketSyncEngine:
    """
    Pulls a project's tickets from its tracker source URL, upserts them, and
    schedules an assessment for every new or changed ticket.
    """

    def __init__(
        self,
        tracker: Optional[TrackerClient] = None,
        projects: Optional[ProjectRepository] = None,
        tickets: Optional[TicketRepository] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.tracker = tracker or TrackerClient()
        self.projects = projects or ProjectRepository()
        self.tickets = tickets or TicketRepository()
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher or get_dispatcher()

    def sync_project(self, project_id: str) -> SyncResult:
        """
        One sync pass. A project without a source URL yields a zero result;
        tracker failures raise TrackerError.
        """
        url = self.projects.get_tracker_source_url(project_id)
        if not url:
            logger.info("sync_skipped_no_source_url", project_id=project_id)
            return SyncResult()

        external = self.tracker.fetch_tickets(url)
        outcome = self.tickets.upsert_tickets(project_id, external)

        # Dispatch only after the upsert has committed
        for pending in outcome.to_assess:
            try:
                self.dispatcher.enqueue(
                    ASSESS_TICKET,
                    ticket_id=pending.ticket_id,
                    title=pending.title,
                    description=pending.description,
                )
            except Exception as exc:
                logger.error(
                    "assessment_dispatch_failed",
                    exc=exc,
                    ticket_id=pending.ticket_id,
                    project_id=project_id,
                )

        logger.info(
            "project_synced",
            project_id=project_id,
            added=outcome.added,
            updated=outcome.updated,
            total=outcome.total,
        )
        return SyncResult(added=outcome.added, updated=outcome.updated, total=outcome.total)

    def sync_all_projects(self) -> SweepResult:
        """Sync every project with a source URL; one project's failure does not stop the sweep."""
        result = SweepResult()
        project_ids = self.projects.list_project_ids_with_source_url()
        logger.info("sync_sweep_started", project_count=len(project_ids))

        for project_id in project_ids:
            try:
                synced = self.sync_project(project_id)
            except Exception as exc:
                logger.error("project_sync_failed", exc=exc, project_id=project_id)
                result.failed_project_ids.append(project_id)
                continue
            result.projects_synced += 1
            result.total_added += synced.added
            result.total_updated += synced.updated
            result.total_seen += synced.total

        logger.info(
            "sync_sweep_finished",
            projects_synced=result.projects_synced,
            projects_failed=len(result.failed_project_ids),
            total_added=result.total_added,
            total_updated=result.total_updated,
            total_seen=result.total_seen,
        )
        return result


# ── Scheduler job ──────────────────────────────────────────────────────────────

def sync_all_projects_daily() -> None:
    """Synchronous APScheduler job for the daily sweep."""
    try:
        TicketSyncEngine().sync_all_projects()
    except Exception as exc:
        logger.error("sync_sweep_failed", exc=exc)

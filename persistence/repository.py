from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select

from persistence.database import get_db_session
from persistence.models import (
    CompletionCallLog,
    Credentials,
    Job,
    Project,
    Ticket,
    Verdict,
)
from schemas.job import JobDraft, JobView
from schemas.sync import PendingAssessment, UpsertOutcome
from schemas.ticket import ExternalTicket, TicketView


class TicketNotFoundError(LookupError):
    pass


class JobNotFoundError(LookupError):
    pass


class ProjectRepository:
    """Projects and their tracker / VCS credentials."""

    def create_project(
        self,
        name: str,
        description: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> str:
        with get_db_session() as session:
            project = Project(name=name, description=description, owner_id=owner_id)
            session.add(project)
            session.flush()
            return project.id

    def set_credentials(
        self,
        project_id: str,
        tracker_source_url: Optional[str] = None,
        vcs_access_token: Optional[str] = None,
        repository_id: Optional[str] = None,
    ) -> None:
        """Partial update: only fields passed as non-None are written."""
        updates = {
            k: v
            for k, v in dict(
                tracker_source_url=tracker_source_url,
                vcs_access_token=vcs_access_token,
                repository_id=repository_id,
            ).items()
            if v is not None
        }
        with get_db_session() as session:
            existing = session.execute(
                select(Credentials).where(Credentials.project_id == project_id)
            ).scalar_one_or_none()
            if existing:
                for k, v in updates.items():
                    setattr(existing, k, v)
            else:
                session.add(Credentials(project_id=project_id, **updates))

    def get_tracker_source_url(self, project_id: str) -> str:
        with get_db_session() as session:
            url = session.execute(
                select(Credentials.tracker_source_url).where(Credentials.project_id == project_id)
            ).scalar_one_or_none()
            return (url or "").strip()

    def list_project_ids_with_source_url(self) -> list[str]:
        with get_db_session() as session:
            rows = session.execute(
                select(Credentials.project_id, Credentials.tracker_source_url)
            ).all()
            return [pid for pid, url in rows if url and url.strip()]


class TicketRepository:
    """Ticket lifecycle persistence: sync upserts, verdicts and the creating_jobs flag."""

    def upsert_tickets(self, project_id: str, tickets: Iterable[ExternalTicket]) -> UpsertOutcome:
        """
        Insert new tickets and patch changed ones in a single transaction.

        New or changed tickets get their verdict reset to UNSET and are returned
        in `to_assess`; unchanged tickets are left untouched.
        """
        outcome = UpsertOutcome()
        with get_db_session() as session:
            for t in tickets:
                outcome.total += 1
                existing = session.execute(
                    select(Ticket).where(
                        Ticket.project_id == project_id,
                        Ticket.external_id == t.external_id,
                    )
                ).scalar_one_or_none()

                if existing is None:
                    ticket = Ticket(
                        project_id=project_id,
                        external_id=t.external_id,
                        title=t.title,
                        description=t.description,
                        verdict=Verdict.UNSET,
                        verdict_reason=None,
                        creating_jobs=False,
                    )
                    session.add(ticket)
                    session.flush()
                    outcome.added += 1
                    outcome.to_assess.append(
                        PendingAssessment(ticket_id=ticket.id, title=t.title, description=t.description)
                    )
                    continue

                if existing.title != t.title or existing.description != t.description:
                    existing.title = t.title
                    existing.description = t.description
                    existing.verdict = Verdict.UNSET
                    existing.verdict_reason = None
                    outcome.updated += 1
                    outcome.to_assess.append(
                        PendingAssessment(ticket_id=existing.id, title=t.title, description=t.description)
                    )
        return outcome

    def get_ticket(self, ticket_id: str) -> Optional[TicketView]:
        with get_db_session() as session:
            row = session.get(Ticket, ticket_id)
            return TicketView.model_validate(row) if row else None

    def list_project_tickets(self, project_id: str) -> list[TicketView]:
        """Tickets for a project, latest first by numeric external ID."""
        with get_db_session() as session:
            rows = session.execute(
                select(Ticket).where(Ticket.project_id == project_id)
            ).scalars().all()
            views = [TicketView.model_validate(r) for r in rows]
        return sorted(views, key=lambda v: _numeric_id(v.external_id), reverse=True)

    def record_verdict(self, ticket_id: str, rejected: bool, reason: Optional[str]) -> TicketView:
        """
        Write the classifier verdict. An accepted ticket enters job creation in
        the same write; a rejected ticket never has creating_jobs set.
        """
        with get_db_session() as session:
            row = session.get(Ticket, ticket_id)
            if row is None:
                raise TicketNotFoundError(ticket_id)
            row.verdict = Verdict.REJECTED if rejected else Verdict.ACCEPTED
            row.verdict_reason = reason or None
            row.creating_jobs = not rejected
            session.flush()
            return TicketView.model_validate(row)

    def set_creating_jobs(self, ticket_id: str, creating_jobs: bool) -> None:
        with get_db_session() as session:
            row = session.get(Ticket, ticket_id)
            if row is not None:
                row.creating_jobs = creating_jobs

    def list_interrupted_job_creation(self) -> list[tuple[TicketView, int]]:
        """
        Accepted tickets still flagged creating_jobs, with their current job count.
        Only a split that never finished (process stopped mid-flight) leaves these behind.
        """
        with get_db_session() as session:
            rows = session.execute(
                select(Ticket).where(
                    Ticket.verdict == Verdict.ACCEPTED,
                    Ticket.creating_jobs.is_(True),
                )
            ).scalars().all()
            return [(TicketView.model_validate(r), len(r.jobs)) for r in rows]

    def delete_ticket(self, ticket_id: str) -> int:
        """Delete a ticket and its jobs. Returns the number of jobs deleted."""
        with get_db_session() as session:
            row = session.get(Ticket, ticket_id)
            if row is None:
                raise TicketNotFoundError(ticket_id)
            jobs_deleted = len(row.jobs)
            session.delete(row)
            return jobs_deleted


class JobRepository:
    """Job batches produced by the splitter and their completion fields."""

    def create_jobs(self, ticket_id: str, project_id: str, drafts: list[JobDraft]) -> int:
        with get_db_session() as session:
            if session.get(Ticket, ticket_id) is None:
                raise TicketNotFoundError(ticket_id)
            session.add_all(
                Job(ticket_id=ticket_id, project_id=project_id, title=d.title, tasks=d.tasks)
                for d in drafts
            )
            return len(drafts)

    def get_job(self, job_id: str) -> Optional[JobView]:
        with get_db_session() as session:
            row = session.get(Job, job_id)
            return JobView.model_validate(row) if row else None

    def list_jobs_for_ticket(self, ticket_id: str) -> list[JobView]:
        with get_db_session() as session:
            rows = session.execute(
                select(Job).where(Job.ticket_id == ticket_id).order_by(Job.created_at)
            ).scalars().all()
            return [JobView.model_validate(r) for r in rows]

    def list_jobs_for_project(self, project_id: str) -> list[JobView]:
        with get_db_session() as session:
            rows = session.execute(
                select(Job).where(Job.project_id == project_id).order_by(Job.created_at)
            ).scalars().all()
            return [JobView.model_validate(r) for r in rows]

    def mark_finished(self, job_id: str, pr_id: str, finished_at: datetime) -> tuple[JobView, bool]:
        """
        Set pr_id and finished_at together. A finished job is terminal: a second
        call leaves the stored values alone. Returns (job, changed).
        """
        if not pr_id:
            raise ValueError("pr_id is required to finish a job")
        with get_db_session() as session:
            row = session.get(Job, job_id)
            if row is None:
                raise JobNotFoundError(job_id)
            if row.is_complete:
                return JobView.model_validate(row), False
            row.pr_id = pr_id
            row.finished_at = finished_at
            session.flush()
            return JobView.model_validate(row), True

    def update_job(self, job_id: str, title: str, tasks: str) -> JobView:
        with get_db_session() as session:
            row = session.get(Job, job_id)
            if row is None:
                raise JobNotFoundError(job_id)
            row.title = title
            row.tasks = tasks
            session.flush()
            return JobView.model_validate(row)


class CompletionCallRepository:
    def save_call(self, record) -> None:
        """Persist a CompletionCallRecord to the DB."""
        with get_db_session() as session:
            session.add(
                CompletionCallLog(
                    id=record.call_id,
                    ticket_id=record.ticket_id,
                    agent_name=record.agent_name,
                    model_id=record.model_id,
                    prompt_name=record.prompt_name,
                    max_tokens=record.max_tokens,
                    temperature=record.temperature,
                    attempts=record.attempts,
                    succeeded=record.succeeded,
                    latency_ms=record.latency_ms,
                    invoked_at=datetime.fromisoformat(record.invoked_at),
                    error_type=record.error_type,
                    error_message=record.error_message,
                )
            )


def _numeric_id(external_id: str) -> float:
    try:
        return float(external_id)
    except (TypeError, ValueError):
        return 0.0

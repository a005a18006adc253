from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from agents.base_agent import BaseAgent
from config.settings import settings
from llm.completion_client import CompletionClient
from llm.response_parsing import JobParseError, choice_error, extract_text, parse_job_drafts
from persistence.repository import JobRepository, TicketRepository
from prompts.splitter_prompt import MAX_JOBS, MIN_JOBS, build_splitter_prompt
from scheduler.dispatcher import Dispatcher
from schemas.job import SplitResult


class SplitterAgent(BaseAgent):
    """Breaks an accepted ticket into a batch of independently implementable jobs."""

    def __init__(
        self,
        client: Optional[CompletionClient] = None,
        dispatcher: Optional[Dispatcher] = None,
        tickets: Optional[TicketRepository] = None,
        jobs: Optional[JobRepository] = None,
    ) -> None:
        super().__init__(client=client, dispatcher=dispatcher)
        self.tickets = tickets or TicketRepository()
        self.jobs = jobs or JobRepository()

    @contextmanager
    def job_creation_scope(self, ticket_id: str) -> Iterator[None]:
        """Clears the ticket's creating_jobs flag on every exit path."""
        try:
            yield
        finally:
            try:
                self.tickets.set_creating_jobs(ticket_id, False)
            except Exception as exc:
                self.logger.error("creating_jobs_clear_failed", exc=exc, ticket_id=ticket_id)

    def split(self, ticket_id: str, title: str, description: str, project_id: str) -> SplitResult:
        with self.job_creation_scope(ticket_id):
            try:
                return self._split(ticket_id, title, description, project_id)
            except Exception as exc:
                self.logger.error("job_split_failed", exc=exc, ticket_id=ticket_id, project_id=project_id)
                return SplitResult.failed(str(exc) or type(exc).__name__)

    def _split(self, ticket_id: str, title: str, description: str, project_id: str) -> SplitResult:
        self.logger.info("job_split_started", ticket_id=ticket_id, project_id=project_id)

        if not self.client.is_configured:
            self.logger.error("completion_api_key_missing", ticket_id=ticket_id)
            return SplitResult.failed("API key not configured")

        response = self.invoke_completion(
            prompt=build_splitter_prompt(title, description),
            prompt_name="job_splitting",
            max_tokens=settings.splitter_max_tokens,
            temperature=settings.splitter_temperature,
            ticket_id=ticket_id,
        )

        api_error = choice_error(response.payload)
        if api_error:
            self.logger.error("completion_choice_error", ticket_id=ticket_id, api_error=api_error)
            return SplitResult.failed(f"API error: {api_error}")

        content = extract_text(response.payload)
        if content is None:
            self.logger.error("completion_content_missing", ticket_id=ticket_id)
            return SplitResult.failed("No content found in API response")

        try:
            drafts = parse_job_drafts(content)
        except JobParseError as exc:
            self.logger.error(
                "job_split_parse_failed",
                exc=exc,
                ticket_id=ticket_id,
                preview=content[:300],
            )
            return SplitResult.failed(str(exc))

        if not MIN_JOBS <= len(drafts) <= MAX_JOBS:
            self.logger.warning(
                "job_count_out_of_range",
                ticket_id=ticket_id,
                job_count=len(drafts),
                expected_min=MIN_JOBS,
                expected_max=MAX_JOBS,
            )

        created = self.jobs.create_jobs(ticket_id, project_id, drafts)
        self.logger.info("jobs_created", ticket_id=ticket_id, project_id=project_id, jobs_created=created)
        return SplitResult(success=True, jobs_created=created)


# ── Task entry point ───────────────────────────────────────────────────────────

_agent = SplitterAgent()


def split_ticket(ticket_id: str, title: str, description: str, project_id: str) -> dict:
    return _agent.split(ticket_id, title, description, project_id).model_dump()

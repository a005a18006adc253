from __future__ import annotations

from typing import Optional

from agents.base_agent import BaseAgent
from config.settings import settings
from llm.completion_client import CompletionClient, CompletionError
from llm.response_parsing import choice_error, extract_text, parse_verdict
from persistence.repository import TicketNotFoundError, TicketRepository
from prompts.classifier_prompt import build_classifier_prompt
from scheduler.dispatcher import NOTIFY_REJECTED, SPLIT_TICKET, Dispatcher
from schemas.assessment import AssessmentResult


class ClassifierAgent(BaseAgent):
    """Decides whether an imported ticket is specified well enough to be split into jobs."""

    def __init__(
        self,
        client: Optional[CompletionClient] = None,
        dispatcher: Optional[Dispatcher] = None,
        tickets: Optional[TicketRepository] = None,
    ) -> None:
        super().__init__(client=client, dispatcher=dispatcher)
        self.tickets = tickets or TicketRepository()

    def assess(self, ticket_id: str, title: str, description: str) -> AssessmentResult:
        self.logger.info("assessment_started", ticket_id=ticket_id)

        if not self.client.is_configured:
            self.logger.error("completion_api_key_missing", ticket_id=ticket_id)
            return AssessmentResult.failed("API key not configured")

        try:
            response = self.invoke_completion(
                prompt=build_classifier_prompt(title, description),
                prompt_name="ticket_assessment",
                max_tokens=settings.classifier_max_tokens,
                temperature=settings.classifier_temperature,
                ticket_id=ticket_id,
            )

            api_error = choice_error(response.payload)
            if api_error:
                self.logger.error("completion_choice_error", ticket_id=ticket_id, api_error=api_error)
                return AssessmentResult.failed(f"API error: {api_error}")

            content = extract_text(response.payload)
            if content is None:
                self.logger.error("completion_content_missing", ticket_id=ticket_id)
                return AssessmentResult.failed("No content found in API response")

            verdict = parse_verdict(content)
            if verdict.heuristic:
                self.logger.warning(
                    "assessment_json_parse_failed",
                    ticket_id=ticket_id,
                    preview=content[:300],
                    heuristic_rejected=verdict.rejected,
                )

            ticket = self.tickets.record_verdict(ticket_id, verdict.rejected, verdict.reason)
            self.logger.info(
                "ticket_assessed",
                ticket_id=ticket_id,
                project_id=ticket.project_id,
                rejected=verdict.rejected,
                reason=verdict.reason,
            )

            if verdict.rejected:
                self._notify_rejected(ticket_id)
            else:
                self._start_job_creation(ticket_id, title, description, ticket.project_id)

            return AssessmentResult(success=True, rejected=verdict.rejected, reason=verdict.reason)

        except CompletionError as exc:
            self.logger.error("assessment_failed", exc=exc, ticket_id=ticket_id)
            return AssessmentResult.failed(str(exc))
        except TicketNotFoundError:
            self.logger.warning("assessed_ticket_missing", ticket_id=ticket_id)
            return AssessmentResult.failed("Ticket not found")
        except Exception as exc:
            self.logger.error("assessment_failed", exc=exc, ticket_id=ticket_id)
            return AssessmentResult.failed(str(exc) or type(exc).__name__)

    def _notify_rejected(self, ticket_id: str) -> None:
        try:
            self.dispatcher.enqueue(NOTIFY_REJECTED, ticket_id=ticket_id)
        except Exception as exc:
            # The verdict is already stored; the tracker push is best-effort
            self.logger.error("rejection_notice_dispatch_failed", exc=exc, ticket_id=ticket_id)

    def _start_job_creation(self, ticket_id: str, title: str, description: str, project_id: str) -> None:
        try:
            self.dispatcher.enqueue(
                SPLIT_TICKET,
                ticket_id=ticket_id,
                title=title,
                description=description,
                project_id=project_id,
            )
        except Exception as exc:
            self.logger.error("split_dispatch_failed", exc=exc, ticket_id=ticket_id)
            self.tickets.set_creating_jobs(ticket_id, False)


# ── Task entry point ───────────────────────────────────────────────────────────

_agent = ClassifierAgent()


def assess_ticket(ticket_id: str, title: str, description: str) -> dict:
    return _agent.assess(ticket_id, title, description).model_dump()

"""Unit tests for the splitter agent (completion API mocked over httpx)."""

from __future__ import annotations

import pytest

from agents.splitter_agent import SplitterAgent
from persistence.repository import JobRepository, TicketRepository
from schemas.ticket import ExternalTicket


@pytest.fixture
def accepted_ticket_id(project_id):
    repo = TicketRepository()
    outcome = repo.upsert_tickets(
        project_id,
        [ExternalTicket(external_id="7", title="Auth", description="Add login")],
    )
    tid = outcome.to_assess[0].ticket_id
    repo.record_verdict(tid, rejected=False, reason="clear")
    assert repo.get_ticket(tid).creating_jobs is True
    return tid


def _split(client, ticket_id, project_id):
    return SplitterAgent(client=client).split(ticket_id, "Auth", "Add login", project_id)


def test_single_job_is_created_and_flag_cleared(accepted_ticket_id, project_id, make_completion_client):
    client = make_completion_client('{"jobs":[{"title":"Setup","tasks":"1. x"}]}')

    result = _split(client, accepted_ticket_id, project_id)

    assert result.success is True
    assert result.jobs_created == 1
    jobs = JobRepository().list_jobs_for_ticket(accepted_ticket_id)
    assert [(j.title, j.tasks, j.project_id) for j in jobs] == [("Setup", "1. x", project_id)]
    assert jobs[0].is_complete is False
    assert TicketRepository().get_ticket(accepted_ticket_id).creating_jobs is False


def test_fenced_multi_job_response(accepted_ticket_id, project_id, make_completion_client):
    content = (
        "Here is the split:\n```json\n"
        '{"jobs": [{"title": "Middleware", "tasks": "1. JWT"}, '
        '{"title": "Login endpoint", "tasks": "1. route"}, {"title": "Rate limit"}]}\n```'
    )
    client = make_completion_client(content)

    result = _split(client, accepted_ticket_id, project_id)

    assert result.jobs_created == 3
    titles = [j.title for j in JobRepository().list_jobs_for_ticket(accepted_ticket_id)]
    assert sorted(titles) == ["Login endpoint", "Middleware", "Rate limit"]
    tasks = {j.title: j.tasks for j in JobRepository().list_jobs_for_ticket(accepted_ticket_id)}
    assert tasks["Rate limit"] == "No tasks specified"


def test_wrong_top_level_key_creates_nothing(accepted_ticket_id, project_id, make_completion_client):
    client = make_completion_client('{"notjobs": []}')

    result = _split(client, accepted_ticket_id, project_id)

    assert result.success is False
    assert result.error == "Invalid job splitting response structure"
    assert JobRepository().list_jobs_for_ticket(accepted_ticket_id) == []
    assert TicketRepository().get_ticket(accepted_ticket_id).creating_jobs is False


def test_missing_api_key_still_clears_flag(accepted_ticket_id, project_id, make_completion_client):
    client = make_completion_client("unused", api_key="")

    result = _split(client, accepted_ticket_id, project_id)

    assert result.error == "API key not configured"
    assert TicketRepository().get_ticket(accepted_ticket_id).creating_jobs is False


def test_exhausted_retries_clear_flag_and_persist_nothing(accepted_ticket_id, project_id, make_completion_client):
    client = make_completion_client(504)

    result = _split(client, accepted_ticket_id, project_id)

    assert result.success is False
    assert "after 4 attempts" in result.error
    assert JobRepository().list_jobs_for_ticket(accepted_ticket_id) == []
    assert TicketRepository().get_ticket(accepted_ticket_id).creating_jobs is False


def test_unexpected_exception_is_converted_after_flag_cleanup(
    accepted_ticket_id, project_id, make_completion_client, monkeypatch
):
    client = make_completion_client('{"jobs":[{"title":"Setup","tasks":"1. x"}]}')
    agent = SplitterAgent(client=client)

    def explode(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(agent.jobs, "create_jobs", explode)

    result = agent.split(accepted_ticket_id, "Auth", "Add login", project_id)

    assert result.success is False
    assert result.error == "disk full"
    assert TicketRepository().get_ticket(accepted_ticket_id).creating_jobs is False


def test_deleted_ticket_reports_error(accepted_ticket_id, project_id, make_completion_client):
    TicketRepository().delete_ticket(accepted_ticket_id)
    client = make_completion_client('{"jobs":[{"title":"Setup","tasks":"1. x"}]}')

    result = _split(client, accepted_ticket_id, project_id)

    assert result.success is False
    assert JobRepository().list_jobs_for_project(project_id) == []

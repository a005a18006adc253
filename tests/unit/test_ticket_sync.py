"""Unit tests for tracker sync: upsert semantics and assessment dispatch."""

from __future__ import annotations

import httpx

from persistence.models import Verdict
from persistence.repository import ProjectRepository, TicketRepository
from scheduler.dispatcher import ASSESS_TICKET
from scheduler.ticket_sync import TicketSyncEngine
from tracker.client import TrackerClient

TRACKER_TICKETS = [
    {"jiraId": "10", "jiraTitle": "A", "jiraDescription": "d", "priority": "high"},
]


def _engine(tracker, dispatcher) -> TicketSyncEngine:
    return TicketSyncEngine(tracker=tracker, dispatcher=dispatcher)


def test_new_ticket_is_stored_and_assessment_scheduled(project_id, make_tracker, dispatcher):
    result = _engine(make_tracker(TRACKER_TICKETS), dispatcher).sync_project(project_id)

    assert (result.added, result.updated, result.total) == (1, 0, 1)

    [ticket] = TicketRepository().list_project_tickets(project_id)
    assert ticket.external_id == "10"
    assert ticket.title == "A"
    assert ticket.description == "d"
    assert ticket.verdict == Verdict.UNSET
    assert ticket.rejected is None
    assert ticket.creating_jobs is False

    assert dispatcher.named(ASSESS_TICKET) == [
        {"ticket_id": ticket.id, "title": "A", "description": "d"}
    ]


def test_resync_of_unchanged_tickets_is_a_no_op(project_id, make_tracker, dispatcher):
    engine = _engine(make_tracker(TRACKER_TICKETS), dispatcher)
    engine.sync_project(project_id)
    before = TicketRepository().list_project_tickets(project_id)
    dispatcher.tasks.clear()

    result = engine.sync_project(project_id)

    assert (result.added, result.updated, result.total) == (0, 0, 1)
    assert dispatcher.tasks == []
    assert TicketRepository().list_project_tickets(project_id) == before


def test_changed_ticket_resets_verdict_and_is_reassessed(project_id, make_tracker, dispatcher):
    _engine(make_tracker(TRACKER_TICKETS), dispatcher).sync_project(project_id)
    [ticket] = TicketRepository().list_project_tickets(project_id)
    TicketRepository().record_verdict(ticket.id, rejected=True, reason="vague")
    dispatcher.tasks.clear()

    changed = [{"jiraId": "10", "jiraTitle": "A", "jiraDescription": "d, now with criteria"}]
    result = _engine(make_tracker(changed), dispatcher).sync_project(project_id)

    assert (result.added, result.updated) == (0, 1)
    stored = TicketRepository().get_ticket(ticket.id)
    assert stored.description == "d, now with criteria"
    assert stored.verdict == Verdict.UNSET
    assert stored.verdict_reason is None
    assert [p["ticket_id"] for p in dispatcher.named(ASSESS_TICKET)] == [ticket.id]


def test_malformed_entries_are_skipped(project_id, make_tracker, dispatcher):
    raw = [
        {"jiraId": 11, "jiraTitle": "Numeric id"},
        {"jiraTitle": "No id"},
        "not an object",
        {"jiraId": "", "jiraTitle": "Blank id"},
    ]

    result = _engine(make_tracker(raw), dispatcher).sync_project(project_id)

    assert result.added == 1
    [ticket] = TicketRepository().list_project_tickets(project_id)
    assert ticket.external_id == "11"
    assert ticket.description == ""


def test_project_without_source_url_yields_zero_result(make_tracker, dispatcher):
    calls: list = []
    pid = ProjectRepository().create_project(name="No tracker")

    result = _engine(make_tracker(TRACKER_TICKETS, calls=calls), dispatcher).sync_project(pid)

    assert (result.added, result.updated, result.total) == (0, 0, 0)
    assert calls == []
    assert dispatcher.tasks == []


def test_non_list_payload_syncs_nothing(project_id, make_tracker, dispatcher):
    result = _engine(make_tracker({"tickets": TRACKER_TICKETS}), dispatcher).sync_project(project_id)

    assert result.total == 0
    assert TicketRepository().list_project_tickets(project_id) == []


def test_sweep_isolates_failing_projects(dispatcher):
    projects = ProjectRepository()
    good = projects.create_project(name="Good")
    projects.set_credentials(good, tracker_source_url="https://good.test/tickets")
    bad = projects.create_project(name="Bad")
    projects.set_credentials(bad, tracker_source_url="https://bad.test/tickets")
    blank = projects.create_project(name="Blank")
    projects.set_credentials(blank, tracker_source_url="   ")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "bad.test":
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json=TRACKER_TICKETS + [{"jiraId": "11", "jiraTitle": "B"}])

    tracker = TrackerClient(transport=httpx.MockTransport(handler))

    result = _engine(tracker, dispatcher).sync_all_projects()

    assert result.projects_synced == 1
    assert result.failed_project_ids == [bad]
    assert (result.total_added, result.total_updated, result.total_seen) == (2, 0, 2)
    assert len(dispatcher.named(ASSESS_TICKET)) == 2
    assert TicketRepository().list_project_tickets(bad) == []


def test_dispatch_failure_does_not_undo_the_upsert(project_id, make_tracker):
    class BrokenDispatcher:
        def enqueue(self, task_name, **payload):
            raise RuntimeError("scheduler is down")

    result = TicketSyncEngine(tracker=make_tracker(TRACKER_TICKETS), dispatcher=BrokenDispatcher()).sync_project(
        project_id
    )

    assert result.added == 1
    assert len(TicketRepository().list_project_tickets(project_id)) == 1

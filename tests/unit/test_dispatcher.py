"""Unit tests for task resolution and the two dispatchers."""

from __future__ import annotations

import json
import time
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from scheduler import dispatcher as dispatch_mod
from scheduler.dispatcher import (
    ASSESS_TICKET,
    InlineDispatcher,
    SchedulerDispatcher,
    get_dispatcher,
    resolve_task,
    run_task,
    set_dispatcher,
)


def test_registered_tasks_resolve_to_callables():
    for name in dispatch_mod.TASKS:
        assert callable(resolve_task(name))


def test_unknown_task_name_is_rejected():
    with pytest.raises(ValueError, match="Unknown task"):
        resolve_task("launch_rockets")
    with pytest.raises(ValueError):
        InlineDispatcher().enqueue("launch_rockets", ticket_id="t")


def test_run_task_returns_result_and_swallows_failures(monkeypatch):
    monkeypatch.setitem(dispatch_mod.TASKS, "encode", "json:dumps")
    monkeypatch.setitem(dispatch_mod.TASKS, "decode", "json:loads")

    assert run_task("encode", obj=[1]) == "[1]"
    assert run_task("decode", s="not json") is None


@patch("scheduler.dispatcher.run_task")
def test_inline_dispatcher_runs_immediately(mock_run):
    InlineDispatcher().enqueue(ASSESS_TICKET, ticket_id="t-1", title="T", description="D")

    mock_run.assert_called_once_with(ASSESS_TICKET, ticket_id="t-1", title="T", description="D")


def test_scheduler_dispatcher_adds_one_shot_job():
    scheduler = MagicMock()
    scheduler.add_job.return_value.id = "job-1"

    SchedulerDispatcher(scheduler).enqueue(ASSESS_TICKET, ticket_id="t-1", title="T", description="D")

    args, kwargs = scheduler.add_job.call_args
    assert args == (run_task,)
    assert isinstance(kwargs["trigger"], DateTrigger)
    assert kwargs["args"] == [ASSESS_TICKET]
    assert kwargs["kwargs"] == {"ticket_id": "t-1", "title": "T", "description": "D"}
    assert kwargs["id"].startswith(f"{ASSESS_TICKET}:")


def test_default_dispatcher_is_inline():
    set_dispatcher(None)
    assert isinstance(get_dispatcher(), InlineDispatcher)

    custom = MagicMock()
    set_dispatcher(custom)
    assert get_dispatcher() is custom


def test_scheduler_dispatcher_runs_task_on_background_scheduler(project_id, make_tracker, monkeypatch):
    from persistence.repository import TicketRepository
    from scheduler.dispatcher import NOTIFY_REJECTED
    from scheduler.reconciler import Reconciler
    from schemas.ticket import ExternalTicket

    calls: list = []
    monkeypatch.setattr("scheduler.reconciler._reconciler", Reconciler(tracker=make_tracker(calls=calls)))
    tid = TicketRepository().upsert_tickets(
        project_id, [ExternalTicket(external_id="77", title="T", description="")]
    ).to_assess[0].ticket_id

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.start()
    try:
        SchedulerDispatcher(scheduler).enqueue(NOTIFY_REJECTED, ticket_id=tid)
        deadline = time.monotonic() + 10
        while not calls and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        scheduler.shutdown(wait=True)

    assert [json.loads(r.content) for r in calls] == [{"ticketId": "77", "ticketStatus": "42"}]

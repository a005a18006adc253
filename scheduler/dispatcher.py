"""
Fire-and-continue task dispatch.

Components never call follow-up work directly; they enqueue a named task with a
small keyword payload. The dispatcher decides where it runs:

- SchedulerDispatcher: one-shot APScheduler job on the background scheduler
- InlineDispatcher:    immediately in the caller's thread (CLI runs, tests)

Task failures are logged by `run_task` and never reach the enqueuing caller.
"""

from __future__ import annotations

import importlib
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from app_logging.activity_logger import ActivityLogger

logger = ActivityLogger("dispatcher")

ASSESS_TICKET = "assess_ticket"
SPLIT_TICKET = "split_ticket"
NOTIFY_REJECTED = "notify_rejected"
RECONCILE_TICKET = "reconcile_ticket"

# Resolved lazily so that agents and the reconciler can import this module
TASKS: dict[str, str] = {
    ASSESS_TICKET: "agents.classifier_agent:assess_ticket",
    SPLIT_TICKET: "agents.splitter_agent:split_ticket",
    NOTIFY_REJECTED: "scheduler.reconciler:notify_rejected",
    RECONCILE_TICKET: "scheduler.reconciler:check_and_reconcile",
}


def resolve_task(task_name: str) -> Callable[..., Any]:
    try:
        target = TASKS[task_name]
    except KeyError:
        raise ValueError(f"Unknown task: {task_name}") from None
    module_name, func_name = target.split(":")
    return getattr(importlib.import_module(module_name), func_name)


def run_task(task_name: str, **payload: Any) -> Any:
    """Execute a registered task; exceptions are logged, not raised."""
    try:
        return resolve_task(task_name)(**payload)
    except Exception as exc:
        logger.error(
            "task_failed",
            exc=exc,
            task=task_name,
            ticket_id=payload.get("ticket_id"),
        )
        return None


class Dispatcher(ABC):
    @abstractmethod
    def enqueue(self, task_name: str, **payload: Any) -> None:
        ...


class InlineDispatcher(Dispatcher):
    def enqueue(self, task_name: str, **payload: Any) -> None:
        resolve_task(task_name)  # unknown names fail at the call site
        logger.debug("task_running_inline", task=task_name, ticket_id=payload.get("ticket_id"))
        run_task(task_name, **payload)


class SchedulerDispatcher(Dispatcher):
    def __init__(self, scheduler: BaseScheduler) -> None:
        self._scheduler = scheduler

    def enqueue(self, task_name: str, **payload: Any) -> None:
        resolve_task(task_name)
        job = self._scheduler.add_job(
            run_task,
            trigger=DateTrigger(run_date=datetime.now(timezone.utc)),
            args=[task_name],
            kwargs=payload,
            id=f"{task_name}:{uuid.uuid4()}",
            misfire_grace_time=None,  # run late rather than drop
        )
        logger.debug(
            "task_enqueued",
            task=task_name,
            job_id=job.id,
            ticket_id=payload.get("ticket_id"),
        )


_dispatcher: Optional[Dispatcher] = None


def get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = InlineDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: Optional[Dispatcher]) -> None:
    global _dispatcher
    _dispatcher = dispatcher

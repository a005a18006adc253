"""Shared fixtures: a fresh SQLite database per test and a recording dispatcher."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from persistence.models import Base


class RecordingDispatcher:
    """Collects enqueued tasks instead of running them."""

    def __init__(self) -> None:
        self.tasks: list[tuple[str, dict[str, Any]]] = []

    def enqueue(self, task_name: str, **payload: Any) -> None:
        self.tasks.append((task_name, payload))

    def named(self, task_name: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.tasks if name == task_name]


@pytest.fixture(autouse=True)
def fresh_db(tmp_path):
    """Each test gets its own SQLite file, patched into the database module."""
    from sqlalchemy.orm import sessionmaker
    import persistence.database as db_mod

    test_engine = db_mod.build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(test_engine)

    original_engine, original_session = db_mod.engine, db_mod.SessionLocal
    db_mod.engine = test_engine
    db_mod.SessionLocal = sessionmaker(
        bind=test_engine, autocommit=False, autoflush=False, expire_on_commit=False
    )

    yield test_engine

    db_mod.engine, db_mod.SessionLocal = original_engine, original_session
    test_engine.dispose()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(autouse=True)
def _reset_global_dispatcher():
    from scheduler.dispatcher import set_dispatcher
    set_dispatcher(None)
    yield
    set_dispatcher(None)


@pytest.fixture
def project_id():
    from persistence.repository import ProjectRepository

    repo = ProjectRepository()
    pid = repo.create_project(name="Web app", owner_id="user-1")
    repo.set_credentials(pid, tracker_source_url="https://tracker.test/tickets")
    return pid


def completion_payload(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def make_completion_client():
    """
    Build a CompletionClient backed by httpx.MockTransport.

    `responses` is consumed one per request (the last one repeats); a str is
    wrapped in a chat-completions payload, a dict is sent as-is, an int is sent
    as an empty error response with that status code.
    """
    from llm.completion_client import CompletionClient, RetryPolicy

    def factory(*responses: Any, api_key: str = "test-key", calls: list | None = None, **policy: Any):
        queue = list(responses)

        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request)
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, int):
                return httpx.Response(item, text="upstream error")
            if isinstance(item, str):
                item = completion_payload(item)
            return httpx.Response(200, json=item)

        policy.setdefault("base_delay", 0.0)
        policy.setdefault("max_delay", 0.0)
        policy.setdefault("jitter", 0.0)
        return CompletionClient(
            api_key=api_key,
            api_url="https://completion.test/chat/completions",
            model_id="test-model",
            policy=RetryPolicy(**policy),
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def make_tracker():
    """Build a TrackerClient whose GET returns `tickets` and whose POST answers `post_status`."""
    from tracker.client import TrackerClient

    def factory(tickets: Any = None, get_status: int = 200, post_status: int = 200, calls: list | None = None):
        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request)
            if request.method == "GET":
                return httpx.Response(get_status, json=tickets if tickets is not None else [])
            return httpx.Response(post_status, json={"ok": post_status < 400})

        return TrackerClient(transport=httpx.MockTransport(handler))

    return factory

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from app_logging.activity_logger import ActivityLogger
from llm.completion_client import CompletionClient, CompletionError, CompletionResponse
from llm.llm_logger import CompletionCallRecord, llm_logger
from llm.response_parsing import extract_text
from scheduler.dispatcher import Dispatcher, get_dispatcher


class BaseAgent:
    """
    Base class for the completion-backed ticket agents.

    Provides:
    - Completion API invocation via invoke_completion()
    - Completion call logging (every request captured via llm_logger)
    - Activity event logging
    - Async-to-sync bridge for the async completion client
    - The dispatcher used for fire-and-continue follow-up work
    """

    def __init__(
        self,
        client: Optional[CompletionClient] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.agent_name = self.__class__.__name__
        self.logger = ActivityLogger(self.agent_name)
        self._client = client
        self._dispatcher = dispatcher

    # ── Collaborators ────────────────────────────────────────────────────────

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            self._client = CompletionClient()
        return self._client

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher or get_dispatcher()

    # ── Completion API ───────────────────────────────────────────────────────

    def invoke_completion(
        self,
        prompt: str,
        prompt_name: str,
        max_tokens: int,
        temperature: float,
        ticket_id: Optional[str] = None,
    ) -> CompletionResponse:
        """
        Call the completion API (with its retry policy) and log the request.
        Raises CompletionError once the request has definitively failed.
        """
        record = CompletionCallRecord(
            ticket_id=ticket_id,
            agent_name=self.agent_name,
            model_id=self.client.model_id,
            prompt_name=prompt_name,
            prompt=prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        start = time.monotonic()
        try:
            response = self.run_async(
                self.client.acomplete(prompt, max_tokens, temperature, ticket_id=ticket_id)
            )
        except CompletionError as exc:
            record.latency_ms = (time.monotonic() - start) * 1000
            record.attempts = getattr(exc, "attempts", 1)
            record.error_type = type(exc).__name__
            record.error_message = str(exc)
            llm_logger.log_call(record)
            raise

        record.latency_ms = (time.monotonic() - start) * 1000
        record.attempts = response.attempts
        record.succeeded = True
        record.raw_response = str(response.payload)[:10000]
        record.extracted_text = extract_text(response.payload)
        llm_logger.log_call(record)

        self.logger.info(
            "completion_call_completed",
            ticket_id=ticket_id,
            call_id=record.call_id,
            prompt_name=prompt_name,
            attempts=response.attempts,
            latency_ms=round(record.latency_ms, 1),
        )
        return response

    # ── Async bridge ──────────────────────────────────────────────────────────

    def run_async(self, coro) -> Any:
        """
        Run an async coroutine from synchronous agent code.
        Handles callers that already sit inside a running event loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No running event loop, safe to use asyncio.run()
            return asyncio.run(coro)

        # Already inside a running event loop, delegate to a new thread
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app_logging.activity_logger import ActivityLogger
from config.settings import settings

logger = ActivityLogger("completion_client")


class CompletionError(RuntimeError):
    """Base class for completion API failures."""


class CompletionConfigError(CompletionError):
    pass


class CompletionTimeoutError(CompletionError):
    pass


class CompletionHTTPError(CompletionError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"API request failed: {status_code} - {body[:500]}")
        self.status_code = status_code


class CompletionRetriesExhausted(CompletionError):
    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(
            f"Completion API failed after {attempts} attempts. Last error: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 1.0
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.completion_max_retries,
            base_delay=settings.completion_retry_base_delay,
            max_delay=settings.completion_retry_max_delay,
            jitter=settings.completion_retry_jitter,
            timeout_seconds=settings.completion_timeout_seconds,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the 0-based `attempt` failed: capped doubling plus jitter."""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return delay + random.uniform(0, self.jitter)


@dataclass
class CompletionResponse:
    payload: Any
    attempts: int


class CompletionClient:
    """
    Chat-completions client for the external text-completion API.

    Every attempt is raced against the policy timeout; timeouts, transport
    errors, non-2xx statuses and non-JSON bodies are retried with backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model_id: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.completion_api_key if api_key is None else api_key
        self.api_url = api_url or settings.completion_api_url
        self.model_id = model_id or settings.completion_model_id
        self.policy = policy or RetryPolicy.from_settings()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def _request_body(self, prompt: str, max_tokens: int, temperature: float) -> dict:
        return {
            "model": self.model_id,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    async def _attempt(self, client: httpx.AsyncClient, body: dict) -> Any:
        try:
            response = await asyncio.wait_for(
                client.post(
                    self.api_url,
                    json=body,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                ),
                timeout=self.policy.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CompletionTimeoutError(
                f"Request timeout after {self.policy.timeout_seconds}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionError(f"Transport error: {exc}") from exc

        if not response.is_success:
            raise CompletionHTTPError(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise CompletionError("Completion API returned a non-JSON body") from exc

    async def acomplete(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        ticket_id: Optional[str] = None,
    ) -> CompletionResponse:
        if not self.is_configured:
            raise CompletionConfigError("API key not configured")

        body = self._request_body(prompt, max_tokens, temperature)
        total_attempts = self.policy.max_retries + 1
        last_error: Optional[CompletionError] = None

        async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
            for attempt in range(total_attempts):
                try:
                    payload = await self._attempt(client, body)
                    return CompletionResponse(payload=payload, attempts=attempt + 1)
                except CompletionError as exc:
                    last_error = exc

                if attempt == self.policy.max_retries:
                    break

                delay = self.policy.backoff_delay(attempt)
                logger.warning(
                    "completion_attempt_failed",
                    ticket_id=ticket_id,
                    attempt=attempt + 1,
                    max_attempts=total_attempts,
                    retry_in_seconds=round(delay, 2),
                    error_type=type(last_error).__name__,
                    error_message=str(last_error),
                )
                await asyncio.sleep(delay)

        raise CompletionRetriesExhausted(total_attempts, last_error)

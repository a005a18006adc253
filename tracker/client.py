from __future__ import annotations

from enum import Enum
from typing import Any, Optional

import httpx

from app_logging.activity_logger import ActivityLogger
from config.settings import settings
from schemas.ticket import ExternalTicket

logger = ActivityLogger("tracker_client")


class TrackerStatus(str, Enum):
    DONE = "41"
    REJECTED = "42"


class TrackerError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def parse_tracker_tickets(raw: Any) -> list[ExternalTicket]:
    """
    Convert the tracker's ticket list payload into ExternalTicket models.

    Only a list of objects is accepted. Entries without a usable ticket ID are
    skipped; missing title/description become empty strings; extra fields are ignored.
    """
    if not isinstance(raw, list):
        return []

    tickets: list[ExternalTicket] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        external_id = _as_text(item.get("jiraId"))
        if not external_id:
            continue
        tickets.append(
            ExternalTicket(
                external_id=external_id,
                title=_as_text(item.get("jiraTitle")),
                description=_as_text(item.get("jiraDescription")),
            )
        )
    return tickets


class TrackerClient:
    """HTTP client for the project's issue-tracker source URL (GET list, POST status)."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds or settings.tracker_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(transport=self._transport, timeout=self.timeout_seconds)

    def fetch_tickets(self, url: str) -> list[ExternalTicket]:
        try:
            with self._client() as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            raise TrackerError(f"Failed to fetch tickets: {exc}") from exc

        if not response.is_success:
            raise TrackerError(
                f"Failed to fetch tickets: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            raw = response.json()
        except ValueError as exc:
            raise TrackerError("Tracker returned a non-JSON ticket list") from exc

        tickets = parse_tracker_tickets(raw)
        logger.debug("tracker_tickets_fetched", received=len(tickets))
        return tickets

    def push_status(self, url: str, external_id: str, status: TrackerStatus) -> None:
        """POST `{ticketId, ticketStatus}` to the source URL. Raises TrackerError on failure."""
        try:
            with self._client() as client:
                response = client.post(
                    url,
                    json={"ticketId": external_id, "ticketStatus": status.value},
                )
        except httpx.HTTPError as exc:
            raise TrackerError(f"Tracker status update failed: {exc}") from exc

        if not response.is_success:
            raise TrackerError(
                f"Tracker status update failed: {response.status_code}",
                status_code=response.status_code,
            )

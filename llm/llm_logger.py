from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from config.settings import settings
from app_logging.activity_logger import ActivityLogger

_activity = ActivityLogger("llm_logger")


class CompletionCallRecord(BaseModel):
    """Pydantic schema for a single completion API request (all of its attempts)."""

    call_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    ticket_id: Optional[str] = None
    agent_name: str

    # Request
    model_id: str
    prompt_name: str
    prompt: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None

    # Response
    raw_response: Optional[str] = None
    extracted_text: Optional[str] = None

    # Performance
    attempts: int = 1
    latency_ms: float = 0.0
    invoked_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    # Outcome
    succeeded: bool = False
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class LLMLogger:
    """
    Logs every completion API request to a JSONL file and SQLite.
    Usage:
        llm_logger.log_call(CompletionCallRecord(...))
    """

    def __init__(self) -> None:
        self._log_path = Path(settings.llm_log_path)
        self._log_path.parent.mkdir(parents=True, exist_ok=True)

    def log_call(self, record: CompletionCallRecord) -> str:
        """Write record to JSONL file and SQLite. Returns call_id."""
        with open(self._log_path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")

        # SQLite (best-effort; a logging failure must not fail the agent)
        try:
            from persistence.repository import CompletionCallRepository
            CompletionCallRepository().save_call(record)
        except Exception as exc:
            _activity.warning(
                "llm_log_db_write_failed",
                call_id=record.call_id,
                error_message=str(exc),
            )

        return record.call_id


# Module-level singleton
llm_logger = LLMLogger()

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from config.settings import settings


class ActivityLogger:
    """
    Structured activity logger. Writes JSON lines to file and emits the same
    event through structlog (stderr). Thread-safe via a class-level write lock.

    Each log record schema:
    {
        "timestamp":  "2025-01-01T00:00:00+00:00",
        "level":      "INFO",
        "event":      "ticket_assessed",
        "component":  "classifier",
        "ticket_id":  "uuid",   (optional)
        "project_id": "uuid",   (optional)
        "job_id":     "uuid",   (optional)
        ...extra_fields
    }
    """

    _lock = threading.Lock()

    def __init__(self, component: str) -> None:
        self.component = component
        self._log_path = Path(settings.activity_log_path)
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._struct = structlog.get_logger(component)

    def _write(
        self,
        level: str,
        event: str,
        ticket_id: Optional[str] = None,
        project_id: Optional[str] = None,
        job_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context: dict[str, Any] = {"component": self.component}
        if ticket_id:
            context["ticket_id"] = ticket_id
        if project_id:
            context["project_id"] = project_id
        if job_id:
            context["job_id"] = job_id
        context.update(kwargs)

        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            **context,
        }
        line = json.dumps(record, default=str)

        with self._lock:
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

        getattr(self._struct, level.lower())(event, **context)

    # ── Public interface ──────────────────────────────────────────────────────

    def info(self, event: str, **kwargs: Any) -> None:
        self._write("INFO", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._write("WARNING", event, **kwargs)

    def error(
        self,
        event: str,
        exc: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        if exc:
            kwargs.setdefault("error_type", type(exc).__name__)
            kwargs.setdefault("error_message", str(exc))
        self._write("ERROR", event, **kwargs)

    def debug(self, event: str, **kwargs: Any) -> None:
        if settings.log_level.upper() == "DEBUG":
            self._write("DEBUG", event, **kwargs)

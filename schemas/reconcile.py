from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ReconcileStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class ReconcileResult(BaseModel):
    status: ReconcileStatus
    reason: Optional[str] = None

    @classmethod
    def skipped(cls, reason: str) -> "ReconcileResult":
        return cls(status=ReconcileStatus.SKIPPED, reason=reason)

    @classmethod
    def error(cls, reason: str) -> "ReconcileResult":
        return cls(status=ReconcileStatus.ERROR, reason=reason)

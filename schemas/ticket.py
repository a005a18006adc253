from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from persistence.models import Verdict


class ExternalTicket(BaseModel):
    """One ticket as reported by the issue tracker's source endpoint."""

    external_id: str = Field(..., min_length=1, description="Tracker ticket ID, unique per project")
    title: str = ""
    description: str = ""


class TicketView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    external_id: str
    title: str
    description: str
    verdict: Verdict = Verdict.UNSET
    verdict_reason: Optional[str] = None
    creating_jobs: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def rejected(self) -> Optional[bool]:
        if self.verdict == Verdict.UNSET:
            return None
        return self.verdict == Verdict.REJECTED

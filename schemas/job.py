from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field

UNTITLED_JOB = "Untitled Job"
NO_TASKS = "No tasks specified"


class JobDraft(BaseModel):
    title: str = UNTITLED_JOB
    tasks: str = NO_TASKS


class JobView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    project_id: str
    title: str
    tasks: str
    pr_id: Optional[str] = None
    finished_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def is_complete(self) -> bool:
        return bool(self.pr_id) and self.finished_at is not None


class SplitResult(BaseModel):
    success: bool = False
    jobs_created: int = 0
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "SplitResult":
        return cls(success=False, error=error)

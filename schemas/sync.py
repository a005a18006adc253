from __future__ import annotations

from pydantic import BaseModel, Field


class PendingAssessment(BaseModel):
    """A ticket whose content is new or changed and needs a fresh verdict."""

    ticket_id: str
    title: str
    description: str


class UpsertOutcome(BaseModel):
    added: int = 0
    updated: int = 0
    total: int = 0
    to_assess: list[PendingAssessment] = Field(default_factory=list)


class SyncResult(BaseModel):
    added: int = 0
    updated: int = 0
    total: int = 0


class SweepResult(BaseModel):
    total_added: int = 0
    total_updated: int = 0
    total_seen: int = 0
    projects_synced: int = 0
    failed_project_ids: list[str] = Field(default_factory=list)

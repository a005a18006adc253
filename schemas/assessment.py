from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AssessmentVerdict(BaseModel):
    """Accept/reject decision parsed out of a classifier completion."""

    rejected: bool
    reason: Optional[str] = None
    heuristic: bool = False  # True when the JSON parse failed and keywords decided


class AssessmentResult(BaseModel):
    """
    Outcome of assessing one ticket.

    Either `success` is True and `rejected`/`reason` carry the verdict, or
    `error` explains why no verdict was written.
    """

    success: bool = False
    rejected: Optional[bool] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "AssessmentResult":
        return cls(success=False, error=error)

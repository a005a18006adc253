from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


class Verdict(str, enum.Enum):
    UNSET = "unset"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    credentials = relationship(
        "Credentials",
        back_populates="project",
        uselist=False,
        cascade="all, delete-orphan",
    )
    tickets = relationship("Ticket", back_populates="project", cascade="all, delete-orphan")


class Credentials(Base):
    """External-system connection info, one row per project."""

    __tablename__ = "credentials"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    tracker_source_url = Column(String(1000), nullable=True)
    vcs_access_token = Column(String(500), nullable=True)
    repository_id = Column(String(200), nullable=True)

    project = relationship("Project", back_populates="credentials")


class Ticket(Base):
    """A unit of requested work imported from the external issue tracker."""

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("project_id", "external_id", name="uq_ticket_project_external"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_id = Column(String(100), nullable=False)
    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    # Verdict stays UNSET until the classifier has written one
    verdict = Column(SAEnum(Verdict), nullable=False, default=Verdict.UNSET)
    verdict_reason = Column(Text, nullable=True)

    # True only while job splitting is in flight
    creating_jobs = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="tickets")
    jobs = relationship(
        "Job",
        back_populates="ticket",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Job(Base):
    """An independently implementable slice of a ticket, produced by the splitter."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    ticket_id = Column(
        String(36),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    tasks = Column(Text, nullable=False)

    # Set together by the external actor once the job has been pushed
    pr_id = Column(String(200), nullable=True)
    finished_at = Column(DateTime, nullable=True)
    verified_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    ticket = relationship("Ticket", back_populates="jobs")

    @property
    def is_complete(self) -> bool:
        return bool(self.pr_id) and self.finished_at is not None


class CompletionCallLog(Base):
    """One record per completion API call (all attempts of one request)."""

    __tablename__ = "completion_call_logs"

    id = Column(String(36), primary_key=True)       # call_id (UUID)
    ticket_id = Column(String(36), nullable=True, index=True)
    agent_name = Column(String(100), nullable=False)

    # Request
    model_id = Column(String(200), nullable=False)
    prompt_name = Column(String(200), nullable=False)
    max_tokens = Column(Integer, nullable=True)
    temperature = Column(Float, nullable=True)

    # Outcome
    attempts = Column(Integer, nullable=False, default=1)
    succeeded = Column(Boolean, nullable=False)
    latency_ms = Column(Float, nullable=False)
    invoked_at = Column(DateTime, nullable=False)

    # Error
    error_type = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)

from __future__ import annotations

from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from config.settings import settings
from persistence.database import init_db
from persistence.repository import (
    JobNotFoundError,
    JobRepository,
    TicketNotFoundError,
    TicketRepository,
)
from scheduler.reconciler import Reconciler
from scheduler.ticket_sync import TicketSyncEngine
from schemas.job import JobView
from schemas.sync import SyncResult
from schemas.ticket import TicketView
from tracker.client import TrackerError

app = FastAPI(title="Ticketflow", version="1.0.0")
_tickets = TicketRepository()
_jobs = JobRepository()


class JobFinishedRequest(BaseModel):
    pr_id: str = Field(..., min_length=1)
    finished_at: Optional[datetime] = None


class JobUpdateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    tasks: str


@app.on_event("startup")
def startup():
    init_db()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/projects/{project_id}/sync", response_model=SyncResult)
def sync_project(project_id: str):
    """Pull the project's tracker tickets now and schedule assessments."""
    try:
        return TicketSyncEngine().sync_project(project_id)
    except TrackerError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@app.get("/projects/{project_id}/tickets", response_model=list[TicketView])
def list_project_tickets(project_id: str):
    return _tickets.list_project_tickets(project_id)


@app.get("/projects/{project_id}/jobs", response_model=list[JobView])
def list_project_jobs(project_id: str):
    return _jobs.list_jobs_for_project(project_id)


@app.get("/tickets/{ticket_id}/jobs", response_model=list[JobView])
def list_ticket_jobs(ticket_id: str):
    if _tickets.get_ticket(ticket_id) is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return _jobs.list_jobs_for_ticket(ticket_id)


@app.delete("/tickets/{ticket_id}")
def delete_ticket(ticket_id: str):
    """Delete a ticket together with its jobs."""
    try:
        jobs_deleted = _tickets.delete_ticket(ticket_id)
    except TicketNotFoundError:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return {"success": True, "jobs_deleted": jobs_deleted}


@app.post("/jobs/{job_id}/finish", response_model=JobView)
def finish_job(job_id: str, body: JobFinishedRequest):
    """Called once a job's change request has been pushed."""
    try:
        return Reconciler().on_job_finished(job_id, body.pr_id, body.finished_at)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@app.patch("/jobs/{job_id}", response_model=JobView)
def update_job(job_id: str, body: JobUpdateRequest):
    try:
        return _jobs.update_job(job_id, body.title, body.tasks)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


if __name__ == "__main__":
    uvicorn.run(
        "api.server:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=False,
    )

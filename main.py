"""
Ticketflow — Entry Point

Usage:
    # Run the daily tracker sweep on a schedule
    python main.py --mode scheduler

    # Serve the HTTP API (dispatched work runs on the background scheduler)
    python main.py --mode server

    # Sync one project now (assessments run inline)
    python main.py --mode sync --project <project-id>

    # Sync every project with a tracker source URL now
    python main.py --mode sync-all

    # Register a project and its tracker source URL
    python main.py --mode add-project --name "Web app" --source-url https://tracker.example/tickets
"""

from __future__ import annotations

import argparse
import os
import sys
import time


def _configure() -> None:
    from config.logging_config import configure_logging
    configure_logging()
    from persistence.database import init_db
    init_db()


def run_scheduler() -> None:
    _configure()
    from app_logging.activity_logger import ActivityLogger
    from scheduler.poller import start_scheduler, stop_scheduler

    logger = ActivityLogger("main")
    start_scheduler()

    logger.info("main_scheduler_running", pid=os.getpid())
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        stop_scheduler()
        logger.info("main_scheduler_stopped")


def run_server() -> None:
    import uvicorn
    from config.settings import settings
    _configure()
    from scheduler.poller import start_scheduler, stop_scheduler

    start_scheduler()
    try:
        uvicorn.run("api.server:app", host="0.0.0.0", port=settings.api_port, reload=False)
    finally:
        stop_scheduler()


def run_sync(project_id: str) -> None:
    _configure()
    from scheduler.ticket_sync import TicketSyncEngine

    result = TicketSyncEngine().sync_project(project_id)

    print("\n" + "=" * 60)
    print(f"  Project: {project_id}")
    print(f"  Added:   {result.added}")
    print(f"  Updated: {result.updated}")
    print(f"  Seen:    {result.total}")
    print("=" * 60 + "\n")


def run_sync_all() -> None:
    _configure()
    from scheduler.ticket_sync import TicketSyncEngine

    result = TicketSyncEngine().sync_all_projects()

    print("\n" + "=" * 60)
    print(f"  Projects synced: {result.projects_synced}")
    if result.failed_project_ids:
        print(f"  Projects failed: {', '.join(result.failed_project_ids)}")
    print(f"  Added:   {result.total_added}")
    print(f"  Updated: {result.total_updated}")
    print(f"  Seen:    {result.total_seen}")
    print("=" * 60 + "\n")


def add_project(name: str, source_url: str | None, description: str | None) -> None:
    _configure()
    from persistence.repository import ProjectRepository

    repo = ProjectRepository()
    project_id = repo.create_project(name=name, description=description)
    if source_url:
        repo.set_credentials(project_id, tracker_source_url=source_url)
    print(project_id)


def main() -> None:
    parser = argparse.ArgumentParser(description="Ticketflow: ticket assessment and job splitting")
    parser.add_argument(
        "--mode",
        choices=["scheduler", "server", "sync", "sync-all", "add-project"],
        default="scheduler",
        help="Run mode",
    )
    parser.add_argument("--project", help="Project ID (required for --mode sync)")
    parser.add_argument("--name", help="Project name (required for --mode add-project)")
    parser.add_argument("--description", help="Project description")
    parser.add_argument("--source-url", help="Issue-tracker source URL for the project")

    args = parser.parse_args()

    if args.mode == "scheduler":
        run_scheduler()
    elif args.mode == "server":
        run_server()
    elif args.mode == "sync":
        if not args.project:
            print("ERROR: --project is required with --mode sync", file=sys.stderr)
            sys.exit(1)
        run_sync(args.project)
    elif args.mode == "sync-all":
        run_sync_all()
    elif args.mode == "add-project":
        if not args.name:
            print("ERROR: --name is required with --mode add-project", file=sys.stderr)
            sys.exit(1)
        add_project(args.name, args.source_url, args.description)


if __name__ == "__main__":
    main()

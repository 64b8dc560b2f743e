"""Create the application and queue tables, optionally clearing finished jobs."""

from __future__ import annotations

import argparse

from config.settings import DATABASE_URL, QUEUE_NAME
from src.services.application_repository import ApplicationRepository
from src.services.job_queue import JobQueue


def migrate(database_url: str, queue_name: str = QUEUE_NAME, purge_finished: bool = False) -> dict:
    """Create both tables; returns the queue counts after migration."""
    ApplicationRepository(database_url=database_url).create_schema()
    queue = JobQueue(queue_name, database_url, auto_reconnect=False)
    queue.create_schema()
    if purge_finished:
        queue.purge_finished()
    counts = queue.get_job_counts()
    queue.close()
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description="Create database tables for applications and queued jobs.")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=DATABASE_URL,
        help="SQLAlchemy database URL (default: %(default)s)",
    )
    parser.add_argument(
        "--queue",
        dest="queue_name",
        default=QUEUE_NAME,
        help="Queue to report on (default: %(default)s)",
    )
    parser.add_argument(
        "--purge-finished",
        action="store_true",
        help="Delete completed and failed queue jobs",
    )
    args = parser.parse_args()
    counts = migrate(args.database_url, args.queue_name, args.purge_finished)
    print(f"Database migrated at {args.database_url}")
    print(f"Queue '{args.queue_name}': {counts}")


if __name__ == "__main__":
    main()

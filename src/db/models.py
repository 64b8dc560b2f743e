"""ORM models for application records and the job queue."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text

from src.db.base import Base, utcnow


class ApplicationModel(Base):
    """Persistent status of one user's application to one job."""

    __tablename__ = "applications"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    job_id = Column(String(128), nullable=False)
    status = Column(String(32), nullable=False, default="queued")
    # Set while queued or processing so the database allows one live record per pair.
    open_key = Column(String(320), nullable=True, unique=True)
    error_message = Column(Text, nullable=True)
    screenshot_url = Column(Text, nullable=True)
    confirmation_url = Column(Text, nullable=True)
    platform = Column(String(32), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    application_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_applications_user_job", "user_id", "job_id"),
    )


class QueueJobModel(Base):
    """A queued unit of work. Timestamps are epoch seconds."""

    __tablename__ = "queue_jobs"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(320), nullable=False, unique=True)
    queue_name = Column(String(128), nullable=False, index=True)
    payload_json = Column("payload", Text, nullable=False, default="{}")
    priority = Column(Integer, nullable=False, default=0)
    state = Column(String(16), nullable=False, default="waiting")
    attempts_made = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=1)
    backoff_ms = Column(Integer, nullable=False, default=0)
    available_at = Column(Float, nullable=False)
    lease_expires_at = Column(Float, nullable=True)
    worker_id = Column(String(128), nullable=True)
    failed_reason = Column(Text, nullable=True)
    result_json = Column("result", Text, nullable=True)
    created_at = Column(Float, nullable=False)
    finished_at = Column(Float, nullable=True)

    __table_args__ = (
        Index("idx_queue_jobs_ready", "queue_name", "state", "priority", "available_at"),
    )

"""Enqueue API: validates requests, creates records and queues jobs."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from config.settings import (
    APPLY_DELAY_MS,
    APPLY_PRIORITY,
    BULK_PRIORITY,
    BULK_STAGGER_MS,
    MAX_APPLICATIONS_PER_DAY,
)
from src.agents.state import ApplicationJob, CvSnapshot, JobPosting
from src.errors import (
    ApplyAgentError,
    DuplicateApplicationError,
    QueueUnavailableError,
    ValidationError,
)
from src.services.application_service import ApplicationService
from src.services.job_queue import LIVE_STATES, JobQueue

logger = logging.getLogger(__name__)


class DailyLimitExceededError(ApplyAgentError):
    """The user has used up today's application allowance."""

    def __init__(self, daily_limit: int, applied_today: int) -> None:
        super().__init__("Daily application limit reached")
        self.daily_limit = daily_limit
        self.applied_today = applied_today


class ApplyService:
    """Single and bulk apply, sharing one code path."""

    def __init__(
        self,
        applications: ApplicationService,
        queue: JobQueue,
        *,
        daily_limit: int = MAX_APPLICATIONS_PER_DAY,
    ) -> None:
        self.applications = applications
        self.queue = queue
        self.daily_limit = daily_limit

    def apply(
        self,
        user_id: str,
        job_id: str,
        cv_snapshot: Dict[str, Any],
        job_posting: Dict[str, Any],
        resume_asset_ref: str = "",
        *,
        delay_ms: int = APPLY_DELAY_MS,
        priority: int = APPLY_PRIORITY,
    ) -> Dict[str, Any]:
        """Queue one application.

        Raises:
            ValidationError: Bad payload; nothing is created.
            DuplicateApplicationError: The pair already has a live application.
            QueueUnavailableError: The record is created and marked failed.
        """
        user_id, job_id = _require_id(user_id, "user_id"), _require_id(job_id, "job_id")
        cv, job = _parse_payload(cv_snapshot, job_posting)
        if not isinstance(delay_ms, int) or delay_ms < 0:
            raise ValidationError("delay_ms must be a non-negative integer")
        if not isinstance(priority, int):
            raise ValidationError("priority must be an integer")

        idempotency_key = ApplicationJob.idempotency_key_for(user_id, job_id)
        if self.queue.is_available():
            pending = self.queue.get_job(idempotency_key)
            if pending is not None and pending["state"] in LIVE_STATES:
                raise DuplicateApplicationError(
                    "Application for this job is already in progress",
                    application_id=pending["data"].get("application_id"),
                    status=pending["state"],
                )

        record = self.applications.create_application(user_id, job_id)
        payload = ApplicationJob(
            application_id=record.id,
            user_id=user_id,
            job_id=job_id,
            cv_snapshot=cv,
            job_posting=job,
            resume_asset_ref=resume_asset_ref or "",
        )

        try:
            queue_job_id = self.queue.enqueue(
                payload.model_dump(mode="json"),
                delay_ms=delay_ms,
                priority=priority,
                job_id=idempotency_key,
            )
        except QueueUnavailableError as error:
            self.applications.mark_failed(record.id, "Queue system unavailable")
            error.application_id = record.id
            raise

        estimated_start = datetime.fromtimestamp(time.time() + delay_ms / 1000.0, tz=timezone.utc)
        logger.info(
            "Application queued: %s at %s (application %s)",
            job.title or job_id,
            job.company or "unknown company",
            record.id,
        )
        return {
            "application_id": record.id,
            "queue_job_id": queue_job_id,
            "status": record.status,
            "estimated_start": estimated_start.isoformat(),
        }

    def bulk_apply(
        self,
        user_id: str,
        cv_snapshot: Dict[str, Any],
        jobs: List[Dict[str, Any]],
        resume_asset_ref: str = "",
    ) -> Dict[str, Any]:
        """Queue several applications under the daily limit.

        Raises:
            ValidationError: Bad request shape.
            DailyLimitExceededError: Nothing left for today.
        """
        user_id = _require_id(user_id, "user_id")
        if not isinstance(jobs, list) or not jobs:
            raise ValidationError("jobs must be a non-empty list")

        applied_today = self.applications.count_today(user_id)
        remaining = max(0, self.daily_limit - applied_today)
        if remaining == 0:
            raise DailyLimitExceededError(self.daily_limit, applied_today)

        results: List[Dict[str, Any]] = []
        queued = 0
        for item in jobs[:remaining]:
            item = item if isinstance(item, dict) else {}
            job_id = item.get("job_id")
            try:
                outcome = self.apply(
                    user_id,
                    job_id,
                    cv_snapshot,
                    item.get("job_posting") or {},
                    resume_asset_ref,
                    delay_ms=APPLY_DELAY_MS + queued * BULK_STAGGER_MS,
                    priority=BULK_PRIORITY,
                )
            except ApplyAgentError as error:
                results.append({"job_id": job_id, "success": False, "error": str(error)})
                continue
            queued += 1
            results.append({"job_id": job_id, "success": True, **outcome})

        return {
            "applied": queued,
            "skipped": len(jobs) - queued,
            "daily_limit": self.daily_limit,
            "remaining": remaining - queued,
            "results": results,
        }


def _require_id(value: Optional[Any], name: str) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def _parse_payload(cv_snapshot: Any, job_posting: Any):
    if not isinstance(cv_snapshot, dict):
        raise ValidationError("cv_snapshot is required")
    if not isinstance(job_posting, dict):
        raise ValidationError("job_posting is required")
    try:
        cv = CvSnapshot.model_validate(cv_snapshot)
    except PydanticValidationError as error:
        raise ValidationError(f"Invalid cv_snapshot: {_summarize(error)}") from error
    try:
        job = JobPosting.model_validate(job_posting)
    except PydanticValidationError as error:
        raise ValidationError(f"Invalid job_posting: {_summarize(error)}") from error
    return cv, job


def _summarize(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'payload'}: {item['msg']}"
        for item in error.errors()
    )

"""Application record store: status transitions for (user, job) pairs."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, time as dt_time
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from src.agents.state import ApplicationResult, ApplicationStatus
from src.db.base import utcnow
from src.errors import DuplicateApplicationError
from src.services.application_repository import ApplicationRepository

logger = logging.getLogger(__name__)


@dataclass
class ApplicationRecord:
    """Current state of one application."""

    id: str
    user_id: str
    job_id: str
    status: str
    error_message: Optional[str] = None
    screenshot_url: Optional[str] = None
    confirmation_url: Optional[str] = None
    platform: Optional[str] = None
    retry_count: int = 0
    application_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return ApplicationStatus(self.status).is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "job_id": self.job_id,
            "status": self.status,
            "error_message": self.error_message,
            "screenshot_url": self.screenshot_url,
            "confirmation_url": self.confirmation_url,
            "platform": self.platform,
            "retry_count": self.retry_count,
            "application_date": _iso(self.application_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ApplicationService:
    """Owns every write to application records."""

    def __init__(self, repository: Optional[ApplicationRepository] = None) -> None:
        self._repository = repository or ApplicationRepository()

    def create_application(self, user_id: str, job_id: str) -> ApplicationRecord:
        """Create a queued record unless the pair already has a live or completed one.

        Raises:
            DuplicateApplicationError: If a queued/processing or completed
                application exists for the pair.
        """
        existing = self._repository.find_open(user_id, job_id)
        if existing is None:
            latest = self._repository.find_latest(user_id, job_id)
            if latest is not None and latest.status == ApplicationStatus.COMPLETED.value:
                existing = latest

        if existing is not None:
            raise DuplicateApplicationError(
                f"Already applied to this job. Status: {existing.status}",
                application_id=existing.id,
                status=existing.status,
            )

        try:
            record = self._repository.insert(uuid.uuid4().hex, user_id, job_id, ApplicationStatus.QUEUED.value)
        except IntegrityError as error:
            # A concurrent request created the live record first.
            existing = self._repository.find_open(user_id, job_id)
            raise DuplicateApplicationError(
                "Application for this job is already in progress",
                application_id=existing.id if existing else None,
                status=existing.status if existing else ApplicationStatus.QUEUED.value,
            ) from error
        logger.info("Application %s created for user %s, job %s", record.id, user_id, job_id)
        return record

    def mark_processing(self, application_id: str) -> Optional[ApplicationRecord]:
        return self._repository.update(
            application_id,
            status=ApplicationStatus.PROCESSING.value,
            error_message=None,
        )

    def mark_completed(self, application_id: str, result: ApplicationResult) -> Optional[ApplicationRecord]:
        return self._repository.update(
            application_id,
            status=ApplicationStatus.COMPLETED.value,
            error_message=None,
            confirmation_url=result.confirmation_url,
            screenshot_url=result.screenshot_path,
            platform=result.platform.value if result.platform else None,
            application_date=utcnow(),
        )

    def mark_failed(
        self,
        application_id: str,
        error_message: str,
        *,
        retry_count: Optional[int] = None,
        screenshot_url: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> Optional[ApplicationRecord]:
        fields: Dict[str, Any] = {
            "status": ApplicationStatus.FAILED.value,
            "error_message": error_message,
        }
        if retry_count is not None:
            fields["retry_count"] = retry_count
        if screenshot_url:
            fields["screenshot_url"] = screenshot_url
        if platform:
            fields["platform"] = platform
        return self._repository.update(application_id, **fields)

    def get(self, application_id: str) -> Optional[ApplicationRecord]:
        return self._repository.get(application_id)

    def list_for_user(self, user_id: str) -> List[ApplicationRecord]:
        return self._repository.list_for_user(user_id)

    def count_today(self, user_id: str) -> int:
        midnight = datetime.combine(utcnow().date(), dt_time.min)
        return self._repository.count_created_since(user_id, midnight)

    def ping(self) -> None:
        self._repository.ping()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

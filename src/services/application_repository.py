"""Database repository for application records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, TYPE_CHECKING

from sqlalchemy import func, select

from config.settings import DATABASE_URL
from src.agents.state import ApplicationJob
from src.db.base import Base, get_engine, get_session_factory, session_scope, utcnow
from src.db.models import ApplicationModel

if TYPE_CHECKING:  # pragma: no cover
    from src.services.application_service import ApplicationRecord

NON_TERMINAL_STATUSES = ("queued", "processing")


def open_key_for(user_id: str, job_id: str, status: str) -> Optional[str]:
    """Unique per pair while the record is live; NULL once it is terminal."""
    if status in NON_TERMINAL_STATUSES:
        return ApplicationJob.idempotency_key_for(user_id, job_id)
    return None


class ApplicationRepository:
    """Encapsulates persistence logic for application records."""

    def __init__(self, database_url: str = DATABASE_URL) -> None:
        self._engine = get_engine(database_url)
        self._session_factory = get_session_factory(database_url)

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self._engine, tables=[ApplicationModel.__table__])

    def ping(self) -> None:
        with self.session_scope() as session:
            session.execute(select(1))

    def session_scope(self):
        return session_scope(self._session_factory)

    def insert(self, application_id: str, user_id: str, job_id: str, status: str = "queued") -> "ApplicationRecord":
        """Add a record.

        Raises:
            IntegrityError: The pair already has a queued or processing record.
        """
        now = utcnow()
        with self.session_scope() as session:
            model = ApplicationModel(
                id=application_id,
                user_id=user_id,
                job_id=job_id,
                status=status,
                open_key=open_key_for(user_id, job_id, status),
                retry_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()
            return self._to_record(model)

    def update(self, application_id: str, **fields: Any) -> Optional["ApplicationRecord"]:
        with self.session_scope() as session:
            model = session.get(ApplicationModel, application_id)
            if model is None:
                return None
            for name, value in fields.items():
                setattr(model, name, value)
            if "status" in fields:
                model.open_key = open_key_for(model.user_id, model.job_id, model.status)
            model.updated_at = utcnow()
            session.add(model)
            session.flush()
            return self._to_record(model)

    def get(self, application_id: str) -> Optional["ApplicationRecord"]:
        with self.session_scope() as session:
            return self._to_record(session.get(ApplicationModel, application_id))

    def find_latest(self, user_id: str, job_id: str) -> Optional["ApplicationRecord"]:
        stmt = (
            select(ApplicationModel)
            .where(ApplicationModel.user_id == user_id, ApplicationModel.job_id == job_id)
            .order_by(ApplicationModel.created_at.desc())
            .limit(1)
        )
        with self.session_scope() as session:
            return self._to_record(session.scalars(stmt).first())

    def find_open(self, user_id: str, job_id: str) -> Optional["ApplicationRecord"]:
        """Latest queued or processing record for the pair, if any."""
        stmt = (
            select(ApplicationModel)
            .where(
                ApplicationModel.user_id == user_id,
                ApplicationModel.job_id == job_id,
                ApplicationModel.status.in_(NON_TERMINAL_STATUSES),
            )
            .order_by(ApplicationModel.created_at.desc())
            .limit(1)
        )
        with self.session_scope() as session:
            return self._to_record(session.scalars(stmt).first())

    def list_for_user(self, user_id: str) -> List["ApplicationRecord"]:
        stmt = (
            select(ApplicationModel)
            .where(ApplicationModel.user_id == user_id)
            .order_by(ApplicationModel.created_at.desc())
        )
        with self.session_scope() as session:
            return [self._to_record(model) for model in session.scalars(stmt).all()]

    def count_created_since(self, user_id: str, since: datetime) -> int:
        stmt = select(func.count()).select_from(ApplicationModel).where(
            ApplicationModel.user_id == user_id,
            ApplicationModel.created_at >= since,
        )
        with self.session_scope() as session:
            return int(session.scalar(stmt) or 0)

    @staticmethod
    def _to_record(model: Optional[ApplicationModel]) -> Optional["ApplicationRecord"]:
        if model is None:
            return None
        from src.services.application_service import ApplicationRecord

        return ApplicationRecord(
            id=model.id,
            user_id=model.user_id,
            job_id=model.job_id,
            status=model.status,
            error_message=model.error_message,
            screenshot_url=model.screenshot_url,
            confirmation_url=model.confirmation_url,
            platform=model.platform,
            retry_count=model.retry_count,
            application_date=model.application_date,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

"""Durable job queue backed by the relational database.

Jobs live in the ``queue_jobs`` table so the API process and any number of
worker processes share them without in-memory state. Ownership is a lease:
``reserve`` claims a ready job with a compare-and-set update and stamps a
lease expiry. ``complete`` and ``fail`` acknowledge it. A job whose lease
expires without an acknowledgement is taken back and redelivered, counting
the lost attempt.

Retry policy: a failed job goes back to waiting with exponential backoff
until ``max_attempts`` is reached, then stays in the bounded failed bucket.
Completed jobs are trimmed to the newest ``keep_completed``.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from config.settings import (
    DATABASE_URL,
    QUEUE_BACKOFF_MS,
    QUEUE_ERROR_LOG_WINDOW,
    QUEUE_KEEP_COMPLETED,
    QUEUE_KEEP_FAILED,
    QUEUE_LEASE_SECONDS,
    QUEUE_MAX_ATTEMPTS,
    QUEUE_NAME,
    QUEUE_RECONNECT_ATTEMPTS,
)
from src.db.base import Base, get_engine, get_session_factory, session_scope
from src.db.models import QueueJobModel
from src.errors import QueueUnavailableError

logger = logging.getLogger(__name__)

WAITING = "waiting"
ACTIVE = "active"
COMPLETED = "completed"
FAILED = "failed"

LIVE_STATES = (WAITING, ACTIVE)


class ThrottledErrorLog:
    """Surfaces at most one error log per window; the rest go to debug."""

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._last_logged: Optional[float] = None
        self.suppressed = 0

    def error(self, message: str, *args: Any) -> bool:
        now = self._clock()
        if self._last_logged is not None and now - self._last_logged < self.window_seconds:
            self.suppressed += 1
            logger.debug(message, *args)
            return False
        if self.suppressed:
            message = f"{message} ({self.suppressed} similar errors suppressed)"
        self._last_logged = now
        self.suppressed = 0
        logger.error(message, *args)
        return True


@dataclass
class QueuedJob:
    """A job reserved by a worker."""

    id: str
    data: Dict[str, Any]
    priority: int
    attempts_made: int
    max_attempts: int
    worker_id: Optional[str] = None
    lease_expires_at: Optional[float] = None
    state: str = ACTIVE
    failed_reason: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def attempt_number(self) -> int:
        """1-based number of the attempt in progress."""
        return self.attempts_made + 1


class JobQueue:
    """Priority queue with delay, retries, leases and retention."""

    def __init__(
        self,
        name: str = QUEUE_NAME,
        database_url: str = DATABASE_URL,
        *,
        max_attempts: int = QUEUE_MAX_ATTEMPTS,
        backoff_ms: int = QUEUE_BACKOFF_MS,
        keep_completed: int = QUEUE_KEEP_COMPLETED,
        keep_failed: int = QUEUE_KEEP_FAILED,
        lease_seconds: float = QUEUE_LEASE_SECONDS,
        reconnect_attempts: int = QUEUE_RECONNECT_ATTEMPTS,
        error_log_window: float = QUEUE_ERROR_LOG_WINDOW,
        auto_reconnect: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.database_url = database_url
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed
        self.lease_seconds = lease_seconds
        self.reconnect_attempts = reconnect_attempts
        self.auto_reconnect = auto_reconnect
        self._clock = clock
        self._engine = get_engine(database_url)
        self._session_factory = get_session_factory(database_url)
        self._available = True
        self._reconnect_lock = threading.Lock()
        self._reconnect_thread: Optional[threading.Thread] = None
        self._closed = threading.Event()
        self._expired: List[QueuedJob] = []
        self._expired_lock = threading.Lock()
        self.error_log = ThrottledErrorLog(error_log_window, clock=clock)

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self._engine, tables=[QueueJobModel.__table__])

    def session_scope(self):
        return session_scope(self._session_factory)

    # Producer side

    def enqueue(
        self,
        data: Dict[str, Any],
        *,
        delay_ms: int = 0,
        priority: int = 0,
        job_id: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> str:
        """Add a job and return its id.

        A job id that is still waiting or active is returned unchanged, so
        enqueueing is idempotent per key. A finished job with the same id is
        replaced.

        Raises:
            QueueUnavailableError: Immediately, when the broker is unreachable.
        """
        if not self._available:
            self._schedule_reconnect()
            raise QueueUnavailableError(f"Queue '{self.name}' is unavailable")

        now = self._clock()
        payload = json.dumps(data)
        try:
            with self.session_scope() as session:
                if job_id:
                    existing = session.scalars(
                        select(QueueJobModel).where(QueueJobModel.job_id == job_id)
                    ).first()
                    if existing is not None and existing.state in LIVE_STATES:
                        logger.info("Job %s already queued (%s); not adding again", job_id, existing.state)
                        return existing.job_id
                    if existing is not None:
                        session.delete(existing)
                        session.flush()

                model = QueueJobModel(
                    job_id=job_id or f"{self.name}:{uuid.uuid4().hex}",
                    queue_name=self.name,
                    payload_json=payload,
                    priority=priority,
                    state=WAITING,
                    attempts_made=0,
                    max_attempts=max_attempts or self.max_attempts,
                    backoff_ms=self.backoff_ms,
                    available_at=now + max(delay_ms, 0) / 1000.0,
                    created_at=now,
                )
                session.add(model)
                assigned_id = model.job_id
        except IntegrityError:
            # Another producer inserted the same id between our read and write.
            existing = self.get_job(job_id) if job_id else None
            if existing is None or existing["state"] not in LIVE_STATES:
                raise
            logger.info("Job %s was queued concurrently; not adding again", job_id)
            return existing["id"]
        except DBAPIError as error:
            self._mark_unavailable(error)
            raise QueueUnavailableError(f"Queue '{self.name}' is unavailable: {error.orig}") from error

        logger.info("Job %s queued (delay=%dms, priority=%d)", assigned_id, delay_ms, priority)
        return assigned_id

    # Consumer side

    def reserve(self, worker_id: str) -> Optional[QueuedJob]:
        """Claim the best ready job for ``worker_id``, or return None.

        Raises:
            QueueUnavailableError: When the broker cannot be reached.
        """
        try:
            job = self._reserve(worker_id)
        except DBAPIError as error:
            self._mark_unavailable(error)
            raise QueueUnavailableError(f"Queue '{self.name}' is unavailable: {error.orig}") from error
        if not self._available:
            logger.info("Queue '%s' connection restored", self.name)
            self._available = True
        return job

    def _reserve(self, worker_id: str) -> Optional[QueuedJob]:
        now = self._clock()
        with self.session_scope() as session:
            expired = self._recover_stalled(session, now)
            if expired:
                with self._expired_lock:
                    self._expired.extend(expired)

            candidates = session.scalars(
                select(QueueJobModel)
                .where(
                    QueueJobModel.queue_name == self.name,
                    QueueJobModel.state == WAITING,
                    QueueJobModel.available_at <= now,
                )
                .order_by(
                    QueueJobModel.priority.asc(),
                    QueueJobModel.available_at.asc(),
                    QueueJobModel.seq.asc(),
                )
                .limit(5)
            ).all()

            for candidate in candidates:
                lease_expires_at = now + self.lease_seconds
                claimed = session.execute(
                    update(QueueJobModel)
                    .where(QueueJobModel.seq == candidate.seq, QueueJobModel.state == WAITING)
                    .values(state=ACTIVE, worker_id=worker_id, lease_expires_at=lease_expires_at)
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount == 1:
                    logger.info("Job %s is now active on %s", candidate.job_id, worker_id)
                    return QueuedJob(
                        id=candidate.job_id,
                        data=json.loads(candidate.payload_json or "{}"),
                        priority=candidate.priority,
                        attempts_made=candidate.attempts_made,
                        max_attempts=candidate.max_attempts,
                        worker_id=worker_id,
                        lease_expires_at=lease_expires_at,
                    )
        return None

    def extend_lease(self, job: QueuedJob) -> bool:
        """Push the lease forward; False means another worker owns the job now."""
        lease_expires_at = self._clock() + self.lease_seconds
        with self.session_scope() as session:
            extended = session.execute(
                self._owned(update(QueueJobModel), job)
                .values(lease_expires_at=lease_expires_at)
                .execution_options(synchronize_session=False)
            )
        if extended.rowcount == 1:
            job.lease_expires_at = lease_expires_at
            return True
        return False

    def complete(self, job: QueuedJob, result: Optional[Dict[str, Any]] = None) -> bool:
        """Acknowledge success."""
        now = self._clock()
        with self.session_scope() as session:
            acked = session.execute(
                self._owned(update(QueueJobModel), job)
                .values(
                    state=COMPLETED,
                    attempts_made=job.attempts_made + 1,
                    result_json=json.dumps(result or {}),
                    finished_at=now,
                    lease_expires_at=None,
                )
                .execution_options(synchronize_session=False)
            )
            if acked.rowcount != 1:
                logger.warning("Job %s completed after its lease was lost; ignoring", job.id)
                return False
            self._trim(session, COMPLETED, self.keep_completed)
        job.state = COMPLETED
        logger.info("Job %s completed successfully", job.id)
        return True

    def fail(self, job: QueuedJob, reason: str) -> str:
        """Record a failed attempt; returns the job's new state."""
        now = self._clock()
        attempts_made = job.attempts_made + 1
        exhausted = attempts_made >= job.max_attempts
        values: Dict[str, Any] = {
            "attempts_made": attempts_made,
            "failed_reason": reason,
            "worker_id": None,
            "lease_expires_at": None,
        }
        if exhausted:
            values.update(state=FAILED, finished_at=now)
        else:
            values.update(state=WAITING, available_at=now + self.backoff_delay(attempts_made))

        with self.session_scope() as session:
            acked = session.execute(
                self._owned(update(QueueJobModel), job)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if acked.rowcount != 1:
                logger.warning("Job %s failed after its lease was lost; ignoring", job.id)
                return job.state
            if exhausted:
                self._trim(session, FAILED, self.keep_failed)

        job.attempts_made = attempts_made
        job.failed_reason = reason
        job.state = FAILED if exhausted else WAITING
        if exhausted:
            logger.error("Job %s permanently failed after %d attempts: %s", job.id, attempts_made, reason)
        else:
            logger.warning(
                "Job %s failed (attempt %d/%d), retrying in %.0fs: %s",
                job.id,
                attempts_made,
                job.max_attempts,
                self.backoff_delay(attempts_made),
                reason,
            )
        return job.state

    def take_expired(self) -> List[QueuedJob]:
        """Hand over jobs that permanently failed because their lease expired.

        Each job is returned once, to whichever caller asks first.
        """
        with self._expired_lock:
            expired, self._expired = self._expired, []
        return expired

    def backoff_delay(self, attempts_made: int) -> float:
        """Seconds to wait before the next attempt."""
        return (self.backoff_ms / 1000.0) * (2 ** max(attempts_made - 1, 0))

    # Inspection

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self.session_scope() as session:
                model = session.scalars(select(QueueJobModel).where(QueueJobModel.job_id == job_id)).first()
        except DBAPIError as error:
            self._mark_unavailable(error)
            raise QueueUnavailableError(f"Queue '{self.name}' is unavailable: {error.orig}") from error
        if model is None:
            return None
        return {
            "id": model.job_id,
            "state": model.state,
            "priority": model.priority,
            "attempts_made": model.attempts_made,
            "max_attempts": model.max_attempts,
            "available_at": model.available_at,
            "failed_reason": model.failed_reason,
            "data": json.loads(model.payload_json or "{}"),
        }

    def get_job_counts(self) -> Dict[str, int]:
        now = self._clock()
        counts = {"waiting": 0, "delayed": 0, "active": 0, "completed": 0, "failed": 0}
        with self.session_scope() as session:
            rows = session.execute(
                select(QueueJobModel.state, func.count())
                .where(QueueJobModel.queue_name == self.name)
                .group_by(QueueJobModel.state)
            ).all()
            delayed = session.scalar(
                select(func.count())
                .select_from(QueueJobModel)
                .where(
                    QueueJobModel.queue_name == self.name,
                    QueueJobModel.state == WAITING,
                    QueueJobModel.available_at > now,
                )
            )
        for state, count in rows:
            if state in counts:
                counts[state] = count
        counts["delayed"] = int(delayed or 0)
        counts["waiting"] -= counts["delayed"]
        return counts

    def purge_finished(self) -> int:
        """Delete every completed and failed job; returns how many went."""
        with self.session_scope() as session:
            purged = session.execute(
                delete(QueueJobModel)
                .where(
                    QueueJobModel.queue_name == self.name,
                    QueueJobModel.state.in_((COMPLETED, FAILED)),
                )
                .execution_options(synchronize_session=False)
            )
        logger.info("Purged %d finished jobs from '%s'", purged.rowcount, self.name)
        return purged.rowcount

    # Availability

    def is_available(self) -> bool:
        return self._available

    def ping(self) -> bool:
        try:
            with self.session_scope() as session:
                session.execute(text("SELECT 1"))
        except DBAPIError as error:
            self._mark_unavailable(error)
            return False
        if not self._available:
            logger.info("Queue '%s' connection restored", self.name)
        self._available = True
        return True

    def reconnect(self, sleep: Callable[[float], None] = time.sleep) -> bool:
        """Probe the broker with bounded backoff (1s, 2s, 3s...)."""
        for attempt in range(1, self.reconnect_attempts + 1):
            if self._closed.is_set():
                return False
            if self.ping():
                return True
            if attempt < self.reconnect_attempts:
                sleep(min(attempt * 1.0, 3.0))
        self.error_log.error(
            "Queue '%s' still unavailable after %d reconnection attempts",
            self.name,
            self.reconnect_attempts,
        )
        return False

    def close(self) -> None:
        self._closed.set()
        thread = self._reconnect_thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=5)
        self._session_factory.remove()
        logger.info("Queue '%s' closed", self.name)

    # Internals

    def _owned(self, statement, job: QueuedJob):
        return statement.where(
            QueueJobModel.job_id == job.id,
            QueueJobModel.state == ACTIVE,
            QueueJobModel.worker_id == job.worker_id,
        )

    def _recover_stalled(self, session: Session, now: float) -> List[QueuedJob]:
        """Take back expired leases; returns the jobs that ran out of attempts."""
        stalled = session.scalars(
            select(QueueJobModel).where(
                QueueJobModel.queue_name == self.name,
                QueueJobModel.state == ACTIVE,
                QueueJobModel.lease_expires_at <= now,
            )
        ).all()
        exhausted_jobs: List[QueuedJob] = []
        for model in stalled:
            attempts_made = model.attempts_made + 1
            exhausted = attempts_made >= model.max_attempts
            recovered = session.execute(
                update(QueueJobModel)
                .where(
                    QueueJobModel.seq == model.seq,
                    QueueJobModel.state == ACTIVE,
                    QueueJobModel.lease_expires_at <= now,
                )
                .values(
                    state=FAILED if exhausted else WAITING,
                    attempts_made=attempts_made,
                    available_at=now,
                    worker_id=None,
                    lease_expires_at=None,
                    failed_reason=f"Lease held by {model.worker_id} expired",
                    finished_at=now if exhausted else None,
                )
                .execution_options(synchronize_session=False)
            )
            if recovered.rowcount != 1:
                continue
            logger.warning(
                "Job %s stalled on %s; %s",
                model.job_id,
                model.worker_id,
                "moved to failed" if exhausted else "redelivering",
            )
            if exhausted:
                exhausted_jobs.append(QueuedJob(
                    id=model.job_id,
                    data=json.loads(model.payload_json or "{}"),
                    priority=model.priority,
                    attempts_made=attempts_made,
                    max_attempts=model.max_attempts,
                    state=FAILED,
                    failed_reason=f"Lease held by {model.worker_id} expired",
                ))
        return exhausted_jobs

    def _trim(self, session: Session, state: str, keep: int) -> None:
        keep_seqs = (
            select(QueueJobModel.seq)
            .where(QueueJobModel.queue_name == self.name, QueueJobModel.state == state)
            .order_by(QueueJobModel.finished_at.desc(), QueueJobModel.seq.desc())
            .limit(keep)
        )
        statement = delete(QueueJobModel).where(
            QueueJobModel.queue_name == self.name,
            QueueJobModel.state == state,
        )
        if keep > 0:
            statement = statement.where(QueueJobModel.seq.not_in(keep_seqs))
        session.execute(statement.execution_options(synchronize_session=False))

    def _mark_unavailable(self, error: BaseException) -> None:
        self._available = False
        self.error_log.error("Queue '%s' broker error: %s", self.name, error)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if not self.auto_reconnect or self._closed.is_set():
            return
        with self._reconnect_lock:
            if self._reconnect_thread is not None and self._reconnect_thread.is_alive():
                return
            self._reconnect_thread = threading.Thread(
                target=self.reconnect, name=f"{self.name}-reconnect", daemon=True
            )
            self._reconnect_thread.start()

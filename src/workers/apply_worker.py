"""Worker process: drains the job queue through the orchestrator."""

import logging
import os
import signal
import socket
import threading
import time
from typing import Callable, Optional

import mlflow
from pydantic import ValidationError as PydanticValidationError

from config.settings import (
    MLFLOW_EXPERIMENT,
    MLFLOW_TRACING_ENABLED,
    QUEUE_POLL_INTERVAL,
    QUEUE_STATS_INTERVAL,
)
from src.agents.state import ApplicationJob, ApplicationResult
from src.errors import AutomationError, QueueUnavailableError
from src.graph.workflow import ApplicationOrchestrator
from src.services.application_service import ApplicationService
from src.services.job_queue import FAILED, JobQueue, QueuedJob
from src.services.notification_service import NotificationService
from src.services.resume_assets import resolve_resume

logger = logging.getLogger(__name__)


class ApplyWorker:
    """Single consumer; run several processes to scale out.

    The worker owns the browser session and hands it to the orchestrator for
    every attempt. Outcomes flow back as explicit queue acknowledgements:
    ``complete`` on success, ``fail`` otherwise, which lets the queue decide
    whether to retry.
    """

    def __init__(
        self,
        queue: JobQueue,
        applications: ApplicationService,
        orchestrator: ApplicationOrchestrator,
        browser,
        *,
        notifications: Optional[NotificationService] = None,
        worker_id: Optional[str] = None,
        poll_interval: float = QUEUE_POLL_INTERVAL,
        stats_interval: float = QUEUE_STATS_INTERVAL,
        tracing: bool = MLFLOW_TRACING_ENABLED,
        resume_resolver: Callable[[str], str] = resolve_resume,
    ) -> None:
        self.queue = queue
        self.applications = applications
        self.orchestrator = orchestrator
        self.browser = browser
        self.notifications = notifications or NotificationService()
        self.worker_id = worker_id or f"{socket.gethostname()}-{os.getpid()}"
        self.poll_interval = poll_interval
        self.stats_interval = stats_interval
        self.tracing = tracing
        self.resume_resolver = resume_resolver
        self._stop = threading.Event()
        self._last_stats = 0.0

    # Lifecycle

    def run(self) -> None:
        """Process jobs until stopped, then release the browser and queue."""
        self._install_signal_handlers()
        logger.info("Worker %s waiting for jobs on '%s'", self.worker_id, self.queue.name)
        try:
            while not self._stop.is_set():
                try:
                    worked = self.run_once()
                except QueueUnavailableError as error:
                    self.queue.error_log.error("Worker cannot reach queue: %s", error)
                    self._stop.wait(max(self.poll_interval, 1.0) * 5)
                    continue
                self._log_stats()
                if not worked:
                    self._stop.wait(self.poll_interval)
        finally:
            self.shutdown()

    def stop(self, *_args) -> None:
        if not self._stop.is_set():
            logger.info("Worker %s stopping after the current job", self.worker_id)
        self._stop.set()

    def shutdown(self) -> None:
        try:
            self.browser.close()
        finally:
            self.queue.close()
        logger.info("Worker %s shut down", self.worker_id)

    def run_once(self) -> bool:
        """Reserve and process one job; False when nothing was ready."""
        job = self.queue.reserve(self.worker_id)
        self._fail_expired(self.queue.take_expired())
        if job is None:
            return False

        heartbeat_stop = threading.Event()
        heartbeat = threading.Thread(
            target=self._heartbeat, args=(job, heartbeat_stop), name=f"lease-{job.id}", daemon=True
        )
        heartbeat.start()
        try:
            self.process(job)
        finally:
            heartbeat_stop.set()
            heartbeat.join(timeout=5)
        return True

    # Job handling

    def process(self, job: QueuedJob) -> str:
        """Run one attempt and acknowledge it; returns the job's new state."""
        logger.info("Processing job %s (attempt %d/%d)", job.id, job.attempt_number, job.max_attempts)
        try:
            payload = ApplicationJob.model_validate(job.data)
        except PydanticValidationError as error:
            logger.error("Job %s has an invalid payload: %s", job.id, error)
            state = self.queue.fail(job, f"Invalid payload: {error}")
            application_id = job.data.get("application_id") if isinstance(job.data, dict) else None
            if application_id:
                self._persist(
                    self.applications.mark_failed,
                    str(application_id),
                    "Invalid job payload",
                    retry_count=job.attempt_number,
                )
            return state

        try:
            result = self._execute(job, payload)
        except Exception as error:
            return self._handle_failure(job, payload, error)

        self._persist(self.applications.mark_completed, payload.application_id, result)
        self.notifications.application_completed(
            payload.user_id,
            payload.job_posting.title,
            payload.job_posting.company,
            result.confirmation_url,
        )
        self.queue.complete(job, result.model_dump(mode="json"))
        return "completed"

    def _execute(self, job: QueuedJob, payload: ApplicationJob) -> ApplicationResult:
        # Mark processing before automation starts so a crash is visible.
        self._persist(self.applications.mark_processing, payload.application_id)
        self.notifications.application_started(
            payload.user_id, payload.job_posting.title, payload.job_posting.company
        )

        resume_path = self.resume_resolver(payload.resume_asset_ref)
        result = self._run_attempt(payload, resume_path)
        if not result.success:
            error = AutomationError(result.error or "Application failed")
            error.result = result
            raise error
        return result

    def _run_attempt(self, payload: ApplicationJob, resume_path: str) -> ApplicationResult:
        if not self.tracing:
            return self._apply(payload, resume_path)

        mlflow.set_experiment(MLFLOW_EXPERIMENT)
        with mlflow.start_run(run_name=f"apply_{payload.job_posting.company or payload.job_id}"):
            with mlflow.start_span(name="application_attempt") as span:
                span.set_inputs({
                    "application_id": payload.application_id,
                    "job_url": payload.job_posting.application_url,
                    "company": payload.job_posting.company or "unknown",
                })
                result = self._apply(payload, resume_path)
                span.set_outputs({
                    "success": result.success,
                    "platform": result.platform.value if result.platform else None,
                    "fields_processed": result.fields_processed,
                    "error": result.error,
                })
        return result

    def _apply(self, payload: ApplicationJob, resume_path: str) -> ApplicationResult:
        return self.orchestrator.apply(
            self.browser,
            cv=payload.cv_snapshot,
            job=payload.job_posting,
            resume_path=resume_path,
            application_id=payload.application_id,
        )

    def _fail_expired(self, jobs) -> None:
        # Jobs whose owner died on their last attempt never reach _handle_failure.
        for job in jobs:
            application_id = job.data.get("application_id")
            if not application_id:
                continue
            logger.error("Application %s failed: lease expired on final attempt", application_id)
            self._persist(
                self.applications.mark_failed,
                str(application_id),
                "Lease expired",
                retry_count=job.max_attempts,
            )

    def _handle_failure(self, job: QueuedJob, payload: ApplicationJob, error: Exception) -> str:
        message = str(error) or error.__class__.__name__
        logger.error("Application %s failed: %s", payload.application_id, message)
        result: Optional[ApplicationResult] = getattr(error, "result", None)

        self._persist(
            self.applications.mark_failed,
            payload.application_id,
            message,
            retry_count=job.attempt_number,
            screenshot_url=result.screenshot_path if result else None,
            platform=result.platform.value if result and result.platform else None,
        )
        state = self.queue.fail(job, message)
        self.notifications.application_failed(
            payload.user_id,
            payload.job_posting.title,
            payload.job_posting.company,
            message,
            final=state == FAILED,
        )
        return state

    def _persist(self, operation, *args, **kwargs) -> None:
        """Write to the record store; errors are logged and never block the queue."""
        try:
            operation(*args, **kwargs)
        except Exception as error:
            logger.error("Could not persist application status (%s): %s", operation.__name__, error)

    def _heartbeat(self, job: QueuedJob, stop: threading.Event) -> None:
        interval = max(self.queue.lease_seconds / 3.0, 1.0)
        while not stop.wait(interval):
            try:
                if not self.queue.extend_lease(job):
                    logger.warning("Lost lease on job %s", job.id)
                    return
            except Exception as error:
                logger.warning("Lease renewal for job %s failed: %s", job.id, error)

    def _log_stats(self) -> None:
        now = time.monotonic()
        if now - self._last_stats < self.stats_interval:
            return
        self._last_stats = now
        try:
            counts = self.queue.get_job_counts()
        except Exception as error:
            logger.error("Error getting queue counts: %s", error)
            return
        if counts["waiting"] or counts["active"] or counts["delayed"]:
            logger.info("Queue status: %s", counts)

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGINT, self.stop)
        signal.signal(signal.SIGTERM, self.stop)


def build_worker() -> ApplyWorker:
    """Wire a worker from settings: queue, record store, AI and browser."""
    from config.settings import LOG_LEVEL
    from src.adapters import build_adapters
    from src.agents.field_mapper import FieldMapper
    from src.services.ai_provider import AIProvider
    from src.services.application_repository import ApplicationRepository
    from src.services.browser_service import BrowserSession

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    repository = ApplicationRepository()
    repository.create_schema()
    queue = JobQueue()
    queue.create_schema()

    field_mapper = FieldMapper(AIProvider.from_settings())
    orchestrator = ApplicationOrchestrator(field_mapper, build_adapters(field_mapper))
    return ApplyWorker(
        queue,
        ApplicationService(repository),
        orchestrator,
        BrowserSession().start(),
    )

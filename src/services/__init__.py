"""Services module exports."""

from .ai_provider import AIProvider
from .application_service import ApplicationRecord, ApplicationService
from .apply_service import ApplyService
from .job_queue import JobQueue
from .notification_service import NotificationService

__all__ = [
    "AIProvider",
    "ApplicationRecord",
    "ApplicationService",
    "ApplyService",
    "JobQueue",
    "NotificationService",
]

"""Agent module exports."""

from .state import (
    ApplicationJob,
    ApplicationResult,
    ApplicationStatus,
    ApplyState,
    CvSnapshot,
    FormField,
    JobPosting,
    Platform,
)

__all__ = [
    "ApplicationJob",
    "ApplicationResult",
    "ApplicationStatus",
    "ApplyState",
    "CvSnapshot",
    "FormField",
    "JobPosting",
    "Platform",
]

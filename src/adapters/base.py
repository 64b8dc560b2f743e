"""Common behaviour for platform adapters."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from src.agents.field_mapper import FieldMapper
from src.agents.state import ApplicationResult, CvSnapshot, JobPosting, Platform
from src.errors import AIProviderError, AutomationError, PartialFieldError

MAX_ANSWER_CHARS = 3000


class PlatformAdapter(ABC):
    """Fills an application form for one platform."""

    platform: Platform

    def __init__(self, field_mapper: Optional[FieldMapper] = None) -> None:
        self.field_mapper = field_mapper
        self.logger = logging.getLogger(self.__class__.__module__)

    @abstractmethod
    def fill(
        self,
        page,
        cv: CvSnapshot,
        resume_path: str,
        job: Optional[JobPosting] = None,
    ) -> ApplicationResult:
        """Fill the form on ``page``; never submits payment or login data."""

    def fill_required(self, page, selector: str, value: str, name: str) -> None:
        """Fill a core field; a missing element or a failed fill ends the attempt.

        An empty value is written as-is, e.g. the last name of a single-word name.
        """
        if not page.exists(selector):
            raise AutomationError(f"Required field '{name}' not found ({selector})")
        page.fill(selector, value or "")

    def fill_optional(self, page, selector: str, value: str) -> bool:
        try:
            if not value or not page.exists(selector):
                return False
            page.fill(selector, value)
            return True
        except AutomationError as error:
            self.logger.warning("Skipping optional field: %s", PartialFieldError(selector, str(error)))
            return False

    def upload_resume(self, page, selector: str, resume_path: str) -> bool:
        try:
            if not resume_path or not page.exists(selector):
                return False
            page.upload_file(selector, resume_path)
            page.wait(2000)
            return True
        except AutomationError as error:
            self.logger.warning("Resume upload skipped: %s", PartialFieldError(selector, str(error)))
            return False

    def answer_open_questions(self, page, cv: CvSnapshot, job: Optional[JobPosting]) -> int:
        """Answer every labelled, empty textarea with a generated answer."""
        if self.field_mapper is None:
            return 0

        answered = 0
        for textarea in page.describe_textareas():
            label = (textarea.get("label") or "").strip()
            selector = textarea.get("selector")
            if not label or not selector or textarea.get("value"):
                continue
            try:
                answer = self.field_mapper.generate_answer(label, cv, job.description if job else "")
            except AIProviderError as error:
                self.logger.warning("No answer generated for '%s': %s", label[:60], error)
                continue
            if answer and self.fill_optional(page, selector, answer[:MAX_ANSWER_CHARS]):
                answered += 1
        return answered

    def failed(self, error: BaseException) -> ApplicationResult:
        self.logger.error("%s form fill failed: %s", self.platform.value, error)
        return ApplicationResult.failure(str(error), platform=self.platform)

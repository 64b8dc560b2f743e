"""Greenhouse hosted application forms."""

from typing import Optional

from src.adapters.base import PlatformAdapter
from src.agents.state import ApplicationResult, CvSnapshot, JobPosting, Platform
from src.errors import AutomationError


class GreenhouseAdapter(PlatformAdapter):
    platform = Platform.GREENHOUSE

    def fill(
        self,
        page,
        cv: CvSnapshot,
        resume_path: str,
        job: Optional[JobPosting] = None,
    ) -> ApplicationResult:
        try:
            self.fill_required(page, "#first_name", cv.first_name, "first name")
            self.fill_required(page, "#last_name", cv.last_name, "last name")
            self.fill_required(page, "#email", cv.email, "email")
        except AutomationError as error:
            return self.failed(error)

        processed = 3
        processed += self.fill_optional(page, "#phone", cv.phone)
        processed += self.upload_resume(page, 'input[type="file"]', resume_path)
        processed += self.answer_open_questions(page, cv, job)

        return ApplicationResult(
            success=True,
            message="Greenhouse form filled successfully",
            confirmation_url=page.current_url(),
            platform=self.platform,
            fields_processed=processed,
        )

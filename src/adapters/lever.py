"""Lever hosted application forms."""

from typing import Optional

from src.adapters.base import PlatformAdapter
from src.agents.state import ApplicationResult, CvSnapshot, JobPosting, Platform
from src.errors import AutomationError

APPLY_LINK = 'a.postings-btn, a:has-text("Apply for this job")'


class LeverAdapter(PlatformAdapter):
    platform = Platform.LEVER

    def fill(
        self,
        page,
        cv: CvSnapshot,
        resume_path: str,
        job: Optional[JobPosting] = None,
    ) -> ApplicationResult:
        try:
            # Posting pages link to the form; the form page itself has no such link.
            if not page.exists('input[name="name"]') and page.exists(APPLY_LINK):
                page.click(APPLY_LINK)
                page.wait(2000)

            self.fill_required(page, 'input[name="name"]', cv.full_name, "name")
            self.fill_required(page, 'input[name="email"]', cv.email, "email")
        except AutomationError as error:
            return self.failed(error)

        processed = 2
        processed += self.fill_optional(page, 'input[name="phone"]', cv.phone)
        processed += self.upload_resume(page, 'input[type="file"][name="resume"]', resume_path)
        processed += self.answer_open_questions(page, cv, job)

        return ApplicationResult(
            success=True,
            message="Lever form filled successfully",
            confirmation_url=page.current_url(),
            platform=self.platform,
            fields_processed=processed,
        )

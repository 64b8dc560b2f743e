"""Workday career sites.

Workday applications span several pages behind an account wall. Only the
entry step is automated; the rest is left to the candidate, which is
reported as a successful start rather than a failure.
"""

from typing import Optional

from src.adapters.base import PlatformAdapter
from src.agents.state import ApplicationResult, CvSnapshot, JobPosting, Platform
from src.errors import AutomationError

APPLY_BUTTON = (
    'a[data-automation-id="jobPostingApplyButton"], '
    'button[data-automation-id="jobPostingApplyButton"], '
    'button:has-text("Apply")'
)


class WorkdayAdapter(PlatformAdapter):
    platform = Platform.WORKDAY

    def fill(
        self,
        page,
        cv: CvSnapshot,
        resume_path: str,
        job: Optional[JobPosting] = None,
    ) -> ApplicationResult:
        try:
            page.click(APPLY_BUTTON)
            page.wait(2000)
        except AutomationError as error:
            return self.failed(error)

        processed = 0
        processed += self.fill_optional(page, 'input[data-automation-id*="firstName"]', cv.first_name)
        processed += self.fill_optional(page, 'input[data-automation-id*="lastName"]', cv.last_name)

        return ApplicationResult(
            success=True,
            message="Workday application started (requires manual completion)",
            confirmation_url=page.current_url(),
            platform=self.platform,
            fields_processed=processed,
        )

"""LinkedIn job pages (external network)."""

from typing import Optional

from src.adapters.base import PlatformAdapter
from src.agents.state import ApplicationResult, CvSnapshot, JobPosting, Platform


class LinkedInAdapter(PlatformAdapter):
    """Easy Apply needs the candidate's own session, so nothing is filled."""

    platform = Platform.LINKEDIN

    def fill(
        self,
        page,
        cv: CvSnapshot,
        resume_path: str,
        job: Optional[JobPosting] = None,
    ) -> ApplicationResult:
        return ApplicationResult.failure(
            "LinkedIn Easy Apply requires manual authentication",
            platform=self.platform,
            confirmation_url=page.current_url(),
        )

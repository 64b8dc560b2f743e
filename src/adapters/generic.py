"""Generic form handler for pages that match no known template.

The rendered HTML goes to the AI field mapper, which answers with a list of
fields and their purpose. Each field is then filled independently: a field
that fails is logged and skipped, and only lowers ``fields_processed``.
Reaching the end counts as success because the screenshot lets a person
finish whatever the automation could not.
"""

from typing import Callable, Dict, Optional

from src.adapters.base import MAX_ANSWER_CHARS, PlatformAdapter
from src.agents.state import ApplicationResult, CvSnapshot, FormField, JobPosting, Platform
from src.errors import AIProviderError, ApplyAgentError, PartialFieldError


class GenericFormHandler(PlatformAdapter):
    platform = Platform.GENERIC

    def fill(
        self,
        page,
        cv: CvSnapshot,
        resume_path: str,
        job: Optional[JobPosting] = None,
    ) -> ApplicationResult:
        if self.field_mapper is None:
            return self.failed(AIProviderError("Generic forms need an AI field mapper"))

        try:
            fields = self.field_mapper.analyze_form(page.read_html())
        except AIProviderError as error:
            return self.failed(error)

        handlers: Dict[str, Callable[[FormField], bool]] = {
            "firstName": lambda field: self._fill_value(page, field, cv.first_name),
            "lastName": lambda field: self._fill_value(page, field, cv.last_name),
            "email": lambda field: self._fill_value(page, field, cv.email),
            "phone": lambda field: self._fill_value(page, field, cv.phone),
            "resume": lambda field: self._upload(page, field, resume_path),
            "coverLetter": lambda field: self._fill_value(
                page, field, self.field_mapper.generate_cover_letter(cv, job)
            ),
            "customQuestion": lambda field: self._fill_value(
                page,
                field,
                self.field_mapper.generate_answer(field.label, cv, job.description if job else ""),
            ),
        }

        processed = 0
        for field in fields:
            handler = handlers.get(field.purpose)
            if handler is None:
                continue
            try:
                if not page.exists(field.selector):
                    self.logger.debug("Selector %s not on page; skipping", field.selector)
                    continue
                if handler(field):
                    processed += 1
            except ApplyAgentError as error:
                self.logger.warning(
                    "Could not fill field: %s", PartialFieldError(field.selector, str(error))
                )

        self.logger.info("Generic form: %d/%d fields processed", processed, len(fields))
        return ApplicationResult(
            success=True,
            message="Generic form filled successfully",
            confirmation_url=page.current_url(),
            platform=self.platform,
            fields_processed=processed,
        )

    @staticmethod
    def _fill_value(page, field: FormField, value: str) -> bool:
        if not value:
            return False
        page.fill(field.selector, value[:MAX_ANSWER_CHARS] if field.type == "textarea" else value)
        return True

    @staticmethod
    def _upload(page, field: FormField, resume_path: str) -> bool:
        if field.type != "file" or not resume_path:
            return False
        page.upload_file(field.selector, resume_path)
        return True

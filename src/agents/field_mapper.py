"""AI field mapper and answer generator."""

import json
import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup, Comment
from langchain_core.output_parsers import JsonOutputParser
from pydantic import ValidationError as PydanticValidationError

from src.agents.state import CvSnapshot, FormField, JobPosting
from src.errors import AIProviderError
from src.prompts.prompt_templates import (
    COVER_LETTER_PROMPT,
    FORM_ANALYZER_PROMPT,
    QUESTION_ANSWER_PROMPT,
)
from src.services.ai_provider import AIProvider

logger = logging.getLogger(__name__)

MAX_FORM_HTML_CHARS = 60_000

NOISE_TAGS = ["script", "style", "svg", "noscript"]


def compact_html(html: str, limit: int = MAX_FORM_HTML_CHARS) -> str:
    """Drop markup that never holds form fields and cap the prompt size."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    cleaned = re.sub(r"\s+", " ", str(soup))
    return cleaned[:limit]


class FieldMapper:
    """Interprets unknown forms and writes free-text answers with the AI provider."""

    def __init__(self, provider: AIProvider) -> None:
        self.provider = provider
        self._parser = JsonOutputParser()

    def analyze_form(self, form_html: str) -> List[FormField]:
        """Return the structured field list for a rendered form.

        Raises:
            AIProviderError: If the provider fails or returns unusable output.
        """
        prompt = FORM_ANALYZER_PROMPT.format(form_html=compact_html(form_html))
        response = self.provider.generate(prompt)

        try:
            parsed = self._parser.parse(response)
        except Exception as error:
            logger.error("Field mapper returned non-JSON output: %s", response[:200])
            raise AIProviderError(f"Could not parse form analysis: {error}") from error

        if isinstance(parsed, dict):
            parsed = parsed.get("fields", [])
        if not isinstance(parsed, list):
            raise AIProviderError(f"Form analysis is not a list, got {type(parsed).__name__}")

        fields: List[FormField] = []
        for raw in parsed:
            try:
                fields.append(FormField.model_validate(raw))
            except PydanticValidationError as error:
                logger.warning("Dropping malformed field description %s: %s", raw, error)

        logger.info("Field mapper identified %d fields", len(fields))
        return fields

    def generate_answer(self, question: str, cv: CvSnapshot, job_description: str = "") -> str:
        prompt = QUESTION_ANSWER_PROMPT.format(
            candidate_json=cv.model_dump_json(indent=2),
            question=question.strip(),
            job_description=job_description or "Not provided",
        )
        return _strip_fences(self.provider.generate(prompt))

    def generate_cover_letter(self, cv: CvSnapshot, job: Optional[JobPosting]) -> str:
        recent = cv.experience[0] if cv.experience else {}
        prompt = COVER_LETTER_PROMPT.format(
            full_name=cv.full_name,
            summary=cv.summary,
            skills=", ".join(cv.skills),
            recent_experience=json.dumps(recent),
            company=job.company if job else "",
            title=job.title if job else "",
            description=job.description if job else "",
        )
        return _strip_fences(self.provider.generate(prompt))


def _strip_fences(text: str) -> str:
    return re.sub(r"```[a-zA-Z]*\n?|\n?```", "", text or "").strip()

"""Centralized prompt templates for the AI field mapper and answer generator.

Prompts are plain templates filled with ``str.format``; literal JSON braces
in the examples are therefore doubled.
"""

from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass
class PromptTemplate:
    """Base class for prompt templates with parameter validation."""

    template: str
    required_params: List[str]
    optional_params: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if self.optional_params is None:
            self.optional_params = []

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided parameters."""
        missing = set(self.required_params) - set(kwargs.keys())
        if missing:
            raise ValueError(f"Missing required parameters: {missing}")

        for param in self.optional_params:
            if param not in kwargs:
                kwargs[param] = ""

        try:
            return self.template.format(**kwargs)
        except Exception as exc:  # pragma: no cover - logging path
            import logging

            logger = logging.getLogger(__name__)
            logger.error("Error formatting template: %s", exc)
            logger.error("Template preview: %s...", self.template[:200])
            logger.error("Provided kwargs: %s", list(kwargs.keys()))
            raise


# Form structure analysis
FORM_ANALYZER_PROMPT = PromptTemplate(
    template="""Analyze this job application form HTML and identify what information is needed.

HTML:
{form_html}

Return a JSON array with one entry per fillable field:
[
  {{
    "selector": "CSS selector that uniquely matches the field",
    "label": "human readable label",
    "type": "text|email|tel|textarea|select|file",
    "required": true,
    "purpose": "firstName|lastName|email|phone|coverLetter|resume|customQuestion|unknown"
  }}
]

Rules:
- Prefer id selectors (#id), then [name="..."] selectors.
- Use "customQuestion" for open questions the candidate must answer in prose.
- Skip hidden inputs, buttons and search boxes.

Return ONLY valid JSON, no markdown or explanations.""",
    required_params=["form_html"],
)


# Free-text answers to application questions
QUESTION_ANSWER_PROMPT = PromptTemplate(
    template="""You are helping a candidate apply to a job. Answer the application question below.

CANDIDATE INFO:
{candidate_json}

JOB DESCRIPTION:
{job_description}

QUESTION:
{question}

Write an answer that:
- Connects the candidate's experience to the role
- Is concise (50-200 words)
- Uses specific examples from the CV
- Shows genuine interest in the role

Return only the answer text, no labels or markdown.""",
    required_params=["candidate_json", "question"],
    optional_params=["job_description"],
)


# Cover letters
COVER_LETTER_PROMPT = PromptTemplate(
    template="""Write a professional cover letter for this job application.

CANDIDATE:
Name: {full_name}
Background: {summary}
Key Skills: {skills}
Recent Experience: {recent_experience}

JOB:
Company: {company}
Role: {title}
Description: {description}

Write a 3-paragraph cover letter (250-300 words):
1. Opening: why the candidate is excited about this specific role
2. Body: 2-3 relevant achievements that match the job requirements
3. Closing: call to action

Use a professional but warm tone. Be specific, not generic.
Return only the letter text, no formatting or labels.""",
    required_params=["full_name", "company", "title"],
    optional_params=["summary", "skills", "recent_experience", "description"],
)


# Listing search (real-time capable backend)
LISTING_SEARCH_PROMPT = PromptTemplate(
    template="""{query}

Please provide a list of current job openings with the following format for each job:
- Company Name
- Job Title
- Location
- Job Description (brief)
- Application URL (if available)

Focus on recent and active postings.""",
    required_params=["query"],
)

"""Prompts package for centralized prompt management."""

from .prompt_templates import (
    # Classes
    PromptTemplate,

    # Field mapper prompts
    FORM_ANALYZER_PROMPT,
    QUESTION_ANSWER_PROMPT,
    COVER_LETTER_PROMPT,

    # Provider prompts
    LISTING_SEARCH_PROMPT,
)

__all__ = [
    'PromptTemplate',
    'FORM_ANALYZER_PROMPT',
    'QUESTION_ANSWER_PROMPT',
    'COVER_LETTER_PROMPT',
    'LISTING_SEARCH_PROMPT',
]

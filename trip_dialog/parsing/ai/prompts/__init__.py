"""Prompt templates and builders for the AI-backed trip extractor."""

from trip_dialog.parsing.ai.prompts.templates import (
    ExtractionPromptConfig,
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_PROMPT_TEMPLATE,
)
from trip_dialog.parsing.ai.prompts.builders import (
    build_system_prompt,
    build_user_prompt,
    build_prompts,
)

__all__ = [
    "ExtractionPromptConfig",
    "EXTRACTION_SYSTEM_PROMPT",
    "EXTRACTION_USER_PROMPT_TEMPLATE",
    "build_system_prompt",
    "build_user_prompt",
    "build_prompts",
]

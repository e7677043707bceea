"""
Prompt builders for the AI-backed trip extractor.
"""

from typing import Optional, Tuple

from trip_dialog.parsing.ai.prompts.templates import (
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_PROMPT_TEMPLATE,
    ExtractionPromptConfig,
)
from trip_dialog.parsing.schemas import Classification


def build_system_prompt() -> str:
    return EXTRACTION_SYSTEM_PROMPT


def build_user_prompt(
    text: str,
    classification: Classification,
    context: Optional[str] = None,
) -> str:
    """
    Build the user prompt for one extraction call.

    Args:
        text: Raw user input
        classification: How the classifier routed this input
        context: Serialized conversation context, if any

    Returns:
        Formatted user prompt
    """
    config = ExtractionPromptConfig(
        text=text,
        input_type=classification.type,
        complexity=classification.complexity,
        features=classification.active_features(),
        context=context,
    )
    return config.format_prompt(EXTRACTION_USER_PROMPT_TEMPLATE)


def build_prompts(
    text: str,
    classification: Classification,
    context: Optional[str] = None,
) -> Tuple[str, str]:
    """Return (system_prompt, user_prompt)."""
    return build_system_prompt(), build_user_prompt(text, classification, context)

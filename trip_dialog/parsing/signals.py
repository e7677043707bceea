"""
Lexical signals shared by the classifier and the extractors.
"""

import re


NATURAL_LANGUAGE_PATTERN = re.compile(
    r"\b(?:i\s+want|i'?d\s+like|i\s+would\s+like|we\s+want|we'?d\s+like|"
    r"looking\s+for|romantic|beautiful|amazing|perfect|dream|somewhere|"
    r"something|honeymoon|relaxing|getaway|surprise)\b",
    re.IGNORECASE,
)

MODIFICATION_PATTERN = re.compile(
    r"\b(?:add|remove|drop|skip|cut|change|update|modify|extend|shorten|"
    r"replace|swap|instead|make\s+it|actually|more\s+days?|fewer\s+days?|"
    r"less\s+days?|one\s+more|another)\b",
    re.IGNORECASE,
)

QUESTION_START_PATTERN = re.compile(
    r"^\s*(?:what|which|where|when|how|why|who|is|are|does|do|can|could|"
    r"should|would|will)\b",
    re.IGNORECASE,
)

QUESTION_PHRASE_PATTERN = re.compile(r"\b(?:can\s+you|do\s+you|could\s+you)\b", re.IGNORECASE)

TRAVEL_VERB_PATTERN = re.compile(
    r"\b(?:want|visit|visiting|go|going|travel|travelling|traveling|trip|"
    r"plan|planning|spend|spending|fly|flying|explore|exploring|itinerary|"
    r"book|stay)\b",
    re.IGNORECASE,
)

MULTI_DESTINATION_PATTERN = re.compile(
    r"\b(?:cities|destinations|places|countries|stops|each)\b|"
    r"\b(?:and|then)\s+[A-Z]|,\s*[A-Z]|&",
)


def is_question(text: str) -> bool:
    stripped = text.strip()
    return (
        stripped.endswith("?")
        or bool(QUESTION_START_PATTERN.search(stripped))
        or bool(QUESTION_PHRASE_PATTERN.search(stripped))
    )


def has_natural_language(text: str) -> bool:
    return bool(NATURAL_LANGUAGE_PATTERN.search(text))


def has_modification_language(text: str) -> bool:
    return bool(MODIFICATION_PATTERN.search(text))


def has_travel_verb(text: str) -> bool:
    return bool(TRAVEL_VERB_PATTERN.search(text))


def expects_multiple_destinations(text: str) -> bool:
    return bool(MULTI_DESTINATION_PATTERN.search(text))

"""
Response parser for the AI-backed trip extractor.

Extracts the JSON object from a model response (raw JSON or a markdown
code block) and validates it against the backend output contract.
"""

import json
import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from trip_dialog.shared.errors import ResponseParseError


logger = logging.getLogger(__name__)


class ModelDestination(BaseModel):
    """Destination as returned by the model; day counts are checked later."""

    city: str
    days: int = 0

    @field_validator("city")
    @classmethod
    def strip_city(cls, value: str) -> str:
        return value.strip()


class BackendExtraction(BaseModel):
    """
    Output contract of the language-model backend.

    Fields match what the extractor needs regardless of prompt format:
    destinations, origin, total days, preferences, confidence and an
    optional error.
    """

    origin: Optional[str] = None
    destinations: List[ModelDestination] = Field(default_factory=list)
    total_days: Optional[int] = None
    preferences: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    requires_clarification: bool = False
    clarification_questions: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value):
        if value is None:
            return 0.7
        return max(0.0, min(1.0, float(value)))

    @field_validator("origin", mode="before")
    @classmethod
    def blank_origin(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


def extract_json_from_response(raw_response: str) -> str:
    """
    Extract JSON content from a model response.

    Handles raw JSON, JSON inside markdown code blocks, and leading or
    trailing prose around a single object.
    """
    content = raw_response.strip()

    match = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
    if match:
        content = match.group(1).strip()

    start = content.find("{")
    if start == -1:
        return content

    brace_count = 0
    in_string = False
    escaped = False
    for i in range(start, len(content)):
        char = content[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            brace_count += 1
        elif char == "}":
            brace_count -= 1
            if brace_count == 0:
                return content[start : i + 1]

    return content[start:]


def parse_extraction_response(raw_response: str) -> BackendExtraction:
    """
    Parse and validate a raw model response.

    Raises:
        ResponseParseError: If the response is not valid JSON or does not
            match the backend output contract
    """
    if not raw_response or not raw_response.strip():
        raise ResponseParseError("Empty response from language model")

    json_str = extract_json_from_response(raw_response)
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.error(f"[response_parser] Invalid JSON: {e} | content={json_str[:200]}")
        raise ResponseParseError(f"Invalid JSON in model response: {e}") from e

    if not isinstance(data, dict):
        raise ResponseParseError("Model response is not a JSON object")

    try:
        return BackendExtraction.model_validate(data)
    except ValidationError as e:
        logger.error(f"[response_parser] Response failed validation: {e}")
        raise ResponseParseError(f"Model response does not match the expected shape: {e}") from e

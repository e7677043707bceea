"""
Language-model backends for the AI-backed extractor.

The extractor depends only on the LanguageModelBackend interface; the
OpenAI implementation is injected at construction, and availability is
checked through a method call rather than at import time.
"""

import logging
import time
from typing import Optional

from openai import OpenAI

from trip_dialog.parsing.ai.prompts import build_prompts
from trip_dialog.parsing.ai.response_parser import BackendExtraction, parse_extraction_response
from trip_dialog.parsing.schemas import Classification
from trip_dialog.shared.llm.client import (
    get_cached_client,
    get_llm_response_with_usage,
    has_api_key,
)
from trip_dialog.shared.logging.debug_logger import get_or_create_logger


logger = logging.getLogger(__name__)


class LanguageModelBackend:
    """
    Interface for a structured-extraction language model.

    One call takes the text, its classification and an optional serialized
    context, and returns destinations, origin, total days, preferences,
    confidence and an optional error.
    """

    name = "base"

    def is_available(self) -> bool:
        raise NotImplementedError

    def extract(
        self,
        text: str,
        classification: Classification,
        context: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> BackendExtraction:
        raise NotImplementedError


class OpenAIExtractionBackend(LanguageModelBackend):
    """
    Backend that calls the OpenAI chat completion API in JSON mode.

    Every call is recorded in the session's debug log with prompts,
    response, duration and token usage.
    """

    name = "openai"

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        client: Optional[OpenAI] = None,
        logs_dir: str = "logs",
    ):
        self.model = model
        self._client = client
        self.logs_dir = logs_dir

    def is_available(self) -> bool:
        return self._client is not None or has_api_key()

    def extract(
        self,
        text: str,
        classification: Classification,
        context: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> BackendExtraction:
        _log = f"[session={session_id}] [component=ai_backend] "
        client = self._client or get_cached_client()
        system_prompt, user_prompt = build_prompts(text, classification, context)

        start_time = time.time()
        raw_response, usage = get_llm_response_with_usage(
            client,
            user_prompt=user_prompt,
            system_prompt=system_prompt,
            model=self.model,
        )
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{_log}LLM call completed | duration={duration_ms:.0f}ms, "
            f"tokens={usage.get('total_tokens', 0)}"
        )

        if session_id:
            get_or_create_logger(session_id, self.logs_dir).log_llm_call(
                classification_type=classification.type,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                response=raw_response,
                duration_ms=duration_ms,
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
                model=self.model,
            )

        return parse_extraction_response(raw_response)

"""OpenAI client with retry logic."""

from trip_dialog.shared.llm.client import (
    get_cached_client,
    has_api_key,
    call_llm_with_usage,
    get_llm_response_with_usage,
)

__all__ = [
    "get_cached_client",
    "has_api_key",
    "call_llm_with_usage",
    "get_llm_response_with_usage",
]

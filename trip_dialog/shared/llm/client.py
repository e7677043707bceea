"""
OpenAI client with retry logic.

Provides a cached client instance and wrappers for LLM calls with
automatic retries using tenacity. Calls request JSON output because every
caller in this package parses structured fields out of the reply.
"""

import os
from typing import List, Dict, Optional, Tuple

from openai import OpenAI
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from dotenv import load_dotenv
load_dotenv()

API_KEY_ENV = "OPENAI_API_KEY"

# Module-level cache for OpenAI client
_client: Optional[OpenAI] = None


def has_api_key() -> bool:
    """Return True when an OpenAI API key is configured."""
    return bool(os.environ.get(API_KEY_ENV))


def get_cached_client() -> OpenAI:
    """
    Returns a cached instance of the OpenAI client.

    Uses the OPENAI_API_KEY environment variable for authentication.
    The client is created once and reused for all subsequent calls.
    """
    global _client
    if _client is None:
        api_key = os.environ.get(API_KEY_ENV)
        if not api_key:
            raise ValueError(
                f"{API_KEY_ENV} environment variable is not set. "
                "Please set it to your OpenAI API key."
            )
        _client = OpenAI(api_key=api_key)
    return _client


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((Exception,)),
    reraise=True,
)
def call_llm_with_usage(
    messages: List[Dict[str, str]],
    model: str = "gpt-4.1-mini",
    client: Optional[OpenAI] = None,
) -> Tuple[str, Dict[str, int]]:
    """
    Call the OpenAI Chat Completion API and return content with token usage.

    Args:
        messages: List of message dicts with 'role' and 'content' keys
        model: Model identifier to use (default: gpt-4.1-mini)
        client: Optional OpenAI client instance. If not provided, uses cached client.

    Returns:
        Tuple of (response content, usage dict with input/output/total tokens)

    Raises:
        Exception: If all retry attempts fail.
    """
    if client is None:
        client = get_cached_client()

    response = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=0.1,
        response_format={"type": "json_object"},
    )

    content = (response.choices[0].message.content or "").strip()
    usage = {
        "input_tokens": response.usage.prompt_tokens if response.usage else 0,
        "output_tokens": response.usage.completion_tokens if response.usage else 0,
        "total_tokens": response.usage.total_tokens if response.usage else 0,
    }

    return content, usage


def get_llm_response_with_usage(
    client: OpenAI,
    user_prompt: str,
    system_prompt: str,
    model: str = "gpt-4.1-mini",
) -> Tuple[str, Dict[str, int]]:
    """
    Get LLM response with token usage information.

    Args:
        client: OpenAI client instance
        user_prompt: The user message content
        system_prompt: The system message content
        model: Model identifier to use

    Returns:
        Tuple of (response content, usage dict with input/output/total tokens)
    """
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
    return call_llm_with_usage(messages, model=model, client=client)

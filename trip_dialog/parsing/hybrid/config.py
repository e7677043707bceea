"""
Configuration for the hybrid parser.

Centralizes routing thresholds and the AI call bound so behavior can be
tuned without touching the routing code.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class HybridParserConfig:
    """
    Configuration for the hybrid parser.

    Attributes:
        deterministic_confidence_threshold: Deterministic results at or above
            this confidence short-circuit the AI call
        ai_confidence_threshold: Minimum confidence for an AI result to be
            used on its own; merged results follow the merge thresholds below
        max_processing_time_ms: Upper bound on the AI call; slower calls fail
        enable_ai_fallback: Whether the AI extractor may run at all
        model: Model used by the default OpenAI backend
    """

    deterministic_confidence_threshold: float = 0.7
    ai_confidence_threshold: float = 0.6
    max_processing_time_ms: int = 5000
    enable_ai_fallback: bool = True

    # LLM configuration
    model: str = "gpt-4.1-mini"

    # Merge policy
    structured_preference_threshold: float = 0.6
    conversational_preference_threshold: float = 0.5


# Default configuration instance
DEFAULT_CONFIG = HybridParserConfig()


def get_config(
    deterministic_confidence_threshold: Optional[float] = None,
    ai_confidence_threshold: Optional[float] = None,
    max_processing_time_ms: Optional[int] = None,
    enable_ai_fallback: Optional[bool] = None,
    model: Optional[str] = None,
) -> HybridParserConfig:
    """
    Create a configuration with optional overrides.

    Args:
        deterministic_confidence_threshold: Override for the short-circuit threshold
        ai_confidence_threshold: Override for the AI threshold
        max_processing_time_ms: Override for the AI call bound
        enable_ai_fallback: Override for the AI fallback flag
        model: Override for the LLM model

    Returns:
        HybridParserConfig with specified overrides applied
    """
    return HybridParserConfig(
        deterministic_confidence_threshold=deterministic_confidence_threshold
        if deterministic_confidence_threshold is not None
        else DEFAULT_CONFIG.deterministic_confidence_threshold,
        ai_confidence_threshold=ai_confidence_threshold
        if ai_confidence_threshold is not None
        else DEFAULT_CONFIG.ai_confidence_threshold,
        max_processing_time_ms=max_processing_time_ms or DEFAULT_CONFIG.max_processing_time_ms,
        enable_ai_fallback=enable_ai_fallback
        if enable_ai_fallback is not None
        else DEFAULT_CONFIG.enable_ai_fallback,
        model=model or DEFAULT_CONFIG.model,
    )

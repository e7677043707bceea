"""
Input classifier.

Scores input text against lexical feature heuristics and produces a
category, a confidence and a complexity estimate that the hybrid parser
uses to pick an extraction strategy. Classification is a pure function
of the text and the optional conversation context.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from trip_dialog.parsing.deterministic import DeterministicExtractor
from trip_dialog.parsing.durations import find_durations
from trip_dialog.parsing.matcher import CityMatcher, PatternCityMatcher
from trip_dialog.parsing.schemas import Classification, ParseContext
from trip_dialog.parsing.signals import (
    expects_multiple_destinations,
    has_modification_language,
    has_natural_language,
    has_travel_verb,
    is_question,
)


logger = logging.getLogger(__name__)


@dataclass
class ClassifierConfig:
    """
    Confidence values assigned by each classification rule.

    Attributes:
        structured_base: Starting confidence for structured input
        signal_boost: Added per corroborating signal (origin, duration, cities)
        structured_cap: Upper bound for structured confidence
        ambiguous_confidence: Must stay below 0.5
    """

    structured_base: float = 0.5
    signal_boost: float = 0.2
    structured_cap: float = 0.95
    modification_confidence: float = 0.8
    question_confidence: float = 0.9
    conversational_confidence: float = 0.7
    ambiguous_confidence: float = 0.4

    # Lists longer than this are complex
    complex_segment_count: int = 3


DEFAULT_CONFIG = ClassifierConfig()

_SEGMENT_SPLIT = re.compile(r",|\band\b|\bthen\b", re.IGNORECASE)


class Classifier:
    """Rule-based classifier; the first matching rule wins."""

    def __init__(
        self,
        matcher: Optional[CityMatcher] = None,
        config: Optional[ClassifierConfig] = None,
    ):
        self.matcher = matcher or PatternCityMatcher()
        self.config = config or DEFAULT_CONFIG
        self._origin_finder = DeterministicExtractor(self.matcher)

    def features(self, text: str, context: Optional[ParseContext] = None) -> Dict[str, bool]:
        """Compute the named boolean signals for text."""
        has_plan = context is not None and context.has_plan
        origin, origin_span = self._origin_finder.find_origin(text)
        cities = self.matcher.find_cities(text, exclude_spans=[origin_span] if origin_span else [])
        distinct = {m.key for m in cities}
        has_duration = any(d.days > 0 for d in find_durations(text))
        modification = has_modification_language(text)

        return {
            "has_explicit_duration": has_duration,
            "has_cities": bool(distinct),
            "has_origin": origin is not None,
            "has_multi_destinations": len(distinct) > 1
            or (bool(distinct) and expects_multiple_destinations(text)),
            "has_natural_language": has_natural_language(text),
            "is_modification_language": modification,
            "is_question": is_question(text),
            "has_travel_verb": has_travel_verb(text),
            "has_vague_region": bool(self.matcher.find_regions(text)) and not distinct,
            "has_context": has_plan,
            "continues_context": has_plan
            and not distinct
            and not modification
            and (origin is not None or has_duration),
        }

    def classify(self, text: str, context: Optional[ParseContext] = None) -> Classification:
        features = self.features(text, context)
        config = self.config
        session_id = context.session_id if context is not None else None
        _log = f"[session={session_id}] [component=classifier] "

        if features["is_modification_language"] and features["has_context"]:
            result = Classification(
                type="modification",
                confidence=config.modification_confidence,
                complexity="medium",
                features=features,
            )
        elif features["is_question"] and not features["has_travel_verb"]:
            result = Classification(
                type="question",
                confidence=config.question_confidence,
                complexity="simple",
                features=features,
            )
        elif features["has_natural_language"]:
            result = Classification(
                type="conversational",
                confidence=config.conversational_confidence,
                complexity="complex",
                features=features,
            )
        elif features["has_explicit_duration"] and features["has_cities"]:
            confidence = config.structured_base
            for signal in ("has_origin", "has_explicit_duration", "has_cities"):
                if features[signal]:
                    confidence += config.signal_boost
            result = Classification(
                type="structured",
                confidence=round(min(confidence, config.structured_cap), 4),
                complexity=self._structured_complexity(text, features),
                features=features,
            )
        else:
            result = Classification(
                type="ambiguous",
                confidence=config.ambiguous_confidence,
                complexity="complex",
                features=features,
            )

        logger.info(
            f"{_log}Classified as '{result.type}' | confidence={result.confidence}, "
            f"complexity={result.complexity}, features={result.active_features()}"
        )
        return result

    def _structured_complexity(self, text: str, features: Dict[str, bool]) -> str:
        if not features["has_multi_destinations"]:
            return "simple"
        segments = [s for s in _SEGMENT_SPLIT.split(text) if s.strip()]
        if len(segments) > self.config.complex_segment_count:
            return "complex"
        return "medium"

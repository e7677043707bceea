"""
AI-backed trip extractor.

Wraps a language-model backend behind the same output contract as the
deterministic extractor. Checks availability before calling and turns
every backend failure into a failed ParseResult. The backend's confidence
is passed through unchanged.
"""

import logging
import time
from typing import List, Optional

from trip_dialog.parsing.ai.backend import LanguageModelBackend
from trip_dialog.parsing.ai.response_parser import BackendExtraction
from trip_dialog.parsing.schemas import Classification, ParseContext, ParseResult
from trip_dialog.shared.contracts.trip_plan import (
    FLAG_DROPPED_INVALID_DAYS,
    Destination,
    TripPlan,
    city_key,
)


logger = logging.getLogger(__name__)

NOT_AVAILABLE_ERROR = "AI parser not available"


class AIExtractor:
    """AI-backed extractor with availability checks and error normalization."""

    def __init__(self, backend: Optional[LanguageModelBackend] = None):
        self.backend = backend

    def is_available(self) -> bool:
        if self.backend is None:
            return False
        try:
            return bool(self.backend.is_available())
        except Exception as e:
            logger.warning(f"[component=ai_extractor] Availability check failed: {e}")
            return False

    def extract(
        self,
        text: str,
        classification: Classification,
        context: Optional[ParseContext] = None,
    ) -> ParseResult:
        session_id = context.session_id if context is not None else None
        _log = f"[session={session_id}] [component=ai_extractor] "
        start_time = time.time()

        if not self.is_available():
            logger.info(f"{_log}Backend unavailable, skipping")
            return ParseResult(
                success=False,
                source="ai",
                error=NOT_AVAILABLE_ERROR,
                classification=classification,
            )

        try:
            extraction = self.backend.extract(
                text,
                classification,
                context=context.summary if context is not None and context.summary else None,
                session_id=session_id,
            )
        except Exception as e:
            logger.warning(f"{_log}Backend call failed: {type(e).__name__}: {e}")
            return ParseResult(
                success=False,
                source="ai",
                error=f"AI parsing failed: {e}",
                classification=classification,
                processing_time_ms=(time.time() - start_time) * 1000,
            )

        result = self.to_result(extraction, classification)
        result.processing_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{_log}Extraction {'succeeded' if result.success else 'failed'} | "
            f"confidence={result.confidence}, destinations={len(result.plan.destinations) if result.plan else 0}"
        )
        return result

    @staticmethod
    def to_result(extraction: BackendExtraction, classification: Classification) -> ParseResult:
        """Convert a backend extraction into a ParseResult with source=ai."""
        destinations: List[Destination] = []
        seen = set()
        dropped = False

        for item in extraction.destinations:
            if not item.city or item.days <= 0:
                dropped = True
                continue
            key = city_key(item.city)
            if key in seen:
                continue
            seen.add(key)
            destinations.append(Destination(city=item.city, days=item.days))

        plan = TripPlan.build(
            destinations=destinations,
            origin=extraction.origin,
            stated_total_days=extraction.total_days if extraction.total_days else None,
            flags=[FLAG_DROPPED_INVALID_DAYS] if dropped else [],
        )

        error = extraction.error
        if not destinations and not error:
            if extraction.requires_clarification and extraction.clarification_questions:
                error = extraction.clarification_questions[0]
            else:
                error = "No destinations found"

        return ParseResult(
            success=bool(destinations) and not extraction.error,
            confidence=extraction.confidence,
            source="ai",
            plan=plan,
            error=None if destinations and not extraction.error else error,
            classification=classification,
            preferences=[p.strip().lower() for p in extraction.preferences if p.strip()],
        )

"""
Hybrid parser: classify, route to one or both extractors, merge.

The parser is constructed once per process with its configuration and
collaborators injected; it holds no per-request state. Extractor errors
and AI timeouts are recovered here and never escape as exceptions.
"""

import asyncio
import logging
import time
from typing import Optional

from trip_dialog.parsing.ai.backend import LanguageModelBackend, OpenAIExtractionBackend
from trip_dialog.parsing.ai.extractor import AIExtractor
from trip_dialog.parsing.classifier import Classifier
from trip_dialog.parsing.deterministic import DeterministicExtractor
from trip_dialog.parsing.hybrid.config import DEFAULT_CONFIG, HybridParserConfig
from trip_dialog.parsing.matcher import CityMatcher, PatternCityMatcher
from trip_dialog.parsing.schemas import Classification, ParseContext, ParseResult


logger = logging.getLogger(__name__)

ALL_FAILED_ERROR = "All parsing strategies failed"


class HybridParser:
    """
    Routes input between the deterministic and AI-backed extractors.

    Example:
        >>> parser = HybridParser(use_default_backend=False)
        >>> result = asyncio.run(parser.parse("5 days in London"))
        >>> result.source, result.plan.total_days
        ('hybrid', 5)
    """

    def __init__(
        self,
        config: Optional[HybridParserConfig] = None,
        matcher: Optional[CityMatcher] = None,
        backend: Optional[LanguageModelBackend] = None,
        classifier: Optional[Classifier] = None,
        deterministic: Optional[DeterministicExtractor] = None,
        use_default_backend: bool = True,
    ):
        self.config = config or DEFAULT_CONFIG
        self.matcher = matcher or PatternCityMatcher()
        self.classifier = classifier or Classifier(self.matcher)
        self.deterministic = deterministic or DeterministicExtractor(self.matcher)

        if backend is None and use_default_backend and self.config.enable_ai_fallback:
            backend = OpenAIExtractionBackend(model=self.config.model)
        self.ai = AIExtractor(backend)

    def classify(self, text: str, context: Optional[ParseContext] = None) -> Classification:
        return self.classifier.classify(text, context)

    async def parse(self, text: str, context: Optional[ParseContext] = None) -> ParseResult:
        """
        Parse text into a ParseResult.

        Returns success=False with "All parsing strategies failed" when no
        extractor produced a usable plan.
        """
        start_time = time.time()
        session_id = context.session_id if context is not None else None
        _log = f"[session={session_id}] [component=hybrid_parser] "

        classification = self.classify(text, context)
        use_deterministic = classification.type == "structured" or classification.complexity == "simple"
        use_ai = (
            classification.type in ("conversational", "modification")
            or classification.complexity == "complex"
        )

        deterministic_result: Optional[ParseResult] = None
        ai_result: Optional[ParseResult] = None

        if use_deterministic:
            deterministic_result = self._run_deterministic(text, classification)
            if (
                deterministic_result.success
                and deterministic_result.confidence >= self.config.deterministic_confidence_threshold
            ):
                logger.info(
                    f"{_log}Deterministic result accepted | confidence={deterministic_result.confidence}, "
                    f"skipping AI"
                )
                return self._finish(deterministic_result, "hybrid", classification, start_time)

        if use_ai and self.config.enable_ai_fallback:
            ai_result = await self._run_ai(text, classification, context)

        if deterministic_result is not None and ai_result is not None:
            merged = self.merge(deterministic_result, ai_result, classification)
            merged.fallback_used = True
            logger.info(
                f"{_log}Merged results | success={merged.success}, confidence={merged.confidence}"
            )
            return self._finish(merged, "hybrid", classification, start_time)

        if (
            deterministic_result is None
            and ai_result is not None
            and ai_result.success
            and ai_result.confidence < self.config.ai_confidence_threshold
        ):
            logger.info(
                f"{_log}AI result below threshold | confidence={ai_result.confidence}, "
                f"threshold={self.config.ai_confidence_threshold}"
            )
            ai_result = ai_result.model_copy(
                update={
                    "success": False,
                    "error": (
                        f"AI confidence {ai_result.confidence} below threshold "
                        f"{self.config.ai_confidence_threshold}"
                    ),
                }
            )

        single = deterministic_result or ai_result
        if single is not None and single.success:
            logger.info(f"{_log}Using single {single.source} result | confidence={single.confidence}")
            return self._finish(single, single.source, classification, start_time)

        errors = [r.error for r in (deterministic_result, ai_result) if r is not None and r.error]
        logger.warning(f"{_log}{ALL_FAILED_ERROR} | errors={errors}")
        failed = ParseResult(
            success=False,
            confidence=single.confidence if single is not None else 0.0,
            source="hybrid",
            plan=single.plan if single is not None else None,
            error=ALL_FAILED_ERROR,
            errors=errors,
            fallback_used=True,
        )
        return self._finish(failed, "hybrid", classification, start_time)

    def merge(
        self,
        deterministic_result: ParseResult,
        ai_result: ParseResult,
        classification: Classification,
    ) -> ParseResult:
        """
        Merge two extractor results.

        Exactly one success wins. Two failures keep the higher-confidence
        payload but report the combined failure. Two successes prefer
        deterministic for structured input, AI for conversational input,
        and otherwise the higher confidence.
        """
        config = self.config

        if deterministic_result.success and not ai_result.success:
            return deterministic_result.model_copy(deep=True)
        if ai_result.success and not deterministic_result.success:
            return ai_result.model_copy(deep=True)

        if not deterministic_result.success and not ai_result.success:
            best = (
                deterministic_result
                if deterministic_result.confidence >= ai_result.confidence
                else ai_result
            )
            failed = best.model_copy(deep=True)
            failed.error = ALL_FAILED_ERROR
            failed.errors = [r.error for r in (deterministic_result, ai_result) if r.error]
            return failed

        if (
            classification.type == "structured"
            and deterministic_result.confidence > config.structured_preference_threshold
        ):
            chosen = deterministic_result
        elif (
            classification.type == "conversational"
            and ai_result.confidence > config.conversational_preference_threshold
        ):
            chosen = ai_result
        elif deterministic_result.confidence >= ai_result.confidence:
            chosen = deterministic_result
        else:
            chosen = ai_result

        merged = chosen.model_copy(deep=True)
        if not merged.preferences:
            merged.preferences = list(ai_result.preferences)
        return merged

    def _run_deterministic(self, text: str, classification: Classification) -> ParseResult:
        try:
            return self.deterministic.extract_result(text, classification)
        except Exception as e:
            logger.exception(f"[component=hybrid_parser] Deterministic extractor raised: {e}")
            return ParseResult(
                success=False,
                source="deterministic",
                error=f"Deterministic parsing failed: {e}",
                classification=classification,
            )

    async def _run_ai(
        self,
        text: str,
        classification: Classification,
        context: Optional[ParseContext],
    ) -> ParseResult:
        timeout = self.config.max_processing_time_ms / 1000
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.ai.extract, text, classification, context),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[component=hybrid_parser] AI extractor exceeded {self.config.max_processing_time_ms}ms"
            )
            return ParseResult(
                success=False,
                source="ai",
                error=f"AI parser timed out after {self.config.max_processing_time_ms}ms",
                classification=classification,
            )
        except Exception as e:
            logger.exception(f"[component=hybrid_parser] AI extractor raised: {e}")
            return ParseResult(
                success=False,
                source="ai",
                error=f"AI parsing failed: {e}",
                classification=classification,
            )

    @staticmethod
    def _finish(
        result: ParseResult,
        source: str,
        classification: Classification,
        start_time: float,
    ) -> ParseResult:
        final = result.model_copy(deep=True)
        final.source = source
        final.classification = classification
        final.processing_time_ms = (time.time() - start_time) * 1000
        return final

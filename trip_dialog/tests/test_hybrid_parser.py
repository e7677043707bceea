"""
Tests for the hybrid parser.

Tests routing between the extractors, the merge policy, the AI timeout
and failure recovery. The language-model backend is an in-process fake.
"""

import asyncio
import time

from trip_dialog.parsing.ai.backend import LanguageModelBackend
from trip_dialog.parsing.ai.response_parser import BackendExtraction, ModelDestination
from trip_dialog.parsing.hybrid.config import HybridParserConfig, get_config
from trip_dialog.parsing.hybrid.parser import ALL_FAILED_ERROR, HybridParser
from trip_dialog.parsing.schemas import Classification, ParseResult
from trip_dialog.shared.contracts.trip_plan import Destination, TripPlan


class FakeBackend(LanguageModelBackend):
    """Backend returning a canned extraction and counting calls."""

    name = "fake"

    def __init__(self, extraction=None, delay=0.0, error=None):
        self.extraction = extraction or BackendExtraction()
        self.delay = delay
        self.error = error
        self.calls = 0

    def is_available(self):
        return True

    def extract(self, text, classification, context=None, session_id=None):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.extraction


def _make_extraction(cities, days=3, confidence=0.8, preferences=None):
    """Create a backend extraction giving each city the same days."""
    return BackendExtraction(
        destinations=[ModelDestination(city=city, days=days) for city in cities],
        confidence=confidence,
        preferences=preferences or [],
    )


def _make_parser(backend=None, **config):
    """Create a hybrid parser with an optional fake backend."""
    return HybridParser(
        config=HybridParserConfig(**config),
        backend=backend,
        use_default_backend=False,
    )


def _make_result(source, success, confidence, cities=("Paris",), preferences=None):
    """Create a ParseResult with a simple plan."""
    plan = TripPlan.build([Destination(city=c, days=2) for c in cities])
    return ParseResult(
        success=success,
        confidence=confidence,
        source=source,
        plan=plan,
        error=None if success else f"{source} failed",
        preferences=preferences or [],
    )


def _make_classification(input_type):
    return Classification(type=input_type, confidence=0.7, complexity="medium")


class TestRouting:
    """Tests for which extractors run."""

    def test_structured_short_circuits(self):
        """A confident deterministic result skips the AI call."""
        backend = FakeBackend(_make_extraction(["Rome"]))
        result = asyncio.run(_make_parser(backend).parse("5 days in London and 3 days in Paris"))
        assert result.success is True
        assert result.source == "hybrid"
        assert result.confidence >= 0.7
        assert result.classification.type == "structured"
        assert backend.calls == 0

    def test_spec_example_short_circuits(self):
        """Mixed aggregate and per-city counts resolve deterministically."""
        result = asyncio.run(
            _make_parser().parse("2 weeks in Lisbon and Granada, 10 days lisbon, 4 granada")
        )
        assert result.success is True
        assert result.source == "hybrid"
        assert [(d.city, d.days) for d in result.plan.destinations] == [("Lisbon", 10), ("Granada", 4)]
        assert result.plan.total_days == 14

    def test_conversational_uses_ai(self):
        """Conversational input goes to the AI extractor and keeps its source."""
        backend = FakeBackend(_make_extraction(["Paris"], days=4, confidence=0.8))
        result = asyncio.run(
            _make_parser(backend).parse("I'd like a romantic getaway to Paris for 4 days")
        )
        assert backend.calls == 1
        assert result.success is True
        assert result.source == "ai"
        assert result.confidence == 0.8
        assert result.plan.total_days == 4

    def test_low_confidence_structured_falls_back_to_ai(self):
        """A weak deterministic result on complex input is merged with the AI result."""
        backend = FakeBackend(_make_extraction(["Paris", "Rome", "Berlin", "Vienna"], days=2, confidence=0.8))
        result = asyncio.run(
            _make_parser(backend).parse("Paris, Rome, Berlin and Vienna for 3 days")
        )
        assert backend.calls == 1
        assert result.source == "hybrid"
        assert result.fallback_used is True
        assert [d.city for d in result.plan.destinations] == ["Paris", "Rome", "Berlin", "Vienna"]

    def test_ai_disabled(self):
        """With the AI fallback off, conversational input fails cleanly."""
        backend = FakeBackend(_make_extraction(["Paris"]))
        result = asyncio.run(
            _make_parser(backend, enable_ai_fallback=False).parse("I'd like a romantic getaway")
        )
        assert backend.calls == 0
        assert result.success is False
        assert result.error == ALL_FAILED_ERROR


class TestFailureRecovery:
    """Tests for timeouts and extractor errors."""

    def test_ai_timeout_is_a_failure(self):
        """A slow backend is treated as failed, not hung."""
        backend = FakeBackend(_make_extraction(["Paris"]), delay=0.5)
        result = asyncio.run(
            _make_parser(backend, max_processing_time_ms=50).parse("I'd like a romantic getaway")
        )
        assert result.success is False
        assert result.error == ALL_FAILED_ERROR
        assert result.errors == ["AI parser timed out after 50ms"]

    def test_backend_exception_does_not_escape(self):
        """Backend exceptions become a failed result."""
        backend = FakeBackend(error=RuntimeError("boom"))
        result = asyncio.run(_make_parser(backend).parse("I'd like a romantic getaway"))
        assert result.success is False
        assert result.errors == ["AI parsing failed: boom"]

    def test_low_confidence_ai_alone_fails(self):
        """An AI-only result below the AI threshold is not used."""
        backend = FakeBackend(_make_extraction(["Paris"], confidence=0.4))
        result = asyncio.run(_make_parser(backend).parse("I'd like a romantic getaway to Paris"))
        assert result.success is False
        assert result.error == ALL_FAILED_ERROR
        assert result.errors == ["AI confidence 0.4 below threshold 0.6"]
        assert [d.city for d in result.plan.destinations] == ["Paris"]

    def test_ai_threshold_configurable(self):
        """A lower AI threshold accepts the same result."""
        backend = FakeBackend(_make_extraction(["Paris"], confidence=0.4))
        result = asyncio.run(
            _make_parser(backend, ai_confidence_threshold=0.3).parse("I'd like a romantic getaway to Paris")
        )
        assert result.success is True
        assert result.source == "ai"

    def test_unavailable_backend(self):
        """No backend at all still yields a ParseResult."""
        result = asyncio.run(_make_parser().parse("Europe"))
        assert result.success is False
        assert result.error == ALL_FAILED_ERROR
        assert result.classification.type == "ambiguous"


class TestMerge:
    """Tests for HybridParser.merge."""

    def test_single_success_wins(self):
        """Exactly one success is chosen."""
        parser = _make_parser()
        merged = parser.merge(
            _make_result("deterministic", True, 0.5),
            _make_result("ai", False, 0.9, cities=("Rome",)),
            _make_classification("structured"),
        )
        assert merged.success is True
        assert [d.city for d in merged.plan.destinations] == ["Paris"]

    def test_both_fail(self):
        """Two failures report the combined failure and keep the better payload."""
        parser = _make_parser()
        merged = parser.merge(
            _make_result("deterministic", False, 0.3),
            _make_result("ai", False, 0.6, cities=("Rome",)),
            _make_classification("ambiguous"),
        )
        assert merged.success is False
        assert merged.error == ALL_FAILED_ERROR
        assert merged.errors == ["deterministic failed", "ai failed"]
        assert merged.confidence == 0.6
        assert [d.city for d in merged.plan.destinations] == ["Rome"]

    def test_structured_prefers_deterministic(self):
        """Structured input keeps a confident deterministic result."""
        merged = _make_parser().merge(
            _make_result("deterministic", True, 0.65),
            _make_result("ai", True, 0.95, cities=("Rome",)),
            _make_classification("structured"),
        )
        assert merged.source == "deterministic"

    def test_conversational_prefers_ai(self):
        """Conversational input takes a reasonably confident AI result."""
        merged = _make_parser().merge(
            _make_result("deterministic", True, 0.9),
            _make_result("ai", True, 0.55, cities=("Rome",)),
            _make_classification("conversational"),
        )
        assert merged.source == "ai"

    def test_otherwise_higher_confidence(self):
        """Other input types take the higher confidence."""
        merged = _make_parser().merge(
            _make_result("deterministic", True, 0.4),
            _make_result("ai", True, 0.45, cities=("Rome",)),
            _make_classification("ambiguous"),
        )
        assert merged.source == "ai"

    def test_ai_preferences_kept(self):
        """AI preferences are carried onto a deterministic winner."""
        merged = _make_parser().merge(
            _make_result("deterministic", True, 0.9),
            _make_result("ai", True, 0.7, preferences=["beach"]),
            _make_classification("structured"),
        )
        assert merged.source == "deterministic"
        assert merged.preferences == ["beach"]


class TestHybridConfig:
    """Tests for the parser configuration."""

    def test_defaults(self):
        """Default thresholds."""
        config = get_config()
        assert config.deterministic_confidence_threshold == 0.7
        assert config.ai_confidence_threshold == 0.6
        assert config.max_processing_time_ms == 5000
        assert config.enable_ai_fallback is True

    def test_overrides(self):
        """Overrides replace only the named fields."""
        config = get_config(max_processing_time_ms=100, enable_ai_fallback=False)
        assert config.max_processing_time_ms == 100
        assert config.enable_ai_fallback is False
        assert config.deterministic_confidence_threshold == 0.7

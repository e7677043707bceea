"""
Tests for the deterministic extractor.

Tests per-city binding, aggregate splits, origin detection, confidence
scoring and the never-raise contract.
"""

from trip_dialog.parsing.deterministic import (
    DeterministicExtractor,
    Extraction,
    calculate_confidence,
    split_evenly,
)
from trip_dialog.shared.contracts.trip_plan import (
    FLAG_DROPPED_INVALID_DAYS,
    FLAG_PARTIAL,
    Destination,
    TripPlan,
)


def _make_extractor():
    """Create an extractor with the default matcher."""
    return DeterministicExtractor()


def _days(plan):
    """Destination (city, days) pairs in order."""
    return [(d.city, d.days) for d in plan.destinations]


class TestPerCityDurations:
    """Tests for explicit per-city day counts."""

    def test_two_segments(self):
        """'N days in City' segments each bind to their city."""
        plan = _make_extractor().extract("5 days in London and 3 days in Paris")
        assert _days(plan) == [("London", 5), ("Paris", 3)]
        assert plan.total_days == 8
        assert plan.is_consistent

    def test_city_for_duration(self):
        """'City for N days' binds the trailing duration."""
        plan = _make_extractor().extract("Paris for 3 days")
        assert _days(plan) == [("Paris", 3)]

    def test_bare_number_with_in(self):
        """'3 in Florence' borrows the unit from context."""
        plan = _make_extractor().extract("4 days in Rome, 3 in Florence")
        assert _days(plan) == [("Rome", 4), ("Florence", 3)]

    def test_weeks(self):
        """Week units convert to days."""
        plan = _make_extractor().extract("a week in Tokyo")
        assert _days(plan) == [("Tokyo", 7)]

    def test_explicit_counts_override_aggregate(self):
        """Per-city counts win over the vaguer aggregate."""
        plan = _make_extractor().extract("2 weeks in Lisbon and Granada, 10 days lisbon, 4 granada")
        assert _days(plan) == [("Lisbon", 10), ("Granada", 4)]
        assert plan.total_days == 14
        assert plan.stated_total_days == 14
        assert plan.flags == []

    def test_idempotent(self):
        """The same text always yields the same plan."""
        extractor = _make_extractor()
        text = "2 weeks in Lisbon and Granada, 10 days lisbon, 4 granada"
        assert extractor.extract(text) == extractor.extract(text)


class TestAggregateDurations:
    """Tests for durations shared by a list of cities."""

    def test_even_split(self):
        """An aggregate over two cities is split evenly."""
        extraction = _make_extractor().extract_details("2 weeks in Lisbon and Granada")
        assert _days(extraction.plan) == [("Lisbon", 7), ("Granada", 7)]
        assert extraction.split_cities == ["Lisbon", "Granada"]
        assert extraction.plan.stated_total_days == 14

    def test_remainder_goes_to_earliest(self):
        """An uneven split favors the first cities."""
        plan = _make_extractor().extract("10 days in Paris, Rome and Berlin")
        assert _days(plan) == [("Paris", 4), ("Rome", 3), ("Berlin", 3)]
        assert plan.total_days == 10

    def test_each(self):
        """'N days each' gives every listed city N days."""
        plan = _make_extractor().extract("Paris and Rome 2 days each")
        assert _days(plan) == [("Paris", 2), ("Rome", 2)]
        assert plan.total_days == 4


class TestPendingAndInvalid:
    """Tests for cities without durations and invalid counts."""

    def test_cities_without_days_are_pending(self):
        """Cities with no duration are never stored as destinations."""
        plan = _make_extractor().extract("London, Paris and Rome")
        assert plan.destinations == []
        assert plan.pending_cities == ["London", "Paris", "Rome"]
        assert FLAG_PARTIAL in plan.flags

    def test_zero_days_dropped(self):
        """Zero-day counts are discarded and flagged."""
        plan = _make_extractor().extract("0 days in Paris")
        assert plan.destinations == []
        assert plan.pending_cities == ["Paris"]
        assert FLAG_DROPPED_INVALID_DAYS in plan.flags

    def test_relative_time_leaves_city_pending(self):
        """'next week' is not a trip length."""
        plan = _make_extractor().extract("next week in Tokyo")
        assert plan.destinations == []
        assert plan.pending_cities == ["Tokyo"]

    def test_garbage_never_raises(self):
        """Unparseable input yields an empty plan."""
        extractor = _make_extractor()
        for text in ("", "   ", "!!!", "12345", "$$$ 0 -1 days"):
            plan = extractor.extract(text)
            assert plan.destinations == []


class TestOrigin:
    """Tests for origin detection."""

    def test_from_city(self):
        """'from City' is the origin, not a destination."""
        plan = _make_extractor().extract("5 days in London from New York")
        assert plan.origin == "New York"
        assert _days(plan) == [("London", 5)]

    def test_flying_out_of(self):
        """Longer origin phrases are recognized."""
        origin, span = _make_extractor().find_origin("flying out of Boston to 4 days in Rome")
        assert origin == "Boston"
        assert span is not None

    def test_no_origin(self):
        """Text without an origin phrase."""
        assert _make_extractor().find_origin("5 days in London") == (None, None)


class TestConfidence:
    """Tests for calculate_confidence and extract_result."""

    def test_fully_resolved_plan(self):
        """Explicit, consistent plans score high."""
        result = _make_extractor().extract_result("5 days in London and 3 days in Paris")
        assert result.success is True
        assert result.source == "deterministic"
        assert result.confidence == 0.85

    def test_origin_adds_confidence(self):
        """An origin is a corroborating signal."""
        extractor = _make_extractor()
        without = extractor.extract_result("5 days in London").confidence
        with_origin = extractor.extract_result("5 days in London from Boston").confidence
        assert with_origin > without

    def test_natural_language_lowers_confidence(self):
        """Conversational phrasing is penalized."""
        extractor = _make_extractor()
        plain = extractor.extract_result("5 days in London").confidence
        chatty = extractor.extract_result("I'd like a romantic 5 days in London").confidence
        assert chatty < plain

    def test_empty_plan(self):
        """No destinations means failure with the base score."""
        result = _make_extractor().extract_result("hello there")
        assert result.success is False
        assert result.error == "No destinations with a resolvable duration found"
        assert result.confidence == 0.4

    def test_bounded(self):
        """Confidence stays within [0, 1]."""
        plan = TripPlan.build([Destination(city="Paris", days=3)], origin="Rome")
        score = calculate_confidence(Extraction(plan=plan), "Paris")
        assert 0.0 <= score <= 1.0


class TestSplitEvenly:
    """Tests for split_evenly."""

    def test_split(self):
        """Remainder goes to the earliest cities."""
        assert split_evenly(7, ["a", "b"]) == {"a": 4, "b": 3}

    def test_too_few_days(self):
        """Fewer days than cities cannot be split."""
        assert split_evenly(1, ["a", "b"]) == {}
        assert split_evenly(5, []) == {}

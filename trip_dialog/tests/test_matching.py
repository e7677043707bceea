"""
Unit tests for duration phrases and city matching.

Tests the duration vocabulary, the phrases that must not count as a trip
length, and the pattern-based city matcher.
"""

from trip_dialog.parsing.durations import find_durations, parse_duration
from trip_dialog.parsing.matcher import PatternCityMatcher, trim_place_phrase


class TestParseDuration:
    """Tests for parse_duration and find_durations."""

    def test_numeric_days(self):
        """Digits followed by a day unit."""
        assert parse_duration("5 days") == 5
        assert parse_duration("1 day") == 1

    def test_weeks_and_written_numbers(self):
        """Written numbers and week units multiply out."""
        assert parse_duration("a week") == 7
        assert parse_duration("two weeks") == 14
        assert parse_duration("fortnight") == 14

    def test_weekend_counts_three_days(self):
        """A weekend is three days."""
        assert parse_duration("weekend") == 3
        assert parse_duration("a weekend") == 3

    def test_hyphenated_form(self):
        """'10-day' reads as ten days."""
        assert parse_duration("a 10-day trip") == 10

    def test_nights_count_as_days(self):
        """Nights are counted one-to-one."""
        assert parse_duration("3 nights") == 3

    def test_intervening_word(self):
        """'2 more days' is still two days."""
        assert parse_duration("2 more days") == 2

    def test_no_duration_returns_none(self):
        """Text without a duration returns None."""
        assert parse_duration("London please") is None
        assert parse_duration("today") is None

    def test_relative_time_is_not_a_duration(self):
        """'next week' names a point in time."""
        assert find_durations("next week in Tokyo") == []
        assert find_durations("this weekend") == []

    def test_vague_amount_is_not_a_duration(self):
        """'a few days' has no count."""
        assert find_durations("a few days in Rome") == []

    def test_rate_is_not_a_duration(self):
        """'$100 a day' is a price."""
        assert find_durations("about $100 a day") == []

    def test_zero_and_negative_are_returned(self):
        """Invalid counts are reported so callers can reject them."""
        assert [d.days for d in find_durations("0 days in Paris")] == [0]
        assert [d.days for d in find_durations("-2 days")] == [-2]

    def test_mentions_are_in_order(self):
        """Mentions keep their text order and spans."""
        text = "5 days in London and 3 days in Paris"
        mentions = find_durations(text)
        assert [m.days for m in mentions] == [5, 3]
        assert text[mentions[1].start:mentions[1].end] == "3 days"
        assert all(m.has_number for m in mentions)


class TestPatternCityMatcher:
    """Tests for the default city matcher."""

    def test_known_cities_any_case(self):
        """Known cities match case-insensitively and are capitalized."""
        matcher = PatternCityMatcher()
        mentions = matcher.find_cities("5 days in paris and 3 in ROME")
        assert [m.name for m in mentions] == ["Paris", "Rome"]

    def test_longer_name_wins(self):
        """'Rio de Janeiro' is one city, not 'Rio'."""
        matcher = PatternCityMatcher()
        mentions = matcher.find_cities("a week in Rio de Janeiro")
        assert [m.name for m in mentions] == ["Rio De Janeiro"]

    def test_unknown_capitalized_city_after_anchor(self):
        """Capitalized phrases after a location anchor are cities."""
        matcher = PatternCityMatcher()
        mentions = matcher.find_cities("4 days in Ubud")
        assert [m.name for m in mentions] == ["Ubud"]

    def test_short_candidates_dropped(self):
        """Candidates shorter than three letters are dropped."""
        matcher = PatternCityMatcher()
        assert matcher.find_cities("2 days in Xi") == []

    def test_regions_are_not_cities(self):
        """Vague regions are reported separately."""
        matcher = PatternCityMatcher()
        assert matcher.find_cities("I want to go to Europe") == []
        assert matcher.find_regions("I want to go to Europe") == ["Europe"]
        assert matcher.is_region("southeast asia") is True

    def test_every_mention_returned(self):
        """Repeated names yield one mention each, ordered by position."""
        matcher = PatternCityMatcher()
        mentions = matcher.find_cities("Lisbon and Granada, 10 days lisbon")
        assert [m.key for m in mentions] == ["lisbon", "granada", "lisbon"]
        assert mentions[0].start < mentions[1].start < mentions[2].start

    def test_exclude_spans(self):
        """Mentions inside an excluded span are skipped."""
        matcher = PatternCityMatcher()
        text = "London from Paris"
        start = text.index("Paris")
        mentions = matcher.find_cities(text, exclude_spans=[(start, start + 5)])
        assert [m.name for m in mentions] == ["London"]

    def test_custom_known_cities(self):
        """A matcher can be built from a custom gazetteer."""
        matcher = PatternCityMatcher(known_cities=["hobbiton"], regions=[])
        assert [m.name for m in matcher.find_cities("visiting hobbiton")] == ["Hobbiton"]

    def test_same_city_is_tolerant(self):
        """Substring matches count as the same city."""
        matcher = PatternCityMatcher()
        assert matcher.same_city("New York", "new york city") is True
        assert matcher.same_city("Paris", "Rome") is False


class TestTrimPlacePhrase:
    """Tests for trim_place_phrase."""

    def test_cuts_at_stopword(self):
        """Trailing capitalized stopwords are removed."""
        assert trim_place_phrase("Paris Then") == "Paris"
        assert trim_place_phrase("New York") == "New York"

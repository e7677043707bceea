"""
City matching.

City resolution is string-level: case-insensitive and tolerant of
substrings, with no gazetteer lookup. The matcher is a pluggable
component so a stricter, gazetteer-backed implementation can replace
PatternCityMatcher without touching the extractors or the classifier.
"""

import logging
import re
import string
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from trip_dialog.shared.contracts.trip_plan import city_key, cities_match


logger = logging.getLogger(__name__)


KNOWN_CITIES: Tuple[str, ...] = (
    "london", "paris", "tokyo", "rome", "barcelona", "amsterdam", "berlin",
    "dubai", "singapore", "bangkok", "lisbon", "granada", "madrid", "milan",
    "vienna", "prague", "budapest", "istanbul", "cairo", "sydney", "melbourne",
    "san francisco", "los angeles", "new york", "chicago", "miami", "seattle",
    "boston", "toronto", "vancouver", "mexico city", "buenos aires", "rio",
    "rio de janeiro", "sao paulo", "lima", "bogota", "athens", "copenhagen",
    "stockholm", "oslo", "helsinki", "reykjavik", "dublin", "edinburgh",
    "munich", "frankfurt", "zurich", "geneva", "brussels", "luxembourg",
    "monaco", "venice", "florence", "naples", "porto", "seville", "valencia",
    "bilbao", "krakow", "warsaw", "st petersburg", "beijing", "shanghai",
    "hong kong", "taipei", "seoul", "osaka", "kyoto", "delhi", "mumbai",
    "bangalore", "jakarta", "manila", "kuala lumpur", "ho chi minh", "hanoi",
    "phnom penh", "colombo", "kathmandu", "tel aviv", "jerusalem", "amman",
    "beirut", "doha", "abu dhabi", "muscat", "casablanca", "marrakech",
    "tunis", "johannesburg", "cape town", "nairobi", "lagos", "accra",
)

# Vague regions are never destinations on their own
REGIONS: Tuple[str, ...] = (
    "europe", "asia", "africa", "america", "north america", "south america",
    "central america", "latin america", "australia", "antarctica", "oceania",
    "scandinavia", "the caribbean", "caribbean", "middle east",
    "southeast asia", "the balkans", "balkans",
)

# Capitalized words that are never part of a place name
STOPWORDS = {
    "i", "i'm", "i'd", "i'll", "im", "id", "we", "we're", "we'd", "my", "our",
    "me", "us", "you", "the", "a", "an", "it", "its", "this", "that", "then",
    "and", "or", "but", "also", "please", "thanks", "thank", "hi", "hello",
    "hey", "can", "could", "would", "should", "what", "which", "where", "when",
    "how", "who", "why", "is", "are", "do", "does", "let", "lets", "let's",
    "add", "remove", "drop", "change", "make", "extend", "shorten", "swap",
    "replace", "actually", "instead", "plan", "trip", "visit", "day", "days",
    "week", "weeks", "weekend", "month", "night", "nights",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december", "christmas", "easter",
}

MIN_CITY_LENGTH = 3

_NAME_WORD = r"[A-Z][A-Za-z'.-]*"
_NAME = _NAME_WORD + r"(?:[ \t]+" + _NAME_WORD + r")*"

# Capitalized phrases that follow a location anchor
CANDIDATE_PATTERN = re.compile(
    r"(?:(?i:\b(?:in|to|visit|visiting|explore|exploring|across|through|"
    r"include|including|and|then|around|see|seeing|spend|spending|at))[ \t]+"
    r"|,[ \t]*|&[ \t]*)"
    r"(?P<name>" + _NAME + r")"
)


@dataclass(frozen=True)
class CityMention:
    """One occurrence of a city name in the input text."""

    name: str
    start: int
    end: int

    @property
    def key(self) -> str:
        return city_key(self.name)


def trim_place_phrase(phrase: str) -> str:
    """Cut a capitalized phrase at its first stopword."""
    words = phrase.split()
    kept: List[str] = []
    for word in words:
        if word.lower().strip(".,'") in STOPWORDS:
            break
        kept.append(word)
    return " ".join(kept).rstrip(".'")


def _overlaps(start: int, end: int, spans: Iterable[Tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def _word_pattern(name: str) -> "re.Pattern[str]":
    words = [re.escape(word) for word in name.split()]
    return re.compile(r"(?<![\w])" + r"\s+".join(words) + r"(?![\w])", re.IGNORECASE)


class CityMatcher:
    """
    Interface for locating city names in text.

    Implementations return every mention of every city they recognize,
    ordered by position, so callers can bind durations to nearby mentions.
    """

    def find_cities(
        self,
        text: str,
        exclude_spans: Sequence[Tuple[int, int]] = (),
    ) -> List[CityMention]:
        raise NotImplementedError

    def find_regions(self, text: str) -> List[str]:
        return []

    def is_region(self, name: str) -> bool:
        return False

    def same_city(self, a: str, b: str) -> bool:
        return cities_match(a, b)

    def has_cities(self, text: str) -> bool:
        return bool(self.find_cities(text))


class PatternCityMatcher(CityMatcher):
    """
    Default matcher: a known-city list plus capitalized phrases after
    location anchors ("in", "to", "visit", list separators).

    Known cities are matched case-insensitively anywhere in the text.
    Unknown capitalized candidates that are too short, are stopwords, or
    name a region are dropped and logged.
    """

    def __init__(
        self,
        known_cities: Optional[Iterable[str]] = None,
        regions: Optional[Iterable[str]] = None,
    ):
        self.known_cities = tuple(known_cities if known_cities is not None else KNOWN_CITIES)
        self.regions = tuple(regions if regions is not None else REGIONS)
        self._region_keys = {city_key(r) for r in self.regions}
        # Longest names first so "rio de janeiro" wins over "rio"
        self._known_patterns = [
            (name, _word_pattern(name))
            for name in sorted(self.known_cities, key=len, reverse=True)
        ]
        self._region_patterns = [
            (name, _word_pattern(name))
            for name in sorted(self.regions, key=len, reverse=True)
        ]

    def is_region(self, name: str) -> bool:
        return city_key(name) in self._region_keys

    def find_regions(self, text: str) -> List[str]:
        found: List[Tuple[int, str]] = []
        taken: List[Tuple[int, int]] = []
        for name, pattern in self._region_patterns:
            for match in pattern.finditer(text):
                if _overlaps(match.start(), match.end(), taken):
                    continue
                taken.append((match.start(), match.end()))
                found.append((match.start(), string.capwords(name)))
        return [name for _, name in sorted(found)]

    def _candidate_names(
        self,
        text: str,
        exclude_spans: Sequence[Tuple[int, int]],
    ) -> List[str]:
        names: List[str] = []
        seen = set()

        for name, pattern in self._known_patterns:
            for match in pattern.finditer(text):
                if _overlaps(match.start(), match.end(), exclude_spans):
                    continue
                key = city_key(name)
                if key not in seen:
                    seen.add(key)
                    names.append(string.capwords(name))
                break

        for match in CANDIDATE_PATTERN.finditer(text):
            start = match.start("name")
            raw = trim_place_phrase(match.group("name"))
            if not raw:
                continue
            if _overlaps(start, start + len(raw), exclude_spans):
                continue
            key = city_key(raw)
            if key in seen or any(cities_match(key, known) for known in seen):
                continue
            if len(raw) < MIN_CITY_LENGTH:
                logger.debug(f"[matcher] Dropped short candidate '{raw}'")
                continue
            if self.is_region(raw):
                logger.debug(f"[matcher] Dropped region '{raw}'")
                continue
            seen.add(key)
            names.append(raw)

        return names

    def find_cities(
        self,
        text: str,
        exclude_spans: Sequence[Tuple[int, int]] = (),
    ) -> List[CityMention]:
        """
        Return every mention of every recognized city, ordered by position.

        Mentions inside exclude_spans (for example the origin phrase) are
        skipped. When two names overlap, the longer one wins.
        """
        names = self._candidate_names(text, exclude_spans)
        mentions: List[CityMention] = []
        taken: List[Tuple[int, int]] = list(exclude_spans)

        for name in sorted(names, key=len, reverse=True):
            for match in _word_pattern(name).finditer(text):
                if _overlaps(match.start(), match.end(), taken):
                    continue
                taken.append((match.start(), match.end()))
                mentions.append(CityMention(name=name, start=match.start(), end=match.end()))

        mentions.sort(key=lambda m: m.start)
        return mentions

"""
Duration phrase parsing.

Maps phrases like "5 days", "a week", "10-day", "weekend" or "two weeks"
to a day count. Relative time words ("next week", "this weekend") and
vague amounts ("a few days") are not durations.
"""

import re
from dataclasses import dataclass
from typing import List, Optional


NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}

UNIT_DAYS = {
    "day": 1,
    "night": 1,
    "week": 7,
    "weekend": 3,
    "fortnight": 14,
    "month": 30,
}

_NUMBER_ALTERNATION = "|".join(sorted(NUMBER_WORDS, key=len, reverse=True))

DURATION_PATTERN = re.compile(
    r"(?<![\w$€£-])"
    r"(?:(?P<num>-?\d+|" + _NUMBER_ALTERNATION + r")\s*-?\s*"
    r"(?:(?:more|extra|additional|fewer|less|full|whole)\s+)?)?"
    r"(?P<unit>days?|nights?|weekends?|weeks?|fortnights?|months?)\b",
    re.IGNORECASE,
)

# Words that turn a unit into a point in time or a rate, not a trip length
RELATIVE_WORDS = {"next", "this", "last", "per", "every", "each", "coming", "that"}

# Words that make the amount vague
VAGUE_WORDS = {"few", "several", "some", "many", "couple", "of", "more", "extra", "fewer", "less"}

_PREVIOUS_WORD = re.compile(r"([A-Za-z]+)\W*$")
_PRICE_BEFORE = re.compile(r"[\d$€£]\s*$")


@dataclass(frozen=True)
class DurationMention:
    """A duration phrase found in text, with its span and day count."""

    start: int
    end: int
    days: int
    text: str
    has_number: bool


def _unit_days(unit: str) -> int:
    unit = unit.lower()
    if unit.endswith("s"):
        unit = unit[:-1]
    return UNIT_DAYS[unit]


def _number_value(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    raw = raw.lower()
    if raw in NUMBER_WORDS:
        return NUMBER_WORDS[raw]
    return int(raw)


def find_durations(text: str) -> List[DurationMention]:
    """
    Find every duration phrase in text, in order of appearance.

    Zero and negative counts are returned as-is so callers can reject
    them explicitly.
    """
    mentions: List[DurationMention] = []

    for match in DURATION_PATTERN.finditer(text):
        prefix = text[: match.start()]
        previous = _PREVIOUS_WORD.search(prefix)
        previous_word = previous.group(1).lower() if previous else ""
        raw_number = match.group("num")

        if raw_number is None and previous_word in RELATIVE_WORDS | VAGUE_WORDS:
            continue
        if raw_number and raw_number.lower() in ("a", "an") and _PRICE_BEFORE.search(prefix):
            # "$100 a day" is a rate
            continue

        number = _number_value(raw_number)
        days = (number if number is not None else 1) * _unit_days(match.group("unit"))

        mentions.append(
            DurationMention(
                start=match.start(),
                end=match.end(),
                days=days,
                text=match.group(0),
                has_number=number is not None,
            )
        )

    return mentions


def parse_duration(phrase: str) -> Optional[int]:
    """
    Convert a single duration phrase into days.

    Returns None when the phrase holds no recognizable duration.

    >>> parse_duration("a week")
    7
    >>> parse_duration("weekend")
    3
    """
    mentions = find_durations(phrase)
    if not mentions:
        return None
    return mentions[0].days

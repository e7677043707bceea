"""
Preference and constraint extraction.

Pure keyword matching against curated lists, plus adjacent-number
heuristics for budget and duration ceilings. Always runs, regardless of
how the input was classified; there is no AI fallback here.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from trip_dialog.parsing.durations import find_durations
from trip_dialog.parsing.schemas import Constraint, PreferenceExtraction


logger = logging.getLogger(__name__)


# Normalized tag -> phrases that signal it
PREFERENCE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "romantic": ("romantic", "honeymoon", "anniversary", "couples", "romance"),
    "budget-friendly": (
        "budget-friendly", "budget friendly", "cheap", "affordable",
        "inexpensive", "on a budget", "low cost", "low-cost", "backpacking",
    ),
    "luxury": ("luxury", "luxurious", "five-star", "5-star", "upscale", "high-end"),
    "beach": ("beach", "beaches", "seaside", "coast", "coastal", "island"),
    "cultural": (
        "cultural", "culture", "museum", "museums", "history", "historic",
        "historical", "art", "architecture", "heritage",
    ),
    "adventure": ("adventure", "adventurous", "hiking", "trekking", "diving", "surfing"),
    "foodie": ("food", "foodie", "cuisine", "restaurants", "culinary", "street food", "wine"),
    "nightlife": ("nightlife", "clubs", "bars", "party", "partying"),
    "nature": ("nature", "mountains", "national park", "national parks", "wildlife", "scenic"),
    "family-friendly": ("family", "kids", "children", "family-friendly", "family friendly"),
    "relaxing": ("relaxing", "relax", "slow pace", "laid-back", "laid back", "spa", "chill"),
}

ACCESSIBILITY_TERMS: Dict[str, Tuple[str, ...]] = {
    "wheelchair": ("wheelchair",),
    "limited mobility": ("limited mobility", "mobility issues", "can't walk far", "cannot walk far"),
    "step-free access": ("step-free", "step free", "no stairs", "elevator"),
    "visual impairment": ("visually impaired", "blind", "visual impairment"),
    "hearing impairment": ("hearing impaired", "deaf", "hearing impairment"),
}

DIETARY_TERMS: Dict[str, Tuple[str, ...]] = {
    "vegetarian": ("vegetarian",),
    "vegan": ("vegan",),
    "gluten-free": ("gluten-free", "gluten free", "celiac", "coeliac"),
    "halal": ("halal",),
    "kosher": ("kosher",),
    "nut allergy": ("nut allergy", "peanut allergy", "allergic to nuts", "allergic to peanuts"),
    "lactose-free": ("lactose", "dairy-free", "dairy free"),
}

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "¥": "JPY"}

CURRENCY_CODES = ("USD", "EUR", "GBP", "JPY", "AUD", "CAD", "CHF", "SGD")

_AMOUNT = r"(?P<amount>\d[\d,]*(?:\.\d+)?)\s*(?P<suffix>k\b)?"

BUDGET_PATTERN = re.compile(
    r"(?:(?P<qualifier>under|below|less\s+than|max(?:imum)?|at\s+most|up\s+to|"
    r"no\s+more\s+than|within|around|about)\s+)?"
    r"(?:(?P<symbol>[$€£¥])\s*" + _AMOUNT + r"|"
    + _AMOUNT.replace("amount", "amount2").replace("suffix", "suffix2")
    + r"\s*(?P<code>" + "|".join(CURRENCY_CODES) + r"|dollars|euros|pounds)\b)",
    re.IGNORECASE,
)

BUDGET_KEYWORD_PATTERN = re.compile(
    r"\bbudget\s+(?:of|is|around|about|under|max)?\s*(?P<amount>\d[\d,]*(?:\.\d+)?)\s*(?P<suffix>k\b)?",
    re.IGNORECASE,
)

DURATION_CEILING_PATTERN = re.compile(
    r"\b(?:no\s+more\s+than|at\s+most|max(?:imum)?|up\s+to|not\s+longer\s+than)\s+$",
    re.IGNORECASE,
)

HIGH_PRIORITY_PATTERN = re.compile(
    r"\b(?:must|need|needs|required|requires|strict|strictly|essential|"
    r"absolutely|can't|cannot|severe)\b",
    re.IGNORECASE,
)

LOW_PRIORITY_PATTERN = re.compile(r"\b(?:ideally|if\s+possible|preferably|nice\s+to\s+have)\b", re.IGNORECASE)

_WORD_NAMES = {"dollars": "USD", "euros": "EUR", "pounds": "GBP"}


def _contains_phrase(lower_text: str, phrase: str) -> bool:
    return re.search(r"(?<![\w-])" + re.escape(phrase) + r"(?![\w-])", lower_text) is not None


def _parse_amount(raw: str, suffix: Optional[str]) -> float:
    value = float(raw.replace(",", ""))
    if suffix:
        value *= 1000
    return value


def _number(value: float):
    return int(value) if value == int(value) else value


class PreferenceExtractor:
    """
    Extract soft preferences and hard constraints from free text.

    Example:
        >>> result = PreferenceExtractor().extract("romantic beach trip under $2000")
        >>> sorted(result.preferences)
        ['beach', 'romantic']
        >>> result.constraints[0].value
        2000
    """

    def extract(self, text: str) -> PreferenceExtraction:
        lower_text = text.lower()
        priority = self._priority(text)

        preferences = {
            tag
            for tag, phrases in PREFERENCE_KEYWORDS.items()
            if any(_contains_phrase(lower_text, phrase) for phrase in phrases)
        }

        constraints: List[Constraint] = []
        constraints.extend(self._budget_constraints(text))
        constraints.extend(self._duration_constraints(text))

        for value, phrases in ACCESSIBILITY_TERMS.items():
            if any(_contains_phrase(lower_text, phrase) for phrase in phrases):
                constraints.append(Constraint(type="accessibility", value=value, priority="high"))

        for value, phrases in DIETARY_TERMS.items():
            if any(_contains_phrase(lower_text, phrase) for phrase in phrases):
                constraints.append(Constraint(type="dietary", value=value, priority="high"))

        # Budget and duration ceilings take the priority the wording implies
        for constraint in constraints:
            if constraint.type in ("budget", "duration"):
                constraint.priority = priority

        if preferences or constraints:
            logger.debug(
                f"[preferences] Extracted preferences={sorted(preferences)}, "
                f"constraints={[c.key() for c in constraints]}"
            )

        return PreferenceExtraction(preferences=preferences, constraints=constraints)

    def _priority(self, text: str) -> str:
        if HIGH_PRIORITY_PATTERN.search(text):
            return "high"
        if LOW_PRIORITY_PATTERN.search(text):
            return "low"
        return "medium"

    def _budget_constraints(self, text: str) -> List[Constraint]:
        constraints: List[Constraint] = []

        for match in BUDGET_PATTERN.finditer(text):
            if match.group("symbol"):
                amount = _parse_amount(match.group("amount"), match.group("suffix"))
                unit = CURRENCY_SYMBOLS[match.group("symbol")]
            else:
                amount = _parse_amount(match.group("amount2"), match.group("suffix2"))
                code = match.group("code").lower()
                unit = _WORD_NAMES.get(code, code.upper())
            if amount <= 0:
                continue
            # "$100 a day" is a rate, not a ceiling
            tail = text[match.end(): match.end() + 12].lower()
            if re.match(r"\s*(?:a|per)\s+(?:day|night|person)\b", tail):
                continue
            constraints.append(Constraint(type="budget", value=_number(amount), unit=unit))
            return constraints

        match = BUDGET_KEYWORD_PATTERN.search(text)
        if match:
            amount = _parse_amount(match.group("amount"), match.group("suffix"))
            if amount > 0:
                constraints.append(Constraint(type="budget", value=_number(amount), unit="USD"))
        return constraints

    def _duration_constraints(self, text: str) -> List[Constraint]:
        constraints: List[Constraint] = []
        for mention in find_durations(text):
            if mention.days <= 0:
                continue
            if DURATION_CEILING_PATTERN.search(text[: mention.start]):
                constraints.append(Constraint(type="duration", value=mention.days, unit="days"))
        return constraints

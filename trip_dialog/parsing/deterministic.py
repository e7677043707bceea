"""
Deterministic trip extractor.

Pattern-based extraction of destinations, per-destination days, origin
and aggregate duration. Makes no external calls and never raises on
malformed input: unparseable text yields an empty destination list.

Binding policy for durations, strongest first:
- explicit per-city counts ("10 days Lisbon", "Paris for 3 days")
- aggregate counts over a city list ("2 weeks in Lisbon and Granada"),
  split evenly across the listed cities that have no explicit count
- a stated total with no city attached, split across the rest
Cities left without days are reported as pending, never stored.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from trip_dialog.parsing.durations import DurationMention, find_durations
from trip_dialog.parsing.matcher import (
    CityMatcher,
    CityMention,
    PatternCityMatcher,
    STOPWORDS,
    trim_place_phrase,
)
from trip_dialog.parsing.schemas import Classification, ParseResult
from trip_dialog.parsing.signals import (
    expects_multiple_destinations,
    has_natural_language,
)
from trip_dialog.shared.contracts.trip_plan import (
    FLAG_DROPPED_INVALID_DAYS,
    Destination,
    TripPlan,
)


logger = logging.getLogger(__name__)


ORIGIN_PATTERN = re.compile(
    r"(?i:\b(?:flying\s+(?:from|out\s+of)|departing(?:\s+from)?|leaving(?:\s+from)?|"
    r"starting\s+(?:from|in)|coming\s+from|based\s+in|currently\s+in|living\s+in|"
    r"from))[ \t]+"
    r"(?P<origin>[A-Z][A-Za-z.'-]*(?:[ \t]+[A-Z][A-Za-z.'-]*)*)"
)

BARE_NUMBER_PATTERN = re.compile(r"(?<![\w$€£.,-])(?P<num>\d{1,3})(?![\w%$€£.,]|\s*[kK]\b)")

# Text allowed between a duration and the city that follows it
BEFORE_GAP_PATTERN = re.compile(
    r"^\s*(?:each\s+)?(?:(?:split|spread|divided)\s+)?"
    r"(?:(?P<prep>in|at|to|around|across|between|through|covering|visiting|exploring|of|for)\s+)?$",
    re.IGNORECASE,
)

# Text allowed between a bare number and the city that follows it ("4 granada", "3 in Florence")
BARE_BEFORE_GAP_PATTERN = re.compile(r"^\s+(?:(?:in|at)\s+)?$", re.IGNORECASE)

# Text allowed between a city and the duration that follows it
AFTER_GAP_PATTERN = re.compile(r"^\s*(?:(?P<prep>for)|[:(-])?\s*$", re.IGNORECASE)
AFTER_GAP_EACH_PATTERN = re.compile(r"^\s*[,:]?\s*(?:(?P<prep>for)\s+)?$", re.IGNORECASE)

RUN_CONNECTOR_PATTERN = re.compile(r"^\s*(?:,|&|and|then|,\s*and|,\s*then|and\s+then)\s*$", re.IGNORECASE)

EACH_PATTERN = re.compile(r"^\s*(?:each|apiece|per\s+city|in\s+each)\b", re.IGNORECASE)

SCORE_BEFORE_PREP = 3
SCORE_AFTER_FOR = 3
SCORE_AFTER_BARE = 2
SCORE_BEFORE_BARE = 1


@dataclass
class _Amount:
    """A positive day count found in the text (unit phrase or bare number)."""

    start: int
    end: int
    days: int
    has_unit: bool


@dataclass
class _Binding:
    amount: _Amount
    mention_index: int
    direction: str
    group: List[str] = field(default_factory=list)
    each: bool = False


@dataclass
class Extraction:
    """Everything the extractor resolved from one input, before scoring."""

    plan: TripPlan
    explicit_cities: List[str] = field(default_factory=list)
    split_cities: List[str] = field(default_factory=list)
    dropped_amounts: List[int] = field(default_factory=list)
    mentions: List[CityMention] = field(default_factory=list)


def calculate_confidence(
    extraction: Extraction,
    text: str,
    classification: Optional[Classification] = None,
) -> float:
    """
    Heuristic confidence for a deterministic extraction.

    Non-decreasing in the corroborating signals: destinations found,
    origin present, every destination with explicit days, totals
    consistent.
    """
    plan = extraction.plan
    confidence = 0.4

    if plan.destinations:
        confidence += 0.2
    if plan.origin:
        confidence += 0.15
    if plan.destinations and not extraction.split_cities and not plan.pending_cities:
        confidence += 0.15
    if plan.is_consistent and not plan.flags:
        confidence += 0.1

    natural = (
        classification.features.get("has_natural_language", False)
        if classification is not None
        else has_natural_language(text)
    )
    if natural:
        confidence -= 0.3

    multiple = (
        classification.features.get("has_multi_destinations", False)
        if classification is not None
        else expects_multiple_destinations(text)
    )
    if multiple and len(plan.destinations) + len(plan.pending_cities) < 2:
        confidence -= 0.2

    return round(max(0.0, min(1.0, confidence)), 4)


def split_evenly(total: int, cities: List[str]) -> Dict[str, int]:
    """Split total days across cities; the remainder goes to the earliest ones."""
    if not cities or total < len(cities):
        return {}
    base, remainder = divmod(total, len(cities))
    return {
        city: base + (1 if index < remainder else 0)
        for index, city in enumerate(cities)
    }


class DeterministicExtractor:
    """
    Pattern-based extractor.

    Example:
        >>> plan = DeterministicExtractor().extract("5 days in London and 3 days in Paris")
        >>> [(d.city, d.days) for d in plan.destinations]
        [('London', 5), ('Paris', 3)]
    """

    def __init__(self, matcher: Optional[CityMatcher] = None):
        self.matcher = matcher or PatternCityMatcher()

    def extract(self, text: str) -> TripPlan:
        """Extract a (possibly partial) trip plan. Never raises."""
        return self.extract_details(text).plan

    def extract_result(
        self,
        text: str,
        classification: Optional[Classification] = None,
    ) -> ParseResult:
        """Extract and score, wrapped as a ParseResult with source=deterministic."""
        start_time = time.time()
        extraction = self.extract_details(text)
        plan = extraction.plan
        confidence = calculate_confidence(extraction, text, classification)
        success = bool(plan.destinations)

        return ParseResult(
            success=success,
            confidence=confidence,
            source="deterministic",
            plan=plan,
            error=None if success else "No destinations with a resolvable duration found",
            classification=classification,
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    def extract_details(self, text: str) -> Extraction:
        try:
            return self._extract(text or "")
        except Exception as e:
            # Malformed input must never surface as an exception
            logger.exception(f"[extractor=deterministic] Extraction failed: {e}")
            return Extraction(plan=TripPlan.build(destinations=[]))

    def find_origin(self, text: str) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
        """Return the origin city and its span, or (None, None)."""
        for match in ORIGIN_PATTERN.finditer(text):
            origin = trim_place_phrase(match.group("origin"))
            if not origin or origin.lower() in STOPWORDS:
                continue
            if self.matcher.is_region(origin):
                continue
            start = match.start("origin")
            return origin, (start, start + len(origin))
        return None, None

    def _extract(self, text: str) -> Extraction:
        origin, origin_span = self.find_origin(text)
        exclude = [origin_span] if origin_span else []
        mentions = self.matcher.find_cities(text, exclude_spans=exclude)

        amounts, dropped = self._find_amounts(text, mentions)
        if dropped:
            logger.info(f"[extractor=deterministic] Discarded invalid day counts: {dropped}")

        # Distinct cities in order of first mention
        order: List[str] = []
        names: Dict[str, str] = {}
        for mention in mentions:
            if mention.key not in names:
                names[mention.key] = mention.name
                order.append(mention.key)

        runs = self._runs(text, mentions)
        explicit: Dict[str, int] = {}
        groups: List[_Binding] = []
        unbound: List[_Amount] = []

        for amount in amounts:
            binding = self._bind(text, amount, mentions)
            if binding is None:
                unbound.append(amount)
                continue

            run = runs[binding.mention_index]
            anchor_key = mentions[binding.mention_index].key
            is_group_anchor = len(run) > 1 and (
                (binding.direction == "before" and run[0] == binding.mention_index)
                or (binding.direction == "after" and run[-1] == binding.mention_index)
            )

            if binding.each or is_group_anchor:
                group_keys: List[str] = []
                for index in run:
                    if mentions[index].key not in group_keys:
                        group_keys.append(mentions[index].key)
                binding.group = group_keys
                groups.append(binding)
            elif anchor_key in explicit:
                logger.debug(
                    f"[extractor=deterministic] Ignoring second count {amount.days} "
                    f"for {names[anchor_key]}"
                )
            else:
                explicit[anchor_key] = amount.days

        resolved: Dict[str, int] = dict(explicit)
        split_keys: List[str] = []
        stated_total: Optional[int] = None

        for binding in groups:
            keys = binding.group
            if binding.each:
                for key in keys:
                    resolved.setdefault(key, binding.amount.days)
                group_total = binding.amount.days * len(keys)
            else:
                group_total = binding.amount.days
                open_keys = [k for k in keys if k not in resolved]
                remaining = group_total - sum(resolved[k] for k in keys if k in resolved)
                shares = split_evenly(remaining, open_keys)
                if shares:
                    resolved.update(shares)
                    split_keys.extend(open_keys)
                elif open_keys:
                    anchor_key = mentions[binding.mention_index].key
                    if anchor_key in open_keys:
                        resolved[anchor_key] = group_total
            if set(keys) == set(order) and stated_total is None:
                stated_total = group_total

        if unbound:
            if len(unbound) > 1:
                logger.debug(
                    f"[extractor=deterministic] {len(unbound)} unbound durations, "
                    f"using the first as the stated total"
                )
            global_total = unbound[0].days
            if stated_total is None:
                stated_total = global_total
            open_keys = [k for k in order if k not in resolved]
            shares = split_evenly(global_total - sum(resolved.values()), open_keys)
            resolved.update(shares)
            split_keys.extend(shares.keys())

        destinations = [
            Destination(city=names[key], days=resolved[key])
            for key in order
            if resolved.get(key, 0) > 0
        ]
        pending = [names[key] for key in order if resolved.get(key, 0) <= 0]

        if pending:
            logger.info(f"[extractor=deterministic] Cities without days: {pending}")

        plan = TripPlan.build(
            destinations=destinations,
            origin=origin,
            stated_total_days=stated_total,
            pending_cities=pending,
            flags=[FLAG_DROPPED_INVALID_DAYS] if dropped else [],
        )

        return Extraction(
            plan=plan,
            explicit_cities=[names[k] for k in order if k in explicit],
            split_cities=[names[k] for k in split_keys],
            dropped_amounts=dropped,
            mentions=mentions,
        )

    def _find_amounts(
        self,
        text: str,
        mentions: List[CityMention],
    ) -> Tuple[List[_Amount], List[int]]:
        durations: List[DurationMention] = find_durations(text)
        amounts: List[_Amount] = []
        dropped: List[int] = []
        taken = [(d.start, d.end) for d in durations]

        for duration in durations:
            if duration.days <= 0:
                dropped.append(duration.days)
                continue
            amounts.append(_Amount(duration.start, duration.end, duration.days, has_unit=True))

        # A bare number only counts right next to a city ("4 granada", "3 in Florence", "Paris for 3")
        for match in BARE_NUMBER_PATTERN.finditer(text):
            start, end = match.start(), match.end()
            if any(start < t_end and t_start < end for t_start, t_end in taken):
                continue
            value = int(match.group("num"))
            following = next((m for m in mentions if m.start >= end), None)
            preceding = next((m for m in reversed(mentions) if m.end <= start), None)
            before_ok = following is not None and BARE_BEFORE_GAP_PATTERN.match(text[end:following.start])
            after_ok = preceding is not None and re.fullmatch(
                r"\s+for\s+", text[preceding.end:start], re.IGNORECASE
            )
            if not (before_ok or after_ok):
                continue
            if value <= 0:
                dropped.append(value)
                continue
            amounts.append(_Amount(start, end, value, has_unit=False))

        amounts.sort(key=lambda a: a.start)
        return amounts, dropped

    def _bind(
        self,
        text: str,
        amount: _Amount,
        mentions: List[CityMention],
    ) -> Optional[_Binding]:
        each = bool(EACH_PATTERN.match(text[amount.end:]))
        best: Optional[Tuple[int, int, str]] = None

        following = next((i for i, m in enumerate(mentions) if m.start >= amount.end), None)
        if following is not None:
            gap = text[amount.end:mentions[following].start]
            match = BEFORE_GAP_PATTERN.match(gap)
            if match:
                score = SCORE_BEFORE_PREP if match.group("prep") else SCORE_BEFORE_BARE
                best = (score, following, "before")

        preceding = next(
            (i for i in range(len(mentions) - 1, -1, -1) if mentions[i].end <= amount.start),
            None,
        )
        if preceding is not None:
            gap = text[mentions[preceding].end:amount.start]
            pattern = AFTER_GAP_EACH_PATTERN if each else AFTER_GAP_PATTERN
            match = pattern.match(gap)
            if match and (amount.has_unit or match.group("prep")):
                score = SCORE_AFTER_FOR if match.group("prep") else SCORE_AFTER_BARE
                # Ties go to the city that follows
                if best is None or score > best[0]:
                    best = (score, preceding, "after")

        if best is None:
            return None
        if (
            not amount.has_unit
            and best[2] == "before"
            and not BARE_BEFORE_GAP_PATTERN.match(text[amount.end:mentions[best[1]].start])
        ):
            return None
        return _Binding(amount=amount, mention_index=best[1], direction=best[2], each=each)

    def _runs(self, text: str, mentions: List[CityMention]) -> List[List[int]]:
        """For each mention, the list of mention indices in its connector-joined run."""
        runs: List[List[int]] = []
        current: List[int] = []
        for index, mention in enumerate(mentions):
            if current:
                gap = text[mentions[current[-1]].end:mention.start]
                if not RUN_CONNECTOR_PATTERN.match(gap):
                    runs.extend([current] * len(current))
                    current = []
            current.append(index)
        if current:
            runs.extend([current] * len(current))
        return runs

"""
Modification resolver.

Interprets a modification request against the current plan and produces
a PlanDiff. Applying a diff is all-or-nothing: either every operation
succeeds and a new consistent plan is returned, or InvalidModification is
raised and the caller keeps the old plan.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from trip_dialog.conversation.schemas import DiffOperation, PlanDiff
from trip_dialog.parsing.deterministic import DeterministicExtractor
from trip_dialog.parsing.durations import find_durations
from trip_dialog.parsing.matcher import CityMatcher, PatternCityMatcher, trim_place_phrase
from trip_dialog.parsing.preferences import PreferenceExtractor
from trip_dialog.shared.contracts.trip_plan import Destination, TripPlan, city_key
from trip_dialog.shared.errors import InvalidModification


logger = logging.getLogger(__name__)


@dataclass
class PlanLimits:
    """
    Limits a modified plan must stay within.

    Attributes:
        max_destinations: Most destinations a plan may hold
        max_total_days: Longest trip, in days
        max_days_per_destination: Longest stay in a single city
        default_added_days: Days given to an added city when none are stated
    """

    max_destinations: int = 5
    max_total_days: int = 30
    max_days_per_destination: int = 15
    default_added_days: int = 3


DEFAULT_LIMITS = PlanLimits()

BE_MORE_SPECIFIC = "Please be more specific about what you'd like to change."

_VERBS = (
    r"add|include|remove|drop|skip|cut|exclude|cancel|take\s+out|change|make|"
    r"extend|shorten|reduce|increase|decrease|replace|swap|substitute|spend|"
    r"stay|switch|set|fly|depart|leave|focus|prefer"
)

CLAUSE_SPLIT = re.compile(
    r"\s*(?:[,;]\s*)?\b(?:and\s+then|and\s+also|and|then|also|plus)\s+(?=(?:" + _VERBS + r")\b)"
    r"|\s*;\s*",
    re.IGNORECASE,
)

_PLACE = r"(?P<{name}>[A-Za-z][\w'.-]*(?:[ \t]+[A-Za-z][\w'.-]*)*)"

REPLACE_PATTERNS = (
    re.compile(
        r"\b(?:replace|swap|substitute)\s+(?:out\s+)?" + _PLACE.format(name="old")
        + r"\s+(?:with|for)\s+" + _PLACE.format(name="new"),
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:instead\s+of|rather\s+than)\s+" + _PLACE.format(name="old")
        + r"\s*,?\s*(?:let'?s\s+)?(?:go\s+to|visit|do|try|pick)\s+" + _PLACE.format(name="new"),
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:go\s+to|visit|do|try|pick)\s+" + _PLACE.format(name="new")
        + r"\s+(?:instead\s+of|rather\s+than)\s+" + _PLACE.format(name="old"),
        re.IGNORECASE,
    ),
)

REMOVE_PATTERN = re.compile(
    r"\b(?:remove|drop|skip|cut|exclude|cancel|take\s+out|(?:don'?t|do\s+not)\s+(?:go\s+to|visit))"
    r"\s+(?P<target>.+)",
    re.IGNORECASE,
)

ORIGIN_CHANGE_PATTERN = re.compile(
    r"\b(?:change|switch|update|set|make)\s+(?:the\s+|my\s+)?"
    r"(?:origin|departure(?:\s+city)?|starting\s+(?:point|city)|home\s+city)\s+(?:to\s+)?"
    r"(?P<origin>[A-Z][\w'.-]*(?:[ \t]+[A-Z][\w'.-]*)*)",
    re.IGNORECASE,
)

ADD_PATTERN = re.compile(r"\b(?:add|include|also\s+visit|throw\s+in|visit|go\s+to)\b", re.IGNORECASE)

ADD_TARGET_PATTERN = re.compile(
    r"\b(?:add|include|visit|in|to)\s+(?P<name>[A-Z][\w'.-]*(?:[ \t]+[A-Z][\w'.-]*)*)"
)

# A duration naming a planned city only rescales the whole trip with one of these
WHOLE_TRIP_PATTERN = re.compile(
    r"\b(?:whole|entire|total|overall|full)\s+(?:trip|itinerary|thing|vacation|holiday)\b|"
    r"\bin\s+total\b",
    re.IGNORECASE,
)

INCREASE_PATTERN = re.compile(
    r"\b(?:more|extra|additional|another|longer|add|plus)\b|\b(?:extend|increase|lengthen)\b.*\bby\b",
    re.IGNORECASE,
)
DECREASE_PATTERN = re.compile(
    r"\b(?:fewer|less|shorter|minus|subtract|take\s+(?:off|away)|remove|drop)\b|"
    r"\b(?:shorten|reduce|decrease|cut)\b.*\bby\b",
    re.IGNORECASE,
)
EXTEND_WITHOUT_TARGET_PATTERN = re.compile(r"\b(?:extend|lengthen)\b(?!.*\bto\b)", re.IGNORECASE)

BARE_DAYS_PATTERN = re.compile(r"\b(?:to|by)\s+(?P<num>-?\d+)\b(?!\s*(?:%|[$€£]))", re.IGNORECASE)

PRONOUN_PATTERN = re.compile(r"\b(?:there|that\s+city|that\s+place|that\s+one)\b", re.IGNORECASE)
FIRST_PATTERN = re.compile(r"\bthe\s+first\s+(?:one|city|stop|destination)\b", re.IGNORECASE)
LAST_PATTERN = re.compile(r"\bthe\s+last\s+(?:one|city|stop|destination)\b", re.IGNORECASE)

PREFERENCE_REMOVAL_PATTERN = re.compile(
    r"\b(?:less|no\s+more|without|not|skip\s+the|drop\s+the|remove\s+the|no)\s+(?P<word>[\w-]+)",
    re.IGNORECASE,
)

TRAILING_NOISE = re.compile(
    r"\s+(?:from|off|out\s+of)\s+(?:the|my|our)\s+(?:trip|plan|itinerary|list)\b.*$|"
    r"\s+(?:please|instead|altogether|entirely)\b.*$|[.!?]+$",
    re.IGNORECASE,
)


def redistribute(destinations: List[Destination], new_total: int) -> List[Destination]:
    """
    Rescale destination days to a new total, preserving each share.

    Each share is rounded; the rounding remainder goes to the last
    destination.

    Raises:
        InvalidModification: If any destination would end up with no days
    """
    current_total = sum(d.days for d in destinations)
    if not destinations or current_total <= 0 or new_total < len(destinations):
        raise InvalidModification(
            f"A {new_total}-day trip is too short for {len(destinations)} destinations. "
            f"{BE_MORE_SPECIFIC}",
            offending_value=str(new_total),
            current_destinations=[d.city for d in destinations],
        )

    resized: List[Destination] = []
    assigned = 0
    for destination in destinations[:-1]:
        days = int(destination.days * new_total / current_total + 0.5)
        if days <= 0:
            raise InvalidModification(
                f"Rescaling to {new_total} days would leave {destination.city} with no days. "
                f"{BE_MORE_SPECIFIC}",
                offending_value=str(new_total),
                current_destinations=[d.city for d in destinations],
            )
        resized.append(Destination(city=destination.city, days=days))
        assigned += days

    last_days = new_total - assigned
    if last_days <= 0:
        raise InvalidModification(
            f"Rescaling to {new_total} days would leave {destinations[-1].city} with no days. "
            f"{BE_MORE_SPECIFIC}",
            offending_value=str(new_total),
            current_destinations=[d.city for d in destinations],
        )
    resized.append(Destination(city=destinations[-1].city, days=last_days))
    return resized


def _not_in_plan(city: str, plan: TripPlan) -> InvalidModification:
    names = plan.city_names()
    return InvalidModification(
        f'"{city}" is not in your current trip. Your destinations are: {", ".join(names)}.',
        offending_value=city,
        current_destinations=names,
    )


def apply_diff(
    plan: TripPlan,
    diff: PlanDiff,
    limits: Optional[PlanLimits] = None,
) -> TripPlan:
    """
    Apply every operation in diff to plan and return the new plan.

    The input plan is never mutated.

    Raises:
        InvalidModification: If any operation is invalid or the result
            breaks the plan limits
    """
    limits = limits or DEFAULT_LIMITS
    destinations = [d.model_copy() for d in plan.destinations]
    origin = plan.origin

    for op in diff.operations:
        names = [d.city for d in destinations]
        working = TripPlan.build(destinations=destinations, origin=origin)

        if op.kind == "add_destination":
            if working.find(op.city) != -1:
                raise InvalidModification(
                    f"{op.city} is already in your trip.",
                    offending_value=op.city,
                    current_destinations=names,
                )
            days = op.days if op.days is not None else limits.default_added_days
            if days <= 0:
                raise InvalidModification(
                    f"{days} days is not a valid stay for {op.city}.",
                    offending_value=str(days),
                    current_destinations=names,
                )
            destinations.append(Destination(city=op.city, days=days))

        elif op.kind == "remove_destination":
            index = working.find(op.city)
            if index == -1:
                raise _not_in_plan(op.city, working)
            if len(destinations) <= 1:
                raise InvalidModification(
                    f"{destinations[index].city} is the only destination left, so it can't be removed.",
                    offending_value=op.city,
                    current_destinations=names,
                )
            destinations.pop(index)

        elif op.kind == "replace_destination":
            index = working.find(op.city)
            if index == -1:
                raise _not_in_plan(op.city, working)
            other = working.find(op.new_city)
            if other != -1 and other != index:
                raise InvalidModification(
                    f"{op.new_city} is already in your trip.",
                    offending_value=op.new_city,
                    current_destinations=names,
                )
            destinations[index] = Destination(city=op.new_city, days=destinations[index].days)

        elif op.kind == "change_duration":
            if op.city is None:
                new_total = working.total_days + op.days if op.relative else op.days
                destinations = redistribute(destinations, new_total)
            else:
                index = working.find(op.city)
                if index == -1:
                    raise _not_in_plan(op.city, working)
                current = destinations[index]
                days = current.days + op.days if op.relative else op.days
                if days <= 0:
                    raise InvalidModification(
                        f"That would leave {current.city} with {days} days. "
                        f"To drop it, ask me to remove {current.city}.",
                        offending_value=str(days),
                        current_destinations=names,
                    )
                destinations[index] = Destination(city=current.city, days=days)

        elif op.kind == "change_origin":
            origin = op.origin

    for destination in destinations:
        if destination.days > limits.max_days_per_destination:
            raise InvalidModification(
                f"{destination.days} days in {destination.city} is more than the "
                f"{limits.max_days_per_destination}-day limit per city. {BE_MORE_SPECIFIC}",
                offending_value=str(destination.days),
                current_destinations=[d.city for d in destinations],
            )

    if len(destinations) > limits.max_destinations:
        raise InvalidModification(
            f"That would make {len(destinations)} destinations; the limit is "
            f"{limits.max_destinations}. {BE_MORE_SPECIFIC}",
            offending_value=str(len(destinations)),
            current_destinations=plan.city_names(),
        )

    new_plan = TripPlan.build(destinations=destinations, origin=origin)
    if new_plan.total_days > limits.max_total_days:
        raise InvalidModification(
            f"That would make the trip {new_plan.total_days} days; the limit is "
            f"{limits.max_total_days}. {BE_MORE_SPECIFIC}",
            offending_value=str(new_plan.total_days),
            current_destinations=plan.city_names(),
        )
    return new_plan


class ModificationResolver:
    """
    Turns a modification request into a PlanDiff.

    Example:
        >>> plan = TripPlan.build([Destination(city="Paris", days=5)])
        >>> ModificationResolver().resolve("add Rome for 3 days", plan).describe()
        'added Rome (3 days)'
    """

    def __init__(
        self,
        matcher: Optional[CityMatcher] = None,
        limits: Optional[PlanLimits] = None,
    ):
        self.matcher = matcher or PatternCityMatcher()
        self.limits = limits or DEFAULT_LIMITS
        self._origin_finder = DeterministicExtractor(self.matcher)
        self._preferences = PreferenceExtractor()

    def resolve(
        self,
        text: str,
        plan: TripPlan,
        last_mentioned_city: Optional[str] = None,
    ) -> PlanDiff:
        """
        Resolve text against plan.

        Raises:
            InvalidModification: If a clause can't be resolved or targets a
                destination that is not in the plan
        """
        if plan is None or not plan.destinations:
            raise InvalidModification("There is no trip plan to modify yet.")

        clauses = [c.strip() for c in CLAUSE_SPLIT.split(text) if c and c.strip()]
        operations: List[DiffOperation] = []
        for clause in clauses:
            operations.extend(self._resolve_clause(clause, plan, last_mentioned_city))

        if not operations:
            logger.info(f"[component=modification] No operation resolved from '{text}'")
            raise InvalidModification(
                f"I couldn't tell what to change. {BE_MORE_SPECIFIC}",
                current_destinations=plan.city_names(),
            )

        new_destinations = [op for op in operations if op.kind == "add_destination"]
        if len(plan.destinations) + len(new_destinations) > self.limits.max_destinations:
            raise InvalidModification(
                f"That's {len(new_destinations)} new destinations on top of "
                f"{len(plan.destinations)}; the limit is {self.limits.max_destinations}. "
                f"{BE_MORE_SPECIFIC}",
                offending_value=", ".join(op.city for op in new_destinations),
                current_destinations=plan.city_names(),
            )

        diff = PlanDiff(operations=operations)
        logger.info(f"[component=modification] Resolved diff: {diff.describe()}")
        return diff

    def _resolve_clause(
        self,
        clause: str,
        plan: TripPlan,
        last_mentioned_city: Optional[str],
    ) -> List[DiffOperation]:
        for pattern in REPLACE_PATTERNS:
            match = pattern.search(clause)
            if match:
                old = self._planned_city(match.group("old"), plan, last_mentioned_city)
                new = self._clean_place(match.group("new"))
                if old is None:
                    raise _not_in_plan(self._clean_place(match.group("old")), plan)
                if new:
                    return [DiffOperation(kind="replace_destination", city=old, new_city=new)]

        days, has_duration = self._days(clause)
        remove_match = None if has_duration else REMOVE_PATTERN.search(clause)

        origin_match = ORIGIN_CHANGE_PATTERN.search(clause)
        if origin_match:
            origin = trim_place_phrase(origin_match.group("origin"))
            if origin:
                return [DiffOperation(kind="change_origin", origin=origin)]
        if remove_match is None:
            origin, _ = self._origin_finder.find_origin(clause)
            if origin and not self._mentions_planned_city(clause, plan):
                return [DiffOperation(kind="change_origin", origin=origin)]

        if remove_match is not None:
            targets = self._remove_targets(remove_match.group("target"), plan, last_mentioned_city)
            if targets:
                return [DiffOperation(kind="remove_destination", city=t) for t in targets]
            preference_ops = self._preference_ops(clause)
            if preference_ops:
                return preference_ops
            raise _not_in_plan(self._clean_place(remove_match.group("target")), plan)

        planned = self._referenced_planned_cities(clause, plan, last_mentioned_city)
        new_cities = self._new_cities(clause, plan)
        added_days = days if has_duration else None

        if new_cities and (ADD_PATTERN.search(clause) or not planned):
            return [DiffOperation(kind="add_destination", city=c, days=added_days) for c in new_cities]

        if has_duration:
            relative = self._is_relative(clause)
            if relative and DECREASE_PATTERN.search(clause):
                days = -abs(days)
            without_city = (
                re.sub(re.escape(planned[0]), "", clause, flags=re.IGNORECASE) if planned else clause
            )
            if planned and (
                len(plan.destinations) == 1
                or not WHOLE_TRIP_PATTERN.search(without_city)
            ):
                return [
                    DiffOperation(kind="change_duration", city=planned[0], days=days, relative=relative)
                ]
            return [DiffOperation(kind="change_duration", city=None, days=days, relative=relative)]

        if ADD_PATTERN.search(clause) and planned:
            raise InvalidModification(
                f"{planned[0]} is already in your trip.",
                offending_value=planned[0],
                current_destinations=plan.city_names(),
            )

        return self._preference_ops(clause)

    def _preference_ops(self, clause: str) -> List[DiffOperation]:
        removed: List[str] = []
        for match in PREFERENCE_REMOVAL_PATTERN.finditer(clause):
            tags = self._preferences.extract(match.group("word")).preferences
            removed.extend(sorted(tags))
        added = sorted(self._preferences.extract(clause).preferences - set(removed))
        if not added and not removed:
            return []
        return [
            DiffOperation(
                kind="update_preferences",
                add_preferences=added,
                remove_preferences=list(dict.fromkeys(removed)),
            )
        ]

    def _days(self, clause: str) -> Tuple[int, bool]:
        for mention in find_durations(clause):
            return mention.days, True
        match = BARE_DAYS_PATTERN.search(clause)
        if match:
            return int(match.group("num")), True
        return 0, False

    def _is_relative(self, clause: str) -> bool:
        if DECREASE_PATTERN.search(clause) or INCREASE_PATTERN.search(clause):
            return True
        return bool(EXTEND_WITHOUT_TARGET_PATTERN.search(clause))

    def _clean_place(self, raw: str) -> str:
        cleaned = TRAILING_NOISE.sub("", raw.strip())
        words = cleaned.split()
        kept: List[str] = []
        for word in words:
            if word.lower() in ("with", "for", "and", "then", "to", "from", "in", "by"):
                break
            kept.append(word)
        return " ".join(kept).strip(" ,.")

    def _resolve_pronoun(
        self,
        clause: str,
        plan: TripPlan,
        last_mentioned_city: Optional[str],
    ) -> Optional[str]:
        if FIRST_PATTERN.search(clause):
            return plan.destinations[0].city
        if LAST_PATTERN.search(clause):
            return plan.destinations[-1].city
        if PRONOUN_PATTERN.search(clause):
            if last_mentioned_city and plan.find(last_mentioned_city) != -1:
                return plan.destinations[plan.find(last_mentioned_city)].city
            return plan.destinations[-1].city
        return None

    def _planned_city(
        self,
        raw: str,
        plan: TripPlan,
        last_mentioned_city: Optional[str],
    ) -> Optional[str]:
        pronoun = self._resolve_pronoun(raw, plan, last_mentioned_city)
        if pronoun:
            return pronoun
        name = self._clean_place(raw)
        if not name:
            return None
        index = plan.find(name)
        return plan.destinations[index].city if index != -1 else None

    def _mentions_planned_city(self, clause: str, plan: TripPlan) -> bool:
        lowered = city_key(clause)
        return any(city_key(d.city) in lowered for d in plan.destinations)

    def _referenced_planned_cities(
        self,
        clause: str,
        plan: TripPlan,
        last_mentioned_city: Optional[str],
    ) -> List[str]:
        lowered = city_key(clause)
        found = [
            (lowered.find(city_key(d.city)), d.city)
            for d in plan.destinations
            if re.search(r"(?<!\w)" + re.escape(city_key(d.city)) + r"(?!\w)", lowered)
        ]
        cities = [city for _, city in sorted(found)]
        if not cities:
            pronoun = self._resolve_pronoun(clause, plan, last_mentioned_city)
            if pronoun:
                cities = [pronoun]
        return cities

    def _new_cities(self, clause: str, plan: TripPlan) -> List[str]:
        names: List[str] = []
        for mention in self.matcher.find_cities(clause):
            if plan.find(mention.name) == -1 and mention.name not in names:
                names.append(mention.name)
        if names:
            return names
        for match in ADD_TARGET_PATTERN.finditer(clause):
            name = trim_place_phrase(match.group("name"))
            if name and plan.find(name) == -1 and not self.matcher.is_region(name):
                names.append(name)
        return names

    def _remove_targets(
        self,
        raw: str,
        plan: TripPlan,
        last_mentioned_city: Optional[str],
    ) -> List[str]:
        pronoun = self._resolve_pronoun(raw, plan, last_mentioned_city)
        if pronoun:
            return [pronoun]

        targets: List[str] = []
        for mention in self.matcher.find_cities(raw):
            if plan.find(mention.name) == -1:
                raise _not_in_plan(mention.name, plan)
            if mention.name not in targets:
                targets.append(mention.name)
        if targets:
            return targets

        for part in re.split(r"\s*(?:,|\band\b|&)\s*", self._clean_place(raw)):
            part = part.strip()
            if not part:
                continue
            if plan.find(part) == -1:
                if not part[0].isupper() and self._preferences.extract(part).preferences:
                    return []
                raise _not_in_plan(part, plan)
            targets.append(part)
        return targets


def diff_plans(old: Optional[TripPlan], new: TripPlan) -> PlanDiff:
    """Describe the change from old to new as a PlanDiff."""
    operations: List[DiffOperation] = []
    old_destinations = old.destinations if old is not None else []

    for destination in old_destinations:
        if new.find(destination.city) == -1:
            operations.append(DiffOperation(kind="remove_destination", city=destination.city))

    old_plan = old or TripPlan.build(destinations=[])
    for destination in new.destinations:
        index = old_plan.find(destination.city)
        if index == -1:
            operations.append(
                DiffOperation(kind="add_destination", city=destination.city, days=destination.days)
            )
        elif old_plan.destinations[index].days != destination.days:
            operations.append(
                DiffOperation(kind="change_duration", city=destination.city, days=destination.days)
            )

    if new.origin and (old is None or old.origin != new.origin):
        operations.append(DiffOperation(kind="change_origin", origin=new.origin))

    return PlanDiff(operations=operations)

"""
Natural-language replies for each turn outcome, and the readiness check
that decides whether a plan can be handed to itinerary generation.
"""

from typing import List, Optional

from pydantic import ValidationError

from trip_dialog.conversation.modification import DEFAULT_LIMITS, PlanLimits
from trip_dialog.conversation.schemas import PlanDiff
from trip_dialog.shared.contracts.trip_plan import TripPlan


def _join(items: List[str]) -> str:
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} and {items[-1]}"


def missing_fields(plan: Optional[TripPlan]) -> List[str]:
    """Fields the plan still needs before it can be generated."""
    if plan is None or not plan.destinations:
        return ["destination"]
    missing: List[str] = []
    if not plan.origin:
        missing.append("origin")
    if plan.pending_cities:
        missing.append("duration")
    return missing


def is_ready_for_generation(plan: Optional[TripPlan], limits: Optional[PlanLimits] = None) -> bool:
    """
    True when the plan can be handed to the itinerary generator.

    Requires an origin, at least one destination, consistent totals, and
    a plan within the destination and day limits.
    """
    limits = limits or DEFAULT_LIMITS
    if plan is None or plan.pending_cities:
        return False
    try:
        plan.to_handoff()
    except ValidationError:
        return False
    return (
        len(plan.destinations) <= limits.max_destinations
        and plan.total_days <= limits.max_total_days
    )


def missing_destination_reply() -> str:
    return "Where would you like to go? Name the cities you'd like to visit and how many days in each."


def vague_region_reply(regions: List[str]) -> str:
    region = _join(regions) or "that region"
    return (
        f"{region} covers a lot of ground! Which cities in {region} would you like "
        f"to visit, and for how many days?"
    )


def missing_duration_reply(cities: List[str]) -> str:
    return f"How many days would you like to spend in {_join(cities)}?"


def missing_origin_reply(plan: TripPlan) -> str:
    return f"Got it: {plan.describe()}. Where will you be traveling from?"


def over_limit_destinations_reply(count: int, limits: Optional[PlanLimits] = None) -> str:
    limits = limits or DEFAULT_LIMITS
    return (
        f"That's {count} destinations. I can plan up to {limits.max_destinations} "
        f"cities per trip. Which ones matter most to you?"
    )


def over_limit_duration_reply(days: int, limits: Optional[PlanLimits] = None) -> str:
    limits = limits or DEFAULT_LIMITS
    return (
        f"A {days}-day trip is longer than I can plan; the limit is "
        f"{limits.max_total_days} days. Could you shorten it?"
    )


def successful_parse_reply(plan: TripPlan, limits: Optional[PlanLimits] = None) -> str:
    """Confirm a new plan, or ask for whatever it is still missing."""
    limits = limits or DEFAULT_LIMITS
    if len(plan.destinations) > limits.max_destinations:
        return over_limit_destinations_reply(len(plan.destinations), limits)
    if plan.total_days > limits.max_total_days:
        return over_limit_duration_reply(plan.total_days, limits)
    if plan.pending_cities:
        return (
            f"Got it: {plan.describe()}. "
            f"{missing_duration_reply(plan.pending_cities)}"
        )
    if not plan.origin:
        return missing_origin_reply(plan)

    reply = f"Great! {plan.total_days} days from {plan.origin}: {plan.describe()}."
    if "stated_total_mismatch" in plan.flags and plan.stated_total_days:
        reply += (
            f" (You mentioned {plan.stated_total_days} days overall; I've used the "
            f"per-city days, which add up to {plan.total_days}.)"
        )
    return reply + " Ready to build your itinerary, or would you like to change anything?"


def modification_reply(diff: PlanDiff, plan: TripPlan) -> str:
    summary = diff.describe()
    reply = f"Done: {summary[0].upper() + summary[1:]}." if summary else "Done."
    if plan.destinations:
        reply += f" Your trip is now {plan.describe()}, {plan.total_days} days in total."
    if not plan.origin:
        reply += " Where will you be traveling from?"
    return reply


def question_reply() -> str:
    return (
        "Good question! I'm focused on putting your trip together. Tell me which "
        "cities you'd like to visit and for how long, and I'll handle the rest."
    )


def parse_error_reply(plan: Optional[TripPlan] = None, regions: Optional[List[str]] = None) -> str:
    """Clarification for a turn nothing could be extracted from."""
    if regions:
        return vague_region_reply(regions)
    if plan is not None and plan.pending_cities:
        return missing_duration_reply(plan.pending_cities)
    if plan is not None and (plan.origin or plan.total_days):
        return missing_destination_reply()
    return (
        "Sorry, I couldn't work out your trip from that. Could you tell me the "
        "cities and the number of days in each? For example: \"4 days in Rome, 3 in Florence\"."
    )


def invalid_modification_reply(message: str) -> str:
    return f"I couldn't make that change. {message}"

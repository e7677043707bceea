"""
Trip plan data model and itinerary handoff contract.

TripPlan is the structured result of interpreting a trip request. The
handoff contract is what the itinerary content generator consumes, and
it only accepts plans whose day totals are internally consistent.
"""

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


PlanFlag = Literal["stated_total_mismatch", "dropped_invalid_days", "partial"]

FLAG_STATED_TOTAL_MISMATCH: PlanFlag = "stated_total_mismatch"
FLAG_DROPPED_INVALID_DAYS: PlanFlag = "dropped_invalid_days"
FLAG_PARTIAL: PlanFlag = "partial"


def city_key(name: str) -> str:
    """Case- and whitespace-insensitive key used to compare city names."""
    return re.sub(r"\s+", " ", name).strip().casefold()


def cities_match(a: str, b: str) -> bool:
    """Tolerant comparison: equal keys, or one key contained in the other."""
    key_a, key_b = city_key(a), city_key(b)
    if not key_a or not key_b:
        return False
    return key_a == key_b or key_a in key_b or key_b in key_a


class Destination(BaseModel):
    """A single city plus the number of days allocated to it."""

    city: str = Field(min_length=1, description="Free-text city name as stated by the user")
    days: int = Field(gt=0, description="Days allocated to this city")


class TripPlan(BaseModel):
    """
    Structured trip request.

    total_days equals the sum of destination days whenever destinations are
    present. stated_total_days keeps an aggregate the user mentioned; when it
    disagrees with the per-destination sum the plan carries the
    stated_total_mismatch flag instead of being corrected.
    """

    destinations: List[Destination] = Field(
        default_factory=list, description="Destinations in narrative order"
    )
    origin: Optional[str] = Field(default=None, description="Departure city")
    total_days: int = Field(default=0, ge=0, description="Total trip length in days")
    stated_total_days: Optional[int] = Field(
        default=None, description="Aggregate duration the user stated, as a hint"
    )
    pending_cities: List[str] = Field(
        default_factory=list,
        description="Cities mentioned without any resolvable duration",
    )
    flags: List[PlanFlag] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        destinations: List[Destination],
        origin: Optional[str] = None,
        stated_total_days: Optional[int] = None,
        pending_cities: Optional[List[str]] = None,
        flags: Optional[List[PlanFlag]] = None,
    ) -> "TripPlan":
        """Build a plan, deriving total_days and the totals flags."""
        flags = list(flags or [])
        destination_sum = sum(d.days for d in destinations)

        if destinations:
            total_days = destination_sum
            if stated_total_days is not None and stated_total_days != destination_sum:
                flags.append(FLAG_STATED_TOTAL_MISMATCH)
        else:
            total_days = stated_total_days if stated_total_days and stated_total_days > 0 else 0

        if not destinations or pending_cities:
            flags.append(FLAG_PARTIAL)

        return cls(
            destinations=list(destinations),
            origin=origin,
            total_days=total_days,
            stated_total_days=stated_total_days,
            pending_cities=list(pending_cities or []),
            flags=list(dict.fromkeys(flags)),
        )

    @property
    def destination_days(self) -> int:
        return sum(d.days for d in self.destinations)

    @property
    def is_consistent(self) -> bool:
        """True when the plan has destinations and total_days equals their sum."""
        return (
            bool(self.destinations)
            and all(d.days > 0 for d in self.destinations)
            and self.total_days == self.destination_days
        )

    def city_names(self) -> List[str]:
        return [d.city for d in self.destinations]

    def find(self, city: str) -> int:
        """
        Index of the destination matching city, or -1.

        Exact (case-insensitive) matches win over substring matches.
        """
        key = city_key(city)
        for index, destination in enumerate(self.destinations):
            if city_key(destination.city) == key:
                return index
        for index, destination in enumerate(self.destinations):
            if cities_match(destination.city, city):
                return index
        return -1

    def with_destinations(
        self,
        destinations: List[Destination],
        origin: Optional[str] = None,
    ) -> "TripPlan":
        """Return a resolved copy with new destinations (and optionally origin)."""
        return TripPlan.build(
            destinations=destinations,
            origin=origin if origin is not None else self.origin,
        )

    def describe(self) -> str:
        """Short human-readable summary, e.g. 'London (6 days), Paris (4 days)'."""
        return ", ".join(
            f"{d.city} ({d.days} day{'s' if d.days != 1 else ''})" for d in self.destinations
        )

    def to_handoff(self) -> "TripPlanHandoffV1":
        """Build the itinerary generator contract; raises if the plan is not resolved."""
        return TripPlanHandoffV1(
            origin=self.origin or "",
            destinations=[d.model_copy() for d in self.destinations],
            total_days=self.total_days,
        )


class TripPlanHandoffV1(BaseModel):
    """
    Contract for the itinerary content generator (v1).

    Only fully resolved plans can be handed off: at least one destination,
    every destination with positive days, and total_days equal to their sum.
    """

    origin: str = Field(min_length=1, description="Departure city")
    destinations: List[Destination] = Field(min_length=1)
    total_days: int = Field(gt=0)

    @model_validator(mode="after")
    def check_totals(self) -> "TripPlanHandoffV1":
        destination_sum = sum(d.days for d in self.destinations)
        if destination_sum != self.total_days:
            raise ValueError(
                f"total_days ({self.total_days}) does not match the sum of "
                f"destination days ({destination_sum})"
            )
        return self

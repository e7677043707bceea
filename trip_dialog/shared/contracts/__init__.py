"""Trip plan data model and the handoff contract for itinerary generation."""

from trip_dialog.shared.contracts.trip_plan import (
    Destination,
    TripPlan,
    TripPlanHandoffV1,
    PlanFlag,
)

__all__ = ["Destination", "TripPlan", "TripPlanHandoffV1", "PlanFlag"]

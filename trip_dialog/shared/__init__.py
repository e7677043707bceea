"""
Shared infrastructure for the trip dialog.

Modules:
- llm: OpenAI client with retry logic
- logging: Structured JSON logging and per-session debug logs
- contracts: TripPlan data model and the itinerary handoff contract
- errors: Error taxonomy surfaced by the parser and conversation layers
"""

from trip_dialog.shared.llm.client import get_cached_client, has_api_key
from trip_dialog.shared.logging.config import setup_logging, log_state_transition

__all__ = [
    "get_cached_client",
    "has_api_key",
    "setup_logging",
    "log_state_transition",
]

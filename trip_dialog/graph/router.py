"""
Routing logic for the turn graph.

Picks the resolution node from the classification and parse result.
"""

import logging
from typing import Literal

from trip_dialog.graph.state import TurnState


logger = logging.getLogger(__name__)

PLAN_TYPES = ("structured", "conversational", "ambiguous")


def route_after_parse(
    state: TurnState,
) -> Literal["modify", "plan", "continue_context", "clarify"]:
    """
    Determine the resolution node for this turn.

    Routing logic:
    1. Explicit modification requests, or modification input -> modify
    2. Follow-ups that only add an origin or duration to the plan -> continue_context
    3. Successful parses of plan-like input -> plan
    4. Otherwise (questions, failed or ambiguous parses) -> clarify

    Args:
        state: Current turn state

    Returns:
        Name of the next node to execute
    """
    session_id = state.get("session_id", "unknown")
    classification = state.get("classification")
    result = state.get("parse_result")
    _log = f"[session={session_id}] [graph=turn] [router=route_after_parse] "

    input_type = classification.type if classification is not None else "ambiguous"
    features = classification.features if classification is not None else {}
    success = result is not None and result.success

    if state.get("mode") == "modify" or input_type == "modification":
        route = "modify"
    elif features.get("continues_context"):
        route = "continue_context"
    elif success and input_type in PLAN_TYPES:
        route = "plan"
    else:
        route = "clarify"

    logger.info(
        f"{_log}Routing to '{route}' | type={input_type}, success={success}, mode={state.get('mode')}"
    )
    return route

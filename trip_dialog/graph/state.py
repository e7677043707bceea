"""
Turn pipeline state schema.

Carries one user message through parsing, resolution and reply
generation. The pipeline computes an outcome only; committing it to the
conversation store is the service's job.
"""

from typing import Annotated, List, Optional, TypedDict
import operator

from trip_dialog.conversation.schemas import TurnOutcome
from trip_dialog.parsing.schemas import Classification, ParseContext, ParseResult


class TurnState(TypedDict):
    """
    State schema for the turn graph.

    mode is "parse" for a normal turn, or "modify" when the caller asked
    explicitly for a modification.
    """

    # Input
    session_id: str
    text: str
    mode: str
    context: ParseContext

    # Populated by the parse node
    parse_result: Optional[ParseResult]
    classification: Optional[Classification]

    # Populated by the resolution nodes
    outcome: Optional[TurnOutcome]

    # Tracking
    errors: Annotated[List[str], operator.add]

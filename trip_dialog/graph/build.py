"""
Turn graph construction.

Builds the graph that runs one conversational turn:
parse -> (modify | plan | continue_context | clarify) -> respond -> END.
"""

import logging
from typing import Any, Dict

from langgraph.graph import END, StateGraph

from trip_dialog.graph.nodes import TurnNodes
from trip_dialog.graph.router import route_after_parse
from trip_dialog.graph.state import TurnState
from trip_dialog.parsing.schemas import ParseContext


logger = logging.getLogger(__name__)


def create_turn_graph(nodes: TurnNodes):
    """
    Create and compile the turn graph.

    The graph structure is:
        Entry -> parse -> route_after_parse
          -> "modify"           -> modify           -> respond
          -> "plan"             -> plan             -> respond
          -> "continue_context" -> continue_context -> respond
          -> "clarify"          -> clarify          -> respond
        respond -> END

    Args:
        nodes: Node callables bound to the parser, resolver and extractors

    Returns:
        Compiled LangGraph application ready for execution.
    """
    graph = StateGraph(TurnState)

    # Add nodes
    graph.add_node("parse", nodes.parse)
    graph.add_node("modify", nodes.modify)
    graph.add_node("plan", nodes.plan)
    graph.add_node("continue_context", nodes.continue_context)
    graph.add_node("clarify", nodes.clarify)
    graph.add_node("respond", nodes.respond)

    # Set entry point
    graph.set_entry_point("parse")

    # Route on classification and parse success
    graph.add_conditional_edges(
        "parse",
        route_after_parse,
        {
            "modify": "modify",
            "plan": "plan",
            "continue_context": "continue_context",
            "clarify": "clarify",
        },
    )

    for node in ("modify", "plan", "continue_context", "clarify"):
        graph.add_edge(node, "respond")

    # End after respond
    graph.add_edge("respond", END)

    return graph.compile()


def build_initial_state(
    session_id: str,
    text: str,
    context: ParseContext,
    mode: str = "parse",
) -> Dict[str, Any]:
    """
    Build the input state for one turn.

    Args:
        session_id: Session the turn belongs to
        text: User message
        context: Parse context built from the session's current state
        mode: "parse" or "modify"

    Returns:
        Initial TurnState dict
    """
    return {
        "session_id": session_id,
        "text": text,
        "mode": mode,
        "context": context,
        "parse_result": None,
        "classification": None,
        "outcome": None,
        "errors": [],
    }


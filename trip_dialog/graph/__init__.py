"""LangGraph pipeline that runs a single conversational turn."""

from trip_dialog.graph.build import create_turn_graph, build_initial_state
from trip_dialog.graph.nodes import TurnNodes
from trip_dialog.graph.router import route_after_parse
from trip_dialog.graph.state import TurnState

__all__ = [
    "create_turn_graph",
    "build_initial_state",
    "TurnNodes",
    "route_after_parse",
    "TurnState",
]

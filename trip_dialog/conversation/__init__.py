"""
Conversation state, modification resolution and dialog replies.

The service and the HTTP router live in trip_dialog.conversation.service
and trip_dialog.conversation.api.
"""

from trip_dialog.conversation.schemas import (
    ConversationState,
    DiffOperation,
    Message,
    PlanDiff,
    TurnOutcome,
)
from trip_dialog.conversation.store import ConversationStore, StoreConfig
from trip_dialog.conversation.modification import (
    ModificationResolver,
    PlanLimits,
    apply_diff,
    diff_plans,
    redistribute,
)
from trip_dialog.conversation.dialog import is_ready_for_generation

__all__ = [
    "ConversationState",
    "DiffOperation",
    "Message",
    "PlanDiff",
    "TurnOutcome",
    "ConversationStore",
    "StoreConfig",
    "ModificationResolver",
    "PlanLimits",
    "apply_diff",
    "diff_plans",
    "redistribute",
    "is_ready_for_generation",
]

"""
Pydantic schemas for conversation state, plan diffs and the caller API.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Set

from pydantic import BaseModel, Field

from trip_dialog.parsing.schemas import Classification, Constraint, ParseContext
from trip_dialog.shared.contracts.trip_plan import TripPlan


Role = Literal["user", "assistant"]
Phase = Literal["initial", "planning", "modifying"]
DiffKind = Literal[
    "add_destination",
    "remove_destination",
    "change_duration",
    "change_origin",
    "update_preferences",
    "replace_destination",
]

# How many recent user messages the context prompt includes
CONTEXT_MESSAGE_COUNT = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Conversation State
# =============================================================================


class Message(BaseModel):
    """A single message in the conversation history."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class ConversationMetadata(BaseModel):
    start_time: datetime = Field(default_factory=utc_now)
    last_activity: datetime = Field(default_factory=utc_now)
    message_count: int = 0
    user_id: Optional[str] = None


class ConversationState(BaseModel):
    """
    Per-session accumulated context.

    Owned exclusively by one session. previous_plan holds the plan before
    the last committed change so a single undo is possible.
    """

    session_id: str
    current_plan: Optional[TripPlan] = None
    previous_plan: Optional[TripPlan] = None
    history: List[Message] = Field(default_factory=list)
    preferences: Set[str] = Field(default_factory=set)
    constraints: List[Constraint] = Field(default_factory=list)
    metadata: ConversationMetadata = Field(default_factory=ConversationMetadata)
    phase: Phase = "initial"
    last_intent: Optional[str] = None
    last_mentioned_city: Optional[str] = None

    def recent_user_messages(self, count: int = CONTEXT_MESSAGE_COUNT) -> List[str]:
        messages = [m.content for m in self.history if m.role == "user"]
        return messages[-count:]

    def build_context_prompt(self) -> str:
        """
        Serialize the conversation context for the AI-backed extractor.

        Includes the current plan, preferences, constraints, phase and the
        last few user messages. Returns an empty string for a fresh session.
        """
        parts: List[str] = []
        plan = self.current_plan

        if plan is not None:
            if plan.origin:
                parts.append(f"Origin: {plan.origin}")
            if plan.destinations:
                parts.append(f"Current destinations: {plan.describe()}")
                parts.append(f"Total days: {plan.total_days}")

        if self.preferences:
            parts.append(f"Preferences: {', '.join(sorted(self.preferences))}")

        if self.constraints:
            rendered = [
                f"{c.type}={c.value}{' ' + c.unit if c.unit else ''} ({c.priority})"
                for c in self.constraints
            ]
            parts.append(f"Constraints: {', '.join(rendered)}")

        if self.last_mentioned_city:
            parts.append(f"Most recently discussed city: {self.last_mentioned_city}")

        recent = self.recent_user_messages()
        if recent:
            parts.append("Recent user messages:")
            parts.extend(f"- {message}" for message in recent)

        if not parts:
            return ""

        parts.append(f"Conversation phase: {self.phase}")
        return "\n".join(parts)

    def to_parse_context(self) -> ParseContext:
        return ParseContext(
            session_id=self.session_id,
            current_plan=self.current_plan,
            summary=self.build_context_prompt(),
            last_mentioned_city=self.last_mentioned_city,
        )


# =============================================================================
# Plan Diffs
# =============================================================================


class DiffOperation(BaseModel):
    """
    One change to a trip plan.

    For change_duration, city=None means the whole trip; relative=True means
    days is a delta rather than the new value.
    """

    kind: DiffKind
    city: Optional[str] = None
    days: Optional[int] = None
    relative: bool = False
    new_city: Optional[str] = None
    origin: Optional[str] = None
    add_preferences: List[str] = Field(default_factory=list)
    remove_preferences: List[str] = Field(default_factory=list)

    def describe(self) -> str:
        if self.kind == "add_destination":
            return f"added {self.city} ({self.days} days)"
        if self.kind == "remove_destination":
            return f"removed {self.city}"
        if self.kind == "replace_destination":
            return f"replaced {self.city} with {self.new_city}"
        if self.kind == "change_origin":
            return f"set the departure city to {self.origin}"
        if self.kind == "update_preferences":
            changes = [f"+{p}" for p in self.add_preferences] + [
                f"-{p}" for p in self.remove_preferences
            ]
            return f"updated preferences ({', '.join(changes)})"
        target = self.city or "the whole trip"
        if self.relative:
            sign = "+" if (self.days or 0) >= 0 else ""
            return f"changed {target} by {sign}{self.days} days"
        return f"changed {target} to {self.days} days"


class PlanDiff(BaseModel):
    """An all-or-nothing set of changes resolved from one modification request."""

    operations: List[DiffOperation] = Field(default_factory=list)

    @property
    def kind(self) -> Optional[str]:
        return self.operations[0].kind if self.operations else None

    @property
    def touches_plan(self) -> bool:
        return any(op.kind != "update_preferences" for op in self.operations)

    def added_preferences(self) -> List[str]:
        return [p for op in self.operations for p in op.add_preferences]

    def removed_preferences(self) -> List[str]:
        return [p for op in self.operations for p in op.remove_preferences]

    def describe(self) -> str:
        return "; ".join(op.describe() for op in self.operations)


# =============================================================================
# Turn Outcome
# =============================================================================


class TurnOutcome(BaseModel):
    """
    Result of running one turn, before it is committed.

    The conversation service commits plan, preferences and history from
    this in one step, and only when success is True.
    """

    success: bool
    intent: str = "ambiguous"
    plan: Optional[TripPlan] = None
    diff: Optional[PlanDiff] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    reply: str = ""
    classification: Optional[Classification] = None
    source: Optional[str] = None
    confidence: float = 0.0
    preferences: Set[str] = Field(default_factory=set)
    constraints: List[Constraint] = Field(default_factory=list)
    mentioned_city: Optional[str] = None


# =============================================================================
# API Request/Response Models
# =============================================================================


class ParseRequest(BaseModel):
    """Request body for POST /api/trips/parse."""

    text: str = Field(min_length=1, description="User message")
    session_id: Optional[str] = Field(default=None, description="Existing session, or None to start one")
    user_id: Optional[str] = None


class ModifyRequest(BaseModel):
    """Request body for POST /api/trips/modify."""

    text: str = Field(min_length=1, description="Modification request")
    session_id: str = Field(description="Session holding the plan to modify")


class ParseResponse(BaseModel):
    session_id: str
    success: bool
    plan: Optional[TripPlan] = None
    classification: Optional[Classification] = None
    source: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    reply: str = ""
    ready_for_generation: bool = False


class ModificationResponse(BaseModel):
    session_id: str
    success: bool
    plan: Optional[TripPlan] = None
    diff: Optional[PlanDiff] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    reply: str = ""


class SessionStateResponse(BaseModel):
    session_id: str
    phase: Phase
    plan: Optional[TripPlan] = None
    preferences: List[str] = Field(default_factory=list)
    constraints: List[Constraint] = Field(default_factory=list)
    history: List[Message] = Field(default_factory=list)
    message_count: int = 0
    can_undo: bool = False
    ready_for_generation: bool = False
    missing_fields: List[str] = Field(default_factory=list)


class StoreStats(BaseModel):
    active_sessions: int
    total_messages: int
    oldest_session_start: Optional[datetime] = None

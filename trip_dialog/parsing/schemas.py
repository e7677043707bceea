"""
Schemas shared by the classifier, the extractors and the hybrid parser.
"""

from typing import Dict, List, Literal, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field

from trip_dialog.shared.contracts.trip_plan import TripPlan


InputType = Literal["structured", "conversational", "modification", "question", "ambiguous"]
Complexity = Literal["simple", "medium", "complex"]
ParseSource = Literal["deterministic", "ai", "hybrid"]


class Classification(BaseModel):
    """
    Categorical judgment about an input, used to route parsing.

    Classification is a pure function of the input text and the optional
    conversation context.
    """

    type: InputType = Field(description="Input category")
    confidence: float = Field(ge=0.0, le=1.0, description="Routing confidence")
    complexity: Complexity = Field(description="Estimated parsing difficulty")
    features: Dict[str, bool] = Field(
        default_factory=dict, description="Named boolean signals found in the input"
    )

    def active_features(self) -> List[str]:
        return [name for name, present in self.features.items() if present]


class ParseResult(BaseModel):
    """
    Outcome of one extraction strategy, or of the hybrid merge.

    confidence is a heuristic score, not a probability.
    """

    success: bool
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: ParseSource
    plan: Optional[TripPlan] = None
    error: Optional[str] = None
    classification: Optional[Classification] = None
    preferences: List[str] = Field(
        default_factory=list, description="Preference tags reported by the extractor"
    )
    errors: List[str] = Field(
        default_factory=list, description="Errors from the individual strategies"
    )
    processing_time_ms: float = 0.0
    fallback_used: bool = False


ConstraintType = Literal["duration", "budget", "accessibility", "dietary", "other"]
Priority = Literal["low", "medium", "high"]


class Constraint(BaseModel):
    """
    A hard constraint on the trip.

    value carries a payload appropriate to the type: a number for budget
    and duration ceilings, a short term for accessibility and dietary needs.
    """

    type: ConstraintType
    value: Union[int, float, str]
    unit: Optional[str] = Field(default=None, description="Currency code or 'days'")
    priority: Priority = "medium"

    def key(self) -> Tuple[str, str]:
        return (self.type, str(self.value).casefold())


class PreferenceExtraction(BaseModel):
    """Preferences and constraints found in a single input."""

    preferences: Set[str] = Field(default_factory=set)
    constraints: List[Constraint] = Field(default_factory=list)


class ParseContext(BaseModel):
    """
    Conversation context handed to the classifier and the extractors.

    summary is the serialized context the AI-backed extractor sends to the
    model; last_mentioned_city resolves "there" in follow-ups.
    """

    session_id: Optional[str] = None
    current_plan: Optional[TripPlan] = None
    summary: str = ""
    last_mentioned_city: Optional[str] = None

    @property
    def has_plan(self) -> bool:
        return self.current_plan is not None and bool(self.current_plan.destinations)

"""
Node functions for the turn graph.

Each node reads the turn state and returns a partial update. Nodes only
compute; none of them touch the conversation store.
"""

import logging
from typing import Any, Dict, List, Optional

from trip_dialog.conversation import dialog
from trip_dialog.conversation.modification import (
    DEFAULT_LIMITS,
    ModificationResolver,
    PlanLimits,
    apply_diff,
    diff_plans,
)
from trip_dialog.conversation.schemas import DiffOperation, PlanDiff, TurnOutcome
from trip_dialog.graph.state import TurnState
from trip_dialog.parsing.ai.extractor import NOT_AVAILABLE_ERROR
from trip_dialog.parsing.durations import find_durations
from trip_dialog.parsing.hybrid.parser import HybridParser
from trip_dialog.parsing.preferences import PreferenceExtractor
from trip_dialog.shared.contracts.trip_plan import TripPlan
from trip_dialog.shared.errors import (
    AmbiguousInput,
    BackendUnavailable,
    InvalidModification,
    ParseFailure,
)


logger = logging.getLogger(__name__)


class TurnNodes:
    """Node callables for the turn graph, bound to their collaborators."""

    def __init__(
        self,
        parser: HybridParser,
        resolver: Optional[ModificationResolver] = None,
        preference_extractor: Optional[PreferenceExtractor] = None,
        limits: Optional[PlanLimits] = None,
    ):
        self.parser = parser
        self.limits = limits or DEFAULT_LIMITS
        self.resolver = resolver or ModificationResolver(parser.matcher, self.limits)
        self.preference_extractor = preference_extractor or PreferenceExtractor()

    # -------------------------------------------------------------------------
    # parse
    # -------------------------------------------------------------------------

    async def parse(self, state: TurnState) -> Dict[str, Any]:
        """Run the hybrid parser on the turn's text."""
        session_id = state.get("session_id", "unknown")
        _log = f"[session={session_id}] [graph=turn] [node=parse] "
        logger.info(f"{_log}Entering node | mode={state.get('mode')}, text_length={len(state['text'])}")

        result = await self.parser.parse(state["text"], state.get("context"))
        update: Dict[str, Any] = {
            "parse_result": result,
            "classification": result.classification,
        }
        if not result.success and result.errors:
            update["errors"] = list(result.errors)
        return update

    # -------------------------------------------------------------------------
    # modify
    # -------------------------------------------------------------------------

    async def modify(self, state: TurnState) -> Dict[str, Any]:
        """Resolve a modification into a diff and apply it to the current plan."""
        session_id = state.get("session_id", "unknown")
        _log = f"[session={session_id}] [graph=turn] [node=modify] "
        context = state["context"]
        plan = context.current_plan
        result = state.get("parse_result")

        try:
            diff = self.resolver.resolve(state["text"], plan, context.last_mentioned_city)
            new_plan = apply_diff(plan, diff, self.limits) if diff.touches_plan else plan
        except InvalidModification as e:
            fallback = self._ai_modification(plan, result, e)
            if fallback is None:
                logger.info(f"{_log}Invalid modification: {e} | offending={e.offending_value}")
                return {"outcome": self._invalid(state, e)}
            diff, new_plan = fallback
            logger.info(f"{_log}Resolver failed, using AI plan | diff={diff.describe()}")

        logger.info(f"{_log}Applied diff: {diff.describe()}")
        return {
            "outcome": TurnOutcome(
                success=True,
                intent="modification",
                plan=new_plan,
                diff=diff,
                reply=dialog.modification_reply(diff, new_plan),
                classification=state.get("classification"),
                source=result.source if result is not None else None,
                confidence=result.confidence if result is not None else 0.0,
            )
        }

    def _ai_modification(self, plan, result, error: InvalidModification):
        """
        Use the AI extractor's full plan when the resolver could not read the
        request at all. Requests that name a missing destination stay errors.
        """
        if plan is None or result is None or not result.success or result.plan is None:
            return None
        if error.offending_value is not None or result.source == "deterministic":
            return None
        candidate = result.plan
        if candidate.origin is None and plan.origin:
            candidate = candidate.with_destinations(candidate.destinations, origin=plan.origin)
        diff = diff_plans(plan, candidate)
        if not diff.operations:
            return None
        try:
            return diff, apply_diff(plan, PlanDiff(operations=self._ordered(diff.operations)), self.limits)
        except InvalidModification:
            return None

    @staticmethod
    def _ordered(operations: List[DiffOperation]) -> List[DiffOperation]:
        # Removals first so adds stay within the destination limit
        order = {"remove_destination": 0, "change_duration": 1, "add_destination": 2, "change_origin": 3}
        return sorted(operations, key=lambda op: order.get(op.kind, 4))

    def _invalid(self, state: TurnState, error: InvalidModification) -> TurnOutcome:
        return TurnOutcome(
            success=False,
            intent="modification",
            error=str(error),
            error_type=InvalidModification.error_type,
            reply=dialog.invalid_modification_reply(str(error)),
            classification=state.get("classification"),
        )

    # -------------------------------------------------------------------------
    # continue_context
    # -------------------------------------------------------------------------

    async def continue_context(self, state: TurnState) -> Dict[str, Any]:
        """Apply a follow-up that only adds an origin or a duration to the plan."""
        session_id = state.get("session_id", "unknown")
        _log = f"[session={session_id}] [graph=turn] [node=continue_context] "
        text = state["text"]
        plan = state["context"].current_plan

        operations: List[DiffOperation] = []
        origin, _ = self.parser.deterministic.find_origin(text)
        if origin:
            operations.append(DiffOperation(kind="change_origin", origin=origin))

        durations = [d for d in find_durations(text) if d.days > 0]
        if durations:
            days = durations[0].days
            city = plan.destinations[0].city if len(plan.destinations) == 1 else None
            operations.append(DiffOperation(kind="change_duration", city=city, days=days))

        diff = PlanDiff(operations=operations)
        try:
            new_plan = apply_diff(plan, diff, self.limits)
        except InvalidModification as e:
            logger.info(f"{_log}Continuation rejected: {e}")
            return {"outcome": self._invalid(state, e)}

        logger.info(f"{_log}Continued plan | diff={diff.describe()}")
        return {
            "outcome": TurnOutcome(
                success=True,
                intent="continuation",
                plan=new_plan,
                diff=diff,
                reply=dialog.successful_parse_reply(new_plan, self.limits),
                classification=state.get("classification"),
                source="deterministic",
                confidence=state["parse_result"].confidence if state.get("parse_result") else 0.0,
            )
        }

    # -------------------------------------------------------------------------
    # plan
    # -------------------------------------------------------------------------

    async def plan(self, state: TurnState) -> Dict[str, Any]:
        """Take the parsed plan as the new working plan."""
        session_id = state.get("session_id", "unknown")
        _log = f"[session={session_id}] [graph=turn] [node=plan] "
        result = state["parse_result"]
        previous = state["context"].current_plan
        plan: TripPlan = result.plan

        if not plan.origin and previous is not None and previous.origin:
            plan = TripPlan.build(
                destinations=plan.destinations,
                origin=previous.origin,
                stated_total_days=plan.stated_total_days,
                pending_cities=plan.pending_cities,
                flags=[f for f in plan.flags if f != "partial"],
            )
            logger.info(f"{_log}Carried origin forward: {previous.origin}")

        logger.info(
            f"{_log}New plan | destinations={plan.city_names()}, total_days={plan.total_days}, "
            f"origin={plan.origin}, source={result.source}"
        )
        return {
            "outcome": TurnOutcome(
                success=True,
                intent="new_plan",
                plan=plan,
                diff=diff_plans(previous, plan) if previous is not None else None,
                reply=dialog.successful_parse_reply(plan, self.limits),
                classification=state.get("classification"),
                source=result.source,
                confidence=result.confidence,
            )
        }

    # -------------------------------------------------------------------------
    # clarify
    # -------------------------------------------------------------------------

    async def clarify(self, state: TurnState) -> Dict[str, Any]:
        """Produce a clarification or informational reply; nothing is committed."""
        session_id = state.get("session_id", "unknown")
        _log = f"[session={session_id}] [graph=turn] [node=clarify] "
        classification = state.get("classification")
        result = state.get("parse_result")
        input_type = classification.type if classification is not None else "ambiguous"

        if input_type == "question":
            logger.info(f"{_log}Question, replying without changes")
            return {
                "outcome": TurnOutcome(
                    success=False,
                    intent="question",
                    error_type="question",
                    reply=dialog.question_reply(),
                    classification=classification,
                )
            }

        regions = self.parser.matcher.find_regions(state["text"])
        if classification is None or (input_type == "ambiguous" and classification.confidence < 0.5):
            error_type = AmbiguousInput.error_type
        elif result is not None and NOT_AVAILABLE_ERROR in result.errors:
            error_type = BackendUnavailable.error_type
        else:
            error_type = ParseFailure.error_type
        plan = result.plan if result is not None else None
        if plan is None or not (plan.destinations or plan.pending_cities):
            # The deterministic pass may not have run; it still names cities to ask about
            plan = self.parser.deterministic.extract(state["text"])
        error = (result.error if result is not None else None) or "All parsing strategies failed"

        logger.info(f"{_log}Clarifying | error_type={error_type}, regions={regions}")
        return {
            "outcome": TurnOutcome(
                success=False,
                intent=input_type,
                plan=plan,
                error=error,
                error_type=error_type,
                reply=dialog.parse_error_reply(plan, regions),
                classification=classification,
                source=result.source if result is not None else None,
                confidence=result.confidence if result is not None else 0.0,
            )
        }

    # -------------------------------------------------------------------------
    # respond
    # -------------------------------------------------------------------------

    async def respond(self, state: TurnState) -> Dict[str, Any]:
        """Attach preferences, constraints and the last mentioned city to the outcome."""
        session_id = state.get("session_id", "unknown")
        _log = f"[session={session_id}] [graph=turn] [node=respond] "
        outcome = state["outcome"].model_copy(deep=True)
        result = state.get("parse_result")

        extraction = self.preference_extractor.extract(state["text"])
        outcome.preferences = set(extraction.preferences)
        if result is not None:
            outcome.preferences.update(result.preferences)
        outcome.constraints = list(extraction.constraints)

        plan = outcome.plan if outcome.success else None
        if plan is not None and plan.destinations:
            mentions = self.parser.matcher.find_cities(state["text"])
            planned = [m.name for m in mentions if plan.find(m.name) != -1]
            if planned:
                outcome.mentioned_city = plan.destinations[plan.find(planned[-1])].city

        logger.info(
            f"{_log}Turn complete -> END | success={outcome.success}, intent={outcome.intent}, "
            f"preferences={sorted(outcome.preferences)}"
        )
        return {"outcome": outcome}

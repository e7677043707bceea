"""
Conversation service: the caller-facing entry point.

Runs each turn through the turn graph while holding the session's lock,
then commits the outcome to the store in one step. A failed turn leaves
the session's state untouched.
"""

import logging
import uuid
from typing import Optional, Tuple

from trip_dialog.conversation import dialog
from trip_dialog.conversation.modification import (
    DEFAULT_LIMITS,
    ModificationResolver,
    PlanLimits,
    diff_plans,
)
from trip_dialog.conversation.schemas import (
    ConversationState,
    Message,
    ModificationResponse,
    ParseResponse,
    SessionStateResponse,
    StoreStats,
    TurnOutcome,
    utc_now,
)
from trip_dialog.conversation.store import ConversationStore
from trip_dialog.graph.build import build_initial_state, create_turn_graph
from trip_dialog.graph.nodes import TurnNodes
from trip_dialog.parsing.hybrid.parser import HybridParser
from trip_dialog.parsing.preferences import PreferenceExtractor
from trip_dialog.shared.errors import InvalidModification
from trip_dialog.shared.logging.config import log_state_transition
from trip_dialog.shared.logging.debug_logger import remove_logger


logger = logging.getLogger(__name__)


class TripDialogService:
    """
    Multi-turn trip planning dialog.

    Example:
        >>> service = TripDialogService(parser=HybridParser(use_default_backend=False))
        >>> response = asyncio.run(service.parse("5 days in London"))
        >>> response.plan.total_days
        5
    """

    def __init__(
        self,
        parser: Optional[HybridParser] = None,
        store: Optional[ConversationStore] = None,
        resolver: Optional[ModificationResolver] = None,
        limits: Optional[PlanLimits] = None,
    ):
        self.parser = parser or HybridParser()
        # An empty store is falsy (it defines __len__)
        self.store = store if store is not None else ConversationStore()
        self.store.add_eviction_listener(self._close_debug_log)
        self.limits = limits or DEFAULT_LIMITS
        self.resolver = resolver or ModificationResolver(self.parser.matcher, self.limits)
        self.nodes = TurnNodes(
            self.parser,
            resolver=self.resolver,
            preference_extractor=PreferenceExtractor(),
            limits=self.limits,
        )
        self.graph = create_turn_graph(self.nodes)

    # -------------------------------------------------------------------------
    # Caller API
    # -------------------------------------------------------------------------

    async def parse(
        self,
        text: str,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ParseResponse:
        """Interpret one user message in the context of its session."""
        session_id = session_id or str(uuid.uuid4())
        outcome, state = await self._run_turn(session_id, text, mode="parse", user_id=user_id)
        plan = outcome.plan if outcome.success else (state.current_plan or outcome.plan)

        return ParseResponse(
            session_id=session_id,
            success=outcome.success,
            plan=plan,
            classification=outcome.classification,
            source=outcome.source,
            error=outcome.error,
            error_type=outcome.error_type,
            reply=outcome.reply,
            ready_for_generation=outcome.success and dialog.is_ready_for_generation(plan, self.limits),
        )

    async def apply_modification(self, text: str, session_id: str) -> ModificationResponse:
        """Apply a modification request to the session's current plan."""
        outcome, state = await self._run_turn(session_id, text, mode="modify")

        return ModificationResponse(
            session_id=session_id,
            success=outcome.success,
            plan=outcome.plan if outcome.success else state.current_plan,
            diff=outcome.diff if outcome.success else None,
            error=outcome.error,
            error_type=outcome.error_type,
            reply=outcome.reply,
        )

    async def undo(self, session_id: str) -> ModificationResponse:
        """Restore the plan as it was before the last committed change. Single level."""
        _log = f"[session={session_id}] [component=service] "
        if session_id not in self.store:
            return self._nothing_to_undo(session_id, None)

        async with self.store.lock(session_id):
            state = self.store.get(session_id)
            if state is None or state.previous_plan is None:
                return self._nothing_to_undo(session_id, state)

            restored = state.previous_plan
            diff = diff_plans(state.current_plan, restored)
            state.current_plan = restored
            state.previous_plan = None
            state.last_intent = "undo"
            reply = f"Undone. Your trip is back to {restored.describe() or 'no destinations'}."
            state.history.append(Message(role="assistant", content=reply))
            state.metadata.message_count += 1
            self.store.commit(state)

            logger.info(f"{_log}Undid last change | diff={diff.describe()}")
            log_state_transition("plan_undone", state.model_dump(mode="json"), logger=logger)

            return ModificationResponse(
                session_id=session_id,
                success=True,
                plan=restored,
                diff=diff,
                reply=reply,
            )

    def get_state(self, session_id: str) -> Optional[ConversationState]:
        return self.store.get(session_id)

    def describe_state(self, session_id: str) -> Optional[SessionStateResponse]:
        state = self.store.get(session_id)
        if state is None:
            return None
        return SessionStateResponse(
            session_id=session_id,
            phase=state.phase,
            plan=state.current_plan,
            preferences=sorted(state.preferences),
            constraints=state.constraints,
            history=state.history,
            message_count=state.metadata.message_count,
            can_undo=state.previous_plan is not None,
            ready_for_generation=dialog.is_ready_for_generation(state.current_plan, self.limits),
            missing_fields=dialog.missing_fields(state.current_plan),
        )

    def clear(self, session_id: str) -> bool:
        """Destroy the session's state. Its debug log is closed by the store listener."""
        return self.store.delete(session_id)

    @staticmethod
    def _close_debug_log(session_id: str) -> None:
        """Write the session summary and drop the session's debug logger."""
        debug_logger = remove_logger(session_id)
        if debug_logger is not None:
            debug_logger.log_session_summary()

    @staticmethod
    def _nothing_to_undo(session_id: str, state: Optional[ConversationState]) -> ModificationResponse:
        message = "There is nothing to undo."
        return ModificationResponse(
            session_id=session_id,
            success=False,
            plan=state.current_plan if state is not None else None,
            error=message,
            error_type=InvalidModification.error_type,
            reply=message,
        )

    def stats(self) -> StoreStats:
        return self.store.stats()

    # -------------------------------------------------------------------------
    # Turn execution
    # -------------------------------------------------------------------------

    async def _run_turn(
        self,
        session_id: str,
        text: str,
        mode: str,
        user_id: Optional[str] = None,
    ) -> Tuple[TurnOutcome, ConversationState]:
        _log = f"[session={session_id}] [component=service] "

        async with self.store.lock(session_id):
            state = self.store.get_or_create(session_id, user_id)
            initial = build_initial_state(session_id, text, state.to_parse_context(), mode=mode)

            logger.info(f"{_log}Running turn | mode={mode}, phase={state.phase}")
            result = await self.graph.ainvoke(initial)
            outcome: TurnOutcome = result["outcome"]

            if not outcome.success:
                logger.info(
                    f"{_log}Turn not committed | error_type={outcome.error_type}, error={outcome.error}"
                )
                return outcome, state

            committed = self._apply_outcome(state, text, outcome)
            self.store.commit(committed)
            log_state_transition(
                "turn_committed",
                committed.model_dump(mode="json"),
                extra={"intent": outcome.intent, "source": outcome.source},
                logger=logger,
            )
            return outcome, committed

    @staticmethod
    def _apply_outcome(
        state: ConversationState,
        text: str,
        outcome: TurnOutcome,
    ) -> ConversationState:
        """Build the next state from a successful outcome. state is a private copy."""
        now = utc_now()
        state.history.append(Message(role="user", content=text, timestamp=now))
        state.history.append(Message(role="assistant", content=outcome.reply, timestamp=now))
        state.metadata.message_count += 2
        state.metadata.last_activity = now

        if outcome.plan is not None and outcome.plan != state.current_plan:
            state.previous_plan = state.current_plan
            state.current_plan = outcome.plan

        state.preferences.update(outcome.preferences)
        if outcome.diff is not None:
            state.preferences.difference_update(outcome.diff.removed_preferences())
            state.preferences.update(outcome.diff.added_preferences())

        existing = {c.key() for c in state.constraints}
        for constraint in outcome.constraints:
            if constraint.key() not in existing:
                state.constraints.append(constraint)
                existing.add(constraint.key())

        if outcome.intent == "new_plan":
            state.phase = "planning"
        elif outcome.intent in ("modification", "continuation"):
            state.phase = "modifying"
        state.last_intent = outcome.intent
        if outcome.mentioned_city:
            state.last_mentioned_city = outcome.mentioned_city

        return state

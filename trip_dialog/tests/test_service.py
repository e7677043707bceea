"""
Tests for the conversation service.

Runs whole turns through the turn graph: multi-turn scenarios, failed
turns leaving state untouched, undo, preferences and per-session
serialization. The AI backend is disabled so every turn is deterministic.
"""

import asyncio

from trip_dialog.conversation.service import TripDialogService
from trip_dialog.conversation.store import ConversationStore, StoreConfig
from trip_dialog.parsing.hybrid.parser import HybridParser
from trip_dialog.shared.logging.debug_logger import get_or_create_logger, remove_logger


def _make_service(store=None):
    """Create a service with no language-model backend."""
    return TripDialogService(parser=HybridParser(use_default_backend=False), store=store)


def _days(plan):
    return [(d.city, d.days) for d in plan.destinations]


class TestParseTurns:
    """Tests for TripDialogService.parse."""

    def test_structured_plan(self):
        """A structured request becomes the session's plan."""
        service = _make_service()
        response = asyncio.run(service.parse("5 days in London and 3 days in Paris", session_id="s1"))
        assert response.success is True
        assert response.session_id == "s1"
        assert response.source == "hybrid"
        assert response.classification.type == "structured"
        assert _days(response.plan) == [("London", 5), ("Paris", 3)]
        assert response.ready_for_generation is False
        assert "traveling from" in response.reply

        state = service.get_state("s1")
        assert state.phase == "planning"
        assert state.last_intent == "new_plan"
        assert state.metadata.message_count == 2
        assert [m.role for m in state.history] == ["user", "assistant"]

    def test_new_session_id_generated(self):
        """Omitting the session id starts a new session."""
        service = _make_service()
        response = asyncio.run(service.parse("5 days in London"))
        assert response.session_id
        assert service.get_state(response.session_id) is not None

    def test_origin_follow_up(self):
        """'from NYC' completes the previous turn's plan."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in London", session_id="s1")
            return await service.parse("from NYC", session_id="s1")

        response = asyncio.run(conversation())
        assert response.success is True
        assert _days(response.plan) == [("London", 5)]
        assert response.plan.origin == "NYC"
        assert response.plan.total_days == 5
        assert response.ready_for_generation is True

        state = service.get_state("s1")
        assert state.phase == "modifying"
        assert state.last_intent == "continuation"
        assert state.metadata.message_count == 4

    def test_origin_carried_to_new_plan(self):
        """A new plan keeps the origin already given."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in London from Boston", session_id="s1")
            return await service.parse("4 days in Rome", session_id="s1")

        response = asyncio.run(conversation())
        assert response.success is True
        assert _days(response.plan) == [("Rome", 4)]
        assert response.plan.origin == "Boston"

    def test_vague_region_not_committed(self):
        """'Europe' asks which cities and leaves the session empty."""
        service = _make_service()
        response = asyncio.run(service.parse("Europe", session_id="s1"))
        assert response.success is False
        assert response.error_type == "ambiguous_input"
        assert "Europe" in response.reply
        assert response.ready_for_generation is False

        state = service.get_state("s1")
        assert state.current_plan is None
        assert state.history == []

    def test_question_not_committed(self):
        """Questions get a redirect reply and change nothing."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in London", session_id="s1")
            return await service.parse("What's the weather like in Paris?", session_id="s1")

        response = asyncio.run(conversation())
        assert response.success is False
        assert response.error_type == "question"
        assert _days(response.plan) == [("London", 5)]
        assert service.get_state("s1").metadata.message_count == 2

    def test_pending_cities_prompt_for_days(self):
        """Cities without days are asked about."""
        service = _make_service()
        response = asyncio.run(service.parse("London, Paris and Rome", session_id="s1"))
        assert response.success is False
        assert "How many days" in response.reply

    def test_over_limit_plan_not_ready(self):
        """Plans beyond the limits are kept but not ready for generation."""
        service = _make_service()
        response = asyncio.run(
            service.parse("14 days in London and 14 days in Paris and 5 days in Rome from Boston", session_id="s1")
        )
        assert response.success is True
        assert response.plan.total_days == 33
        assert response.ready_for_generation is False
        assert "limit" in response.reply

    def test_conversational_without_backend(self):
        """Input that needs the language model reports it as unavailable."""
        service = _make_service()
        response = asyncio.run(service.parse("I'd like a romantic getaway", session_id="s1"))
        assert response.success is False
        assert response.error_type == "backend_unavailable"
        assert service.get_state("s1").history == []


class TestModificationTurns:
    """Tests for TripDialogService.apply_modification and undo."""

    def test_whole_trip_extension(self):
        """'extend the whole trip to 2 weeks' rescales the plan."""
        service = _make_service()

        async def conversation():
            await service.parse("6 days in London and 4 days in Paris from Boston", session_id="s1")
            return await service.apply_modification("extend the whole trip to 2 weeks", "s1")

        response = asyncio.run(conversation())
        assert response.success is True
        assert _days(response.plan) == [("London", 8), ("Paris", 6)]
        assert response.plan.total_days == 14
        assert response.diff.kind == "change_duration"
        assert service.get_state("s1").previous_plan.total_days == 10

    def test_remove_missing_city_leaves_state(self):
        """Removing a city that isn't planned fails and changes nothing."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in Paris", session_id="s1")
            before = service.get_state("s1")
            response = await service.apply_modification("remove Tokyo", "s1")
            return before, response

        before, response = asyncio.run(conversation())
        assert response.success is False
        assert response.error_type == "invalid_modification"
        assert "Tokyo" in response.error
        assert "Paris" in response.error
        assert _days(response.plan) == [("Paris", 5)]
        assert service.get_state("s1") == before

    def test_pronoun_follows_last_mentioned_city(self):
        """'there' is the city named most recently."""
        service = _make_service()

        async def conversation():
            await service.parse("6 days in London and 4 days in Paris from Boston", session_id="s1")
            return await service.apply_modification("add 2 more days there", "s1")

        response = asyncio.run(conversation())
        assert response.success is True
        assert _days(response.plan) == [("London", 6), ("Paris", 6)]

    def test_modification_without_plan(self):
        """A modification with no plan is an invalid modification."""
        service = _make_service()
        response = asyncio.run(service.apply_modification("add Rome", "s1"))
        assert response.success is False
        assert response.error_type == "invalid_modification"

    def test_modification_through_parse(self):
        """Modification language in a parse turn is routed to the resolver."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in Paris from Boston", session_id="s1")
            return await service.parse("add Rome for 3 days", session_id="s1")

        response = asyncio.run(conversation())
        assert response.success is True
        assert _days(response.plan) == [("Paris", 5), ("Rome", 3)]
        assert response.ready_for_generation is True

    def test_undo(self):
        """Undo restores the previous plan once."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in Paris", session_id="s1")
            await service.apply_modification("add Rome for 3 days", "s1")
            first = await service.undo("s1")
            second = await service.undo("s1")
            return first, second

        first, second = asyncio.run(conversation())
        assert first.success is True
        assert _days(first.plan) == [("Paris", 5)]
        assert first.diff.kind == "remove_destination"
        assert second.success is False
        assert second.error == "There is nothing to undo."
        assert _days(service.get_state("s1").current_plan) == [("Paris", 5)]

    def test_city_duration_is_not_whole_trip(self):
        """'make it 5 days in Paris' changes Paris only."""
        service = _make_service()

        async def conversation():
            await service.parse("6 days in London and 4 days in Paris from Boston", session_id="s1")
            return await service.apply_modification("make it 5 days in Paris", "s1")

        response = asyncio.run(conversation())
        assert response.success is True
        assert _days(response.plan) == [("London", 6), ("Paris", 5)]
        assert response.diff.operations[0].city == "Paris"

    def test_undo_unknown_session(self):
        """Undo on an unknown session reports nothing to undo and leaves no lock behind."""
        service = _make_service()
        response = asyncio.run(service.undo("missing"))
        assert response.success is False
        assert response.plan is None
        assert "missing" not in service.store._locks


class TestPreferencesAndState:
    """Tests for preference accumulation and session management."""

    def test_preferences_accumulate_and_remove(self):
        """Preferences collect across turns and can be removed."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in London for museums and food under $2000", session_id="s1")
            after_parse = service.describe_state("s1")
            await service.apply_modification("less museums", "s1")
            return after_parse, service.describe_state("s1")

        after_parse, after_modify = asyncio.run(conversation())
        assert after_parse.preferences == ["cultural", "foodie"]
        assert [(c.type, c.value) for c in after_parse.constraints] == [("budget", 2000)]
        assert after_modify.preferences == ["foodie"]
        assert _days(after_modify.plan) == [("London", 5)]

    def test_describe_state(self):
        """The state view reports undo and readiness."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in London", session_id="s1")
            await service.parse("from NYC", session_id="s1")

        asyncio.run(conversation())
        view = service.describe_state("s1")
        assert view.can_undo is True
        assert view.ready_for_generation is True
        assert view.missing_fields == []
        assert view.message_count == 4

    def test_sessions_are_isolated(self):
        """Turns in one session don't affect another."""
        service = _make_service()

        async def conversation():
            await service.parse("5 days in London", session_id="a")
            await service.parse("3 days in Tokyo", session_id="b")

        asyncio.run(conversation())
        assert _days(service.get_state("a").current_plan) == [("London", 5)]
        assert _days(service.get_state("b").current_plan) == [("Tokyo", 3)]

    def test_concurrent_turns_serialized(self):
        """Concurrent turns for one session are applied one at a time."""
        service = _make_service()

        async def conversation():
            await asyncio.gather(
                service.parse("5 days in London", session_id="s1"),
                service.parse("3 days in Paris", session_id="s1"),
            )

        asyncio.run(conversation())
        state = service.get_state("s1")
        assert state.metadata.message_count == 4
        assert len(state.history) == 4
        assert state.current_plan.is_consistent

    def test_clear(self):
        """Clearing removes the session."""
        service = _make_service()
        asyncio.run(service.parse("5 days in London", session_id="s1"))
        assert service.clear("s1") is True
        assert service.get_state("s1") is None
        assert service.clear("s1") is False

    def test_stats(self):
        """Stats reflect the store."""
        service = _make_service()
        asyncio.run(service.parse("5 days in London", session_id="s1"))
        stats = service.stats()
        assert stats.active_sessions == 1
        assert stats.total_messages == 2

    def test_injected_store_is_used(self):
        """A store passed at construction keeps its own bounds."""
        store = ConversationStore(StoreConfig(max_sessions=2))
        service = _make_service(store)
        assert service.store is store

        async def conversation():
            for session_id in ("s0", "s1", "s2"):
                await service.parse("5 days in London", session_id=session_id)

        asyncio.run(conversation())
        assert len(store) == 2
        assert service.get_state("s0") is None
        assert service.get_state("s2") is not None

    def test_evicted_session_drops_debug_log(self, tmp_path):
        """A session's debug logger goes away when the store evicts the session."""
        service = _make_service(ConversationStore(StoreConfig(max_sessions=1)))
        asyncio.run(service.parse("5 days in London", session_id="old"))
        debug_logger = get_or_create_logger("old", str(tmp_path))

        asyncio.run(service.parse("3 days in Paris", session_id="new"))
        assert service.get_state("old") is None
        assert get_or_create_logger("old", str(tmp_path)) is not debug_logger
        remove_logger("old")

    def test_clear_drops_debug_log(self, tmp_path):
        """Clearing a session also drops its debug logger."""
        service = _make_service()
        asyncio.run(service.parse("5 days in London", session_id="s1"))
        debug_logger = get_or_create_logger("s1", str(tmp_path))
        assert service.clear("s1") is True
        assert remove_logger("s1") is None
        assert "session_summary" in debug_logger.log_file.read_text()

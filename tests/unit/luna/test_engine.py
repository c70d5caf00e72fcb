"""Tests for the local execution engine.

Covers the routing policy (handle / fallback / reject), handler failure
downgrades, caching, session memory and event logging.
"""

import pytest

from tools.luna.capabilities.registry import CapabilityRegistry
from tools.luna.config import LunaConfig
from tools.luna.engine import LocalExecutionEngine, create_engine
from tools.luna.models import (
    CapabilityOutput,
    FailureKind,
    Intent,
    IntentCategory,
    LocalCapability,
    Outcome,
    RequestState,
    ResolutionSource,
    ResultType,
)

from tests.conftest import FIXED_NOW


def _engine_with(handler, config: LunaConfig | None = None) -> LocalExecutionEngine:
    """Engine whose only capability answers general/time with `handler`."""
    registry = CapabilityRegistry()
    registry.register(LocalCapability(
        name="stub_clock",
        patterns=((IntentCategory.GENERAL, "time"),),
        handler=handler,
        fallback_hint="Ask the assistant for the time",
    ))
    return create_engine(config=config or LunaConfig(), clock=lambda: FIXED_NOW, registry=registry)


# =============================================================================
# Local Handling
# =============================================================================


class TestLocalHandling:
    def test_calculation_handled_locally(self, engine: LocalExecutionEngine):
        result = engine.process("Calculate 25 * 8")

        assert result.type == ResultType.SUCCESS
        assert result.handled_locally is True
        assert result.content == "200"
        assert result.capability == "calculator"
        assert result.state == RequestState.LOCALLY_HANDLED
        assert result.intent.label == "general/calculate"
        assert result.confidence >= 0.55
        assert result.event_id
        assert result.cached is False

    def test_time_question(self, engine: LocalExecutionEngine):
        result = engine.process("What time is it?")
        assert result.type == ResultType.SUCCESS
        assert result.content == "It's 3:45 PM on Saturday."

    def test_navigation(self, engine: LocalExecutionEngine):
        result = engine.process("Go to tasks")
        assert result.capability == "navigation"
        assert result.action.payload["route"] == "/app/tasks"

    def test_quick_capture_uses_module(self, engine: LocalExecutionEngine):
        result = engine.process("add this to my list", hints={"module": "goals"})
        assert result.type == ResultType.SUCCESS
        assert result.content == "Ready to add a new goal. What should it be called?"
        assert result.action.kind == "create"
        assert result.intent.resolved_by == ResolutionSource.MODULE

    def test_quick_capture_without_module(self, engine: LocalExecutionEngine):
        result = engine.process("add this to my list")
        assert result.content == "Ready to add a new task. What should it be called?"

    def test_task_with_due_date(self, engine: LocalExecutionEngine):
        result = engine.process("remind me to call mom tomorrow")
        assert result.action.payload["title"] == "Call mom"
        assert result.action.payload["due"] == "2026-10-18"
        assert result.cacheable is False

    def test_spanish_capture_keeps_title(self, engine: LocalExecutionEngine):
        result = engine.process("crear tarea comprar leche", hints={"language": "es"})
        assert result.intent.label == "task_management/create"
        assert result.content == 'Ready to add task "Comprar leche".'
        assert result.action.payload["needs_details"] is False

    def test_productivity_insights(self, engine: LocalExecutionEngine):
        result = engine.process("Give me insights on my productivity")
        assert result.type == ResultType.SUCCESS
        assert result.capability == "productivity_insights"
        assert "Right now: Afternoons suit meetings" in result.content
        assert engine.process("Give me insights on my productivity").cached is False

    def test_execute_applies_policy(self, engine: LocalExecutionEngine, make_context):
        intent = Intent(category=IntentCategory.GENERAL, action="calculate", confidence=0.9)
        result = engine.execute(intent, "2 + 2", make_context())
        assert result.content == "4"
        assert result.event_id is None
        assert len(engine.tracker) == 0


# =============================================================================
# Fallback & Rejection
# =============================================================================


class TestRouting:
    def test_middle_band_requests_fallback(self, engine: LocalExecutionEngine, make_context):
        intent = Intent(category=IntentCategory.GENERAL, action="time", confidence=0.4)
        result = engine.execute(intent, "what time is it", make_context())

        assert result.type == ResultType.FALLBACK
        assert result.handled_locally is False
        assert result.capability == "clock"
        assert result.suggested_actions == ("Ask about the time or date",)
        assert result.state == RequestState.FALLBACK_REQUESTED

    def test_below_fallback_threshold_rejected(self, engine: LocalExecutionEngine, make_context):
        intent = Intent(category=IntentCategory.GENERAL, action="time", confidence=0.2)
        result = engine.execute(intent, "what time is it", make_context())
        assert result.type == ResultType.ERROR
        assert result.state == RequestState.REJECTED

    def test_threshold_boundaries(self, engine: LocalExecutionEngine, make_context):
        ctx = make_context()
        at_handle = Intent(category=IntentCategory.GENERAL, action="time", confidence=0.55)
        at_fallback = Intent(category=IntentCategory.GENERAL, action="time", confidence=0.30)
        assert engine.execute(at_handle, "what time is it", ctx).type == ResultType.SUCCESS
        assert engine.execute(at_fallback, "what time is it", ctx).type == ResultType.FALLBACK

    def test_gibberish_rejected_as_ambiguous(self, engine: LocalExecutionEngine):
        result = engine.process("xyzzy qux")

        assert result.type == ResultType.ERROR
        assert result.handled_locally is False
        assert result.content.startswith("I'm not sure what you mean yet.")
        assert result.intent.resolved_by == ResolutionSource.FALLBACK

        event = engine.tracker.get_event(result.event_id)
        assert event.outcome == Outcome.AMBIGUOUS
        assert event.failure == FailureKind.CLASSIFICATION_AMBIGUOUS

    def test_suggestion_for_task_like_gibberish(self, engine: LocalExecutionEngine):
        result = engine.process("remember blorp")
        assert 'Try: "add task [description]"' in result.content

    def test_confident_intent_without_capability(self, engine: LocalExecutionEngine):
        result = engine.process("help")

        assert result.type == ResultType.ERROR
        assert result.content == "That one needs the full assistant. Let me pass it along."
        event = engine.tracker.get_event(result.event_id)
        assert event.outcome == Outcome.FAILED
        assert event.failure is None

    @pytest.mark.parametrize("text", [None, "", "   ", 42])
    def test_bad_input_never_raises(self, engine: LocalExecutionEngine, text):
        result = engine.process(text)
        assert result.type == ResultType.ERROR
        assert result.handled_locally is False


# =============================================================================
# Handler Failures
# =============================================================================


class TestHandlerFailures:
    def test_input_error_downgrades_to_fallback(self, engine: LocalExecutionEngine):
        result = engine.process("calculate something")

        assert result.type == ResultType.FALLBACK
        assert result.capability == "calculator"
        assert result.content == "I couldn't finish that here. Let me hand it to the assistant."
        event = engine.tracker.get_event(result.event_id)
        assert event.failure == FailureKind.HANDLER_EXECUTION_FAILURE
        assert event.outcome == Outcome.FAILED

    def test_division_by_zero(self, engine: LocalExecutionEngine):
        result = engine.process("calculate 5 / 0")
        assert result.type == ResultType.FALLBACK

    def test_failures_not_cached(self, engine: LocalExecutionEngine):
        engine.process("calculate something")
        assert len(engine.cache) == 0

    def test_raising_handler(self):
        def boom(intent, raw_input, context):
            raise RuntimeError("disk on fire")

        result = _engine_with(boom).process("What time is it?")
        assert result.type == ResultType.FALLBACK
        assert result.suggested_actions == ("Ask the assistant for the time",)

    @pytest.mark.parametrize("output", [
        "plain string",
        None,
        CapabilityOutput(content=""),
        CapabilityOutput(content="   "),
    ])
    def test_malformed_output(self, output):
        engine = _engine_with(lambda intent, raw_input, context: output)
        result = engine.process("What time is it?")
        assert result.type == ResultType.FALLBACK
        event = engine.tracker.get_event(result.event_id)
        assert event.failure == FailureKind.HANDLER_EXECUTION_FAILURE

    def test_slow_handler_still_succeeds(self):
        ticks = iter(range(0, 10_000))

        def timer() -> float:
            return float(next(ticks))

        registry = CapabilityRegistry()
        registry.register(LocalCapability(
            name="stub_clock",
            patterns=((IntentCategory.GENERAL, "time"),),
            handler=lambda intent, raw_input, context: CapabilityOutput(content="now"),
            max_execution_ms=1,
        ))
        engine = create_engine(config=LunaConfig(), clock=lambda: FIXED_NOW, registry=registry, timer=timer)
        result = engine.process("What time is it?")
        assert result.type == ResultType.SUCCESS
        assert result.execution_time > 0

    def test_unexpected_error_returns_error_result(self, engine: LocalExecutionEngine, monkeypatch):
        def broken(hints, session):
            raise RuntimeError("resolver down")

        monkeypatch.setattr(engine.resolver, "resolve", broken)
        result = engine.process("Calculate 25 * 8")
        assert result.type == ResultType.ERROR
        assert result.state == RequestState.REJECTED
        assert result.event_id

        assert len(engine.tracker) == 1
        event = engine.tracker.get_event(result.event_id)
        assert event.outcome == Outcome.FAILED
        assert event.state == RequestState.REJECTED
        assert event.input == "Calculate 25 * 8"

    def test_failure_after_logging_records_once(self, engine: LocalExecutionEngine, monkeypatch):
        session = engine.new_session()

        def broken(intent, text):
            raise RuntimeError("session store down")

        monkeypatch.setattr(session, "remember", broken)
        result = engine.process("Calculate 25 * 8", session=session)
        assert result.type == ResultType.ERROR
        assert len(engine.tracker) == 1

    @pytest.mark.parametrize("tz", ["America", "a" * 300, "Mars/Olympus_Mons", "../etc"])
    def test_unusable_timezone_still_answers(self, engine: LocalExecutionEngine, tz: str):
        result = engine.process("What time is it?", hints={"timezone": tz})

        assert result.type == ResultType.SUCCESS
        assert result.content == "It's 3:45 PM on Saturday."
        event = engine.tracker.get_event(result.event_id)
        assert event.failure == FailureKind.CONTEXT_MISSING

    def test_one_event_per_request(self, engine: LocalExecutionEngine):
        for tz in ("UTC", "America", "a" * 300, "Asia/Tokyo", "Europe/Paris"):
            engine.process("What time is it?", hints={"timezone": tz})
        assert len(engine.tracker) == 5


# =============================================================================
# Caching
# =============================================================================


class TestCaching:
    def test_repeat_served_from_cache(self, engine: LocalExecutionEngine):
        first = engine.process("Calculate 25 * 8")
        second = engine.process("calculate 25 * 8!")

        assert second.cached is True
        assert second.content == first.content
        assert second.event_id != first.event_id
        assert engine.tracker.get_event(second.event_id).cached is True
        assert engine.cache.stats()["hits"] == 1

    def test_time_answers_not_cached(self, engine: LocalExecutionEngine):
        engine.process("What time is it?")
        second = engine.process("What time is it?")
        assert second.cached is False
        assert len(engine.cache) == 0

    def test_module_separates_entries(self, engine: LocalExecutionEngine):
        engine.process("add this to my list", hints={"module": "goals"})
        other = engine.process("add this to my list", hints={"module": "tasks"})
        assert other.cached is False
        assert "task" in other.content

    def test_capture_case_variants_not_shared(self, engine: LocalExecutionEngine):
        first = engine.process("add task Call Bob")
        second = engine.process("add task call bob")

        assert second.cached is False
        assert first.action.payload["title"] == "Call Bob"
        assert second.action.payload["title"] == "Call bob"

    def test_corrupt_entry_recomputed(self, engine: LocalExecutionEngine):
        engine.process("Calculate 25 * 8")
        for key in list(engine.cache._entries):
            engine.cache._entries[key] = "garbage"

        result = engine.process("Calculate 25 * 8")
        assert result.cached is False
        assert result.content == "200"
        assert engine.tracker.get_event(result.event_id).failure == FailureKind.CACHE_CORRUPTION

    def test_cache_expires(self, engine: LocalExecutionEngine, monotonic):
        engine.process("Calculate 25 * 8")
        monotonic.advance(301)
        assert engine.process("Calculate 25 * 8").cached is False

    def test_clear_cache(self, engine: LocalExecutionEngine):
        engine.process("Calculate 25 * 8")
        assert engine.clear_cache() == 1
        assert engine.process("Calculate 25 * 8").cached is False

    def test_cache_disabled(self):
        config = LunaConfig(cache={"enabled": False})
        engine = create_engine(config=config, clock=lambda: FIXED_NOW)
        engine.process("Calculate 25 * 8")
        assert engine.cache is None
        assert engine.process("Calculate 25 * 8").cached is False
        assert engine.dashboard_data()["cache"] is None
        assert engine.clear_cache() == 0


# =============================================================================
# Session & Analytics
# =============================================================================


class TestSessionAndLogging:
    def test_session_remembers(self, engine: LocalExecutionEngine):
        session = engine.new_session()
        engine.process("track my morning routine", session=session)
        engine.process("Calculate 25 * 8", session=session)

        assert [i.label for i in session.recent_intents] == [
            "habit_formation/track",
            "general/calculate",
        ]
        assert session.conversation_history[-1] == "Calculate 25 * 8"

    def test_cached_result_remembered(self, engine: LocalExecutionEngine):
        session = engine.new_session()
        engine.process("Calculate 25 * 8")
        engine.process("Calculate 25 * 8", session=session)
        assert len(session.recent_intents) == 1

    def test_session_history_breaks_ties(self, engine: LocalExecutionEngine):
        session = engine.new_session()
        engine.process("track my morning routine", session=session)
        engine.process("new habit", session=session)
        result = engine.classify("add this to my list", session=session)
        assert result.category == IntentCategory.HABIT_FORMATION

    def test_every_request_logged(self, engine: LocalExecutionEngine):
        for text in ("Calculate 25 * 8", "xyzzy", "help", "Calculate 25 * 8"):
            engine.process(text)
        assert len(engine.tracker) == 4

    def test_event_carries_context(self, engine: LocalExecutionEngine):
        result = engine.process("Go to tasks", hints={"module": "goals", "language": "en"})
        event = engine.tracker.get_event(result.event_id)
        assert event.context.module == "goals"
        assert event.context.time_of_day == "afternoon"
        assert event.state == RequestState.LOCALLY_HANDLED
        assert event.input == "Go to tasks"

    def test_actual_intent_recorded(self, engine: LocalExecutionEngine):
        actual = Intent(category=IntentCategory.GENERAL, action="calculate", confidence=1.0)
        result = engine.process("Calculate 25 * 8", actual_intent=actual)
        assert engine.tracker.get_event(result.event_id).actual_intent == actual

    def test_feedback_and_confirm(self, engine: LocalExecutionEngine):
        result = engine.process("Calculate 25 * 8")
        record = engine.feedback(result.event_id, helpful=True)
        assert record.helpful is True
        assert engine.feedback("missing", helpful=True) is None

        confirmed = engine.confirm(result.event_id)
        assert confirmed.source == "implicit"
        assert confirmed.actual_intent.label == "general/calculate"

    def test_dashboard_data(self, engine: LocalExecutionEngine):
        engine.process("Calculate 25 * 8")
        engine.process("Calculate 25 * 8")
        data = engine.dashboard_data()

        assert data["overview"]["total_usage"] == 2
        assert data["overview"]["total_capabilities"] == 6
        assert data["overview"]["cache_hits"] == 1
        assert data["cache"]["size"] == 1
        assert data["performance"]["capabilities"]["calculator"]["usage"] == 2

    def test_create_engine_reads_config_file(self, tmp_path, monkeypatch):
        path = tmp_path / "luna.yaml"
        path.write_text("luna:\n  routing:\n    handle_threshold: 0.99\n    fallback_threshold: 0.5\n")
        monkeypatch.setenv("LUNA_CONFIG", str(path))

        engine = create_engine(clock=lambda: FIXED_NOW)
        assert engine.config.routing.handle_threshold == 0.99
        # 0.9817 confidence is now only good enough for a fallback
        assert engine.process("Calculate 25 * 8").type == ResultType.FALLBACK

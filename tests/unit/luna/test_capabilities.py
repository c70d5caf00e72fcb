"""Tests for the built-in local capabilities and their registry."""

import pytest

from tools.luna.capabilities.calculator import (
    evaluate_expression,
    extract_expression,
    format_number,
    handle_calculate,
)
from tools.luna.capabilities.clock import format_time, handle_clock
from tools.luna.capabilities.navigation import find_destination, handle_navigation
from tools.luna.capabilities.priority_advisor import assess_priority, handle_prioritize
from tools.luna.capabilities.productivity_insights import (
    GENERAL_INSIGHTS,
    TIME_TIPS,
    handle_insights,
    pick_insight,
)
from tools.luna.capabilities.quick_capture import handle_quick_capture
from tools.luna.capabilities.registry import CapabilityRegistry, create_default_registry
from tools.luna.errors import CapabilityInputError
from tools.luna.models import (
    CapabilityOutput,
    Intent,
    IntentCategory,
    LocalCapability,
    TimeOfDay,
)


def _intent(category: IntentCategory, action: str) -> Intent:
    return Intent(category=category, action=action, confidence=0.9)


# =============================================================================
# Clock
# =============================================================================


class TestClock:
    @pytest.mark.parametrize("hour,minute,expected", [
        (0, 5, "12:05 AM"),
        (9, 7, "9:07 AM"),
        (12, 0, "12:00 PM"),
        (15, 45, "3:45 PM"),
        (23, 59, "11:59 PM"),
    ])
    def test_format_time(self, hour: int, minute: int, expected: str):
        assert format_time(hour, minute) == expected

    def test_time_question(self, make_context):
        out = handle_clock(_intent(IntentCategory.GENERAL, "time"), "What time is it?", make_context())
        assert out.content == "It's 3:45 PM on Saturday."
        assert out.cacheable is False
        assert "Set reminder" in out.suggested_actions

    def test_date_question(self, make_context):
        out = handle_clock(_intent(IntentCategory.GENERAL, "time"), "What's the date?", make_context())
        assert out.content == "Today is Saturday, October 17, 2026."

    def test_time_and_date(self, make_context):
        out = handle_clock(_intent(IntentCategory.GENERAL, "time"), "what time and date is it", make_context())
        assert out.content == "It's 3:45 PM on Saturday, October 17, 2026."

    def test_concise_style(self, make_context):
        ctx = make_context(communication_style="concise")
        out = handle_clock(_intent(IntentCategory.GENERAL, "time"), "what time is it", ctx)
        assert out.content == "3:45 PM"

    def test_uses_context_timezone(self, make_context):
        ctx = make_context(timezone="Asia/Tokyo")
        out = handle_clock(_intent(IntentCategory.GENERAL, "time"), "what time is it", ctx)
        assert out.content == "It's 12:45 AM on Sunday."


# =============================================================================
# Calculator
# =============================================================================


class TestCalculator:
    @pytest.mark.parametrize("text,expected", [
        ("Calculate 25 * 8", "200"),
        ("what's 25 x 8?", "200"),
        ("15% of 200", "30"),
        ("100 divided by 8", "12.5"),
        ("2^10", "1024"),
        ("what is 7 minus 10", "-3"),
        ("1,000 plus 1", "1001"),
        ("(2 + 3) * 4", "20"),
        ("1/3", "0.3333333333"),
        ("calculate 08 + 1", "9"),
    ])
    def test_handle_calculate(self, make_context, text: str, expected: str):
        out = handle_calculate(_intent(IntentCategory.GENERAL, "calculate"), text, make_context())
        assert out.content == expected
        assert out.cacheable is True

    def test_extract_expression(self):
        assert extract_expression("what's 25 x 8?") == "25*8"

    def test_no_expression(self):
        with pytest.raises(CapabilityInputError):
            extract_expression("calculate something")

    def test_division_by_zero_propagates(self):
        with pytest.raises(ZeroDivisionError):
            evaluate_expression("5/0")

    @pytest.mark.parametrize("expression", [
        "__import__('os')",
        "2 +",
        "2**1000",
        "[1, 2]",
        "1" * 201,
    ])
    def test_rejects_non_arithmetic(self, expression: str):
        with pytest.raises(CapabilityInputError):
            evaluate_expression(expression)

    @pytest.mark.parametrize("value,expected", [
        (200.0, "200"),
        (2.5, "2.5"),
        (7, "7"),
        (-3, "-3"),
    ])
    def test_format_number(self, value, expected: str):
        assert format_number(value) == expected


# =============================================================================
# Quick Capture
# =============================================================================


class TestQuickCapture:
    def test_task_with_due_date(self, make_context):
        out = handle_quick_capture(
            _intent(IntentCategory.TASK_MANAGEMENT, "create"),
            "remind me to call mom tomorrow",
            make_context(),
        )
        payload = out.action.payload

        assert out.action.kind == "create"
        assert payload["kind"] == "task"
        assert payload["title"] == "Call mom"
        assert payload["due"] == "2026-10-18"
        assert payload["priority"] == "medium"
        assert payload["needs_details"] is False
        assert payload["source"] == "luna_local"
        assert out.content == 'Ready to add task "Call mom" (due 2026-10-18).'
        assert out.cacheable is False

    def test_titled_goal_not_cacheable(self, make_context):
        out = handle_quick_capture(
            _intent(IntentCategory.GOAL_SETTING, "create"),
            "Create a goal to run a marathon",
            make_context(module="goals"),
        )
        assert out.content == 'Ready to add goal "Run a marathon".'
        assert out.action.payload["module"] == "goals"
        assert out.cacheable is False

    def test_untitled_capture_is_cacheable(self, make_context):
        out = handle_quick_capture(
            _intent(IntentCategory.TASK_MANAGEMENT, "create"),
            "add this to my list",
            make_context(module="tasks"),
        )
        assert out.action.payload["needs_details"] is True
        assert out.cacheable is True

    def test_habit_details(self, make_context):
        out = handle_quick_capture(
            _intent(IntentCategory.HABIT_FORMATION, "create"),
            "new habit: meditate for 10 minutes every day",
            make_context(),
        )
        payload = out.action.payload
        assert payload["kind"] == "habit"
        assert payload["title"] == "Meditate"
        assert payload["frequency"] == "daily"
        assert payload["estimated_minutes"] == 10

    def test_vague_request_needs_details(self, make_context):
        out = handle_quick_capture(
            _intent(IntentCategory.TASK_MANAGEMENT, "create"),
            "add this to my list",
            make_context(module="tasks"),
        )
        assert out.action.payload["title"] is None
        assert out.action.payload["needs_details"] is True
        assert out.content == "Ready to add a new task. What should it be called?"

    def test_priority_cue(self, make_context):
        out = handle_quick_capture(
            _intent(IntentCategory.TASK_MANAGEMENT, "create"),
            "add a task to fix the server urgently",
            make_context(),
        )
        assert out.action.payload["priority"] == "high"
        assert out.action.payload["title"] == "Fix the server"


# =============================================================================
# Navigation
# =============================================================================


class TestNavigation:
    @pytest.mark.parametrize("text,expected", [
        ("Go to tasks", "tasks"),
        ("take me to my goals", "goals"),
        ("open the calendar", "calendar"),
        ("navigate to settings", "settings"),
        ("go to reports", "analytics"),
        ("ir a mis tareas", "tasks"),
        ("gehe zu den aufgaben", "tasks"),
        ("go to the moon", None),
    ])
    def test_find_destination(self, text: str, expected):
        assert find_destination(text) == expected

    def test_handle_navigation(self, make_context):
        out = handle_navigation(_intent(IntentCategory.GENERAL, "navigate"), "Go to tasks", make_context())
        assert out.content.startswith("Taking you to your tasks.")
        assert out.action.kind == "navigate"
        assert out.action.payload == {"route": "/app/tasks", "module": "tasks"}

    def test_unknown_destination(self, make_context):
        with pytest.raises(CapabilityInputError):
            handle_navigation(_intent(IntentCategory.GENERAL, "navigate"), "go to the moon", make_context())


# =============================================================================
# Priority Advisor
# =============================================================================


class TestPriorityAdvisor:
    @pytest.mark.parametrize("text,level", [
        ("urgent and important", "Critical"),
        ("the deadline is tomorrow", "High"),
        ("an important report", "Medium-High"),
        ("prioritize my tasks", "Medium"),
    ])
    def test_assess_priority(self, text: str, level: str):
        assert assess_priority(text)[0] == level

    def test_reasons_when_no_cues(self):
        _, _, reasons = assess_priority("prioritize my tasks")
        assert reasons == ["no urgency or importance cues"]

    def test_handle_prioritize(self, make_context):
        out = handle_prioritize(
            _intent(IntentCategory.TASK_MANAGEMENT, "organize"),
            "prioritize this urgent bug",
            make_context(),
        )
        assert out.content.startswith("Suggested priority: High (urgency cues: urgent).")
        assert out.cacheable is True


# =============================================================================
# Productivity Insights
# =============================================================================


class TestProductivityInsights:
    def test_afternoon_tip(self, make_context):
        insight, tip = pick_insight(make_context())
        assert insight == GENERAL_INSIGHTS[5]
        assert tip == TIME_TIPS[TimeOfDay.AFTERNOON]

    def test_follows_user_timezone(self, make_context):
        insight, tip = pick_insight(make_context(timezone="Asia/Tokyo"))
        assert insight == GENERAL_INSIGHTS[6]
        assert tip == TIME_TIPS[TimeOfDay.NIGHT]

    def test_handle_insights(self, make_context):
        ctx = make_context()
        intent = _intent(IntentCategory.ANALYTICS, "insights")
        out = handle_insights(intent, "give me productivity tips", ctx)

        assert out.content.startswith(GENERAL_INSIGHTS[5])
        assert f"Right now: {TIME_TIPS[TimeOfDay.AFTERNOON]}" in out.content
        assert out.cacheable is False
        assert handle_insights(intent, "give me productivity tips", ctx) == out

    def test_concise_style(self, make_context):
        out = handle_insights(
            _intent(IntentCategory.ANALYTICS, "insights"),
            "tips",
            make_context(communication_style="concise"),
        )
        assert out.content == TIME_TIPS[TimeOfDay.AFTERNOON]


# =============================================================================
# Registry
# =============================================================================


def _noop(intent, raw_input, context):
    return CapabilityOutput(content="ok")


class TestRegistry:
    def test_default_registry(self):
        registry = create_default_registry()
        assert registry.names() == [
            "clock", "calculator", "quick_capture", "navigation", "priority_advisor", "productivity_insights",
        ]
        assert registry.lookup(IntentCategory.GENERAL, "time").name == "clock"
        assert registry.lookup(IntentCategory.HABIT_FORMATION, "create").name == "quick_capture"
        assert registry.lookup(IntentCategory.PLANNING, "daily") is None

    def test_duplicate_pattern_rejected(self):
        registry = CapabilityRegistry()
        registry.register(LocalCapability("a", ((IntentCategory.GENERAL, "time"),), _noop))
        with pytest.raises(ValueError, match="already handled"):
            registry.register(LocalCapability("b", ((IntentCategory.GENERAL, "time"),), _noop))
        assert registry.names() == ["a"]

    def test_duplicate_name_rejected(self):
        registry = CapabilityRegistry()
        registry.register(LocalCapability("a", ((IntentCategory.GENERAL, "time"),), _noop))
        with pytest.raises(ValueError, match="already registered"):
            registry.register(LocalCapability("a", ((IntentCategory.GENERAL, "help"),), _noop))

    def test_unknown_action_rejected(self):
        registry = CapabilityRegistry()
        with pytest.raises(ValueError, match="unknown action"):
            registry.register(LocalCapability("a", ((IntentCategory.GENERAL, "teleport"),), _noop))
        assert len(registry) == 0

    def test_to_list(self):
        entries = create_default_registry().to_list()
        clock = next(e for e in entries if e["name"] == "clock")
        assert clock["patterns"] == ["general/time"]

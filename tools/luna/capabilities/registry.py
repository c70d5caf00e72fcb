"""Registry of local capabilities.

Each (category, action) pattern is owned by at most one capability, so
lookup is unambiguous.
"""

from __future__ import annotations

from typing import Any, Iterator

from tools.luna.models import CATEGORY_ACTIONS, IntentCategory, LocalCapability


class CapabilityRegistry:
    """Maps (category, action) patterns to registered capabilities."""

    def __init__(self):
        self._capabilities: dict[str, LocalCapability] = {}
        self._by_pattern: dict[tuple[IntentCategory, str], LocalCapability] = {}

    def register(self, capability: LocalCapability) -> None:
        """Register a capability. Raises ValueError on unknown or duplicate patterns."""
        if capability.name in self._capabilities:
            raise ValueError(f"capability {capability.name!r} already registered")
        for category, action in capability.patterns:
            if action not in CATEGORY_ACTIONS[IntentCategory(category)]:
                raise ValueError(f"unknown action {category.value}/{action}")
            owner = self._by_pattern.get((category, action))
            if owner is not None:
                raise ValueError(
                    f"{category.value}/{action} already handled by {owner.name!r}"
                )

        self._capabilities[capability.name] = capability
        for pattern in capability.patterns:
            self._by_pattern[pattern] = capability

    def lookup(self, category: IntentCategory, action: str) -> LocalCapability | None:
        return self._by_pattern.get((category, action))

    def get(self, name: str) -> LocalCapability | None:
        return self._capabilities.get(name)

    def names(self) -> list[str]:
        return list(self._capabilities)

    def to_list(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self._capabilities.values()]

    def __len__(self) -> int:
        return len(self._capabilities)

    def __iter__(self) -> Iterator[LocalCapability]:
        return iter(self._capabilities.values())


def create_default_registry() -> CapabilityRegistry:
    """Create a registry with all built-in capabilities registered."""
    from tools.luna.capabilities.calculator import handle_calculate
    from tools.luna.capabilities.clock import handle_clock
    from tools.luna.capabilities.navigation import handle_navigation
    from tools.luna.capabilities.priority_advisor import handle_prioritize
    from tools.luna.capabilities.productivity_insights import handle_insights
    from tools.luna.capabilities.quick_capture import handle_quick_capture

    registry = CapabilityRegistry()

    registry.register(LocalCapability(
        name="clock",
        patterns=((IntentCategory.GENERAL, "time"),),
        handler=handle_clock,
        max_execution_ms=10,
        description="Current time and date",
        fallback_hint="Ask about the time or date",
    ))
    registry.register(LocalCapability(
        name="calculator",
        patterns=((IntentCategory.GENERAL, "calculate"),),
        handler=handle_calculate,
        max_execution_ms=10,
        description="Arithmetic on numbers in the request",
        fallback_hint="Work out the calculation",
    ))
    registry.register(LocalCapability(
        name="quick_capture",
        patterns=(
            (IntentCategory.TASK_MANAGEMENT, "create"),
            (IntentCategory.GOAL_SETTING, "create"),
            (IntentCategory.HABIT_FORMATION, "create"),
        ),
        handler=handle_quick_capture,
        max_execution_ms=20,
        description="Capture a new task, goal or habit",
        fallback_hint="Create the item with full details",
    ))
    registry.register(LocalCapability(
        name="navigation",
        patterns=((IntentCategory.GENERAL, "navigate"),),
        handler=handle_navigation,
        max_execution_ms=10,
        description="Open an application section",
        fallback_hint="Find the right section",
    ))
    registry.register(LocalCapability(
        name="priority_advisor",
        patterns=((IntentCategory.TASK_MANAGEMENT, "organize"),),
        handler=handle_prioritize,
        max_execution_ms=20,
        description="Suggest a priority level from urgency and importance cues",
        fallback_hint="Prioritize with full task context",
    ))
    registry.register(LocalCapability(
        name="productivity_insights",
        patterns=((IntentCategory.ANALYTICS, "insights"),),
        handler=handle_insights,
        max_execution_ms=10,
        description="Productivity tips for the current time of day",
        fallback_hint="Get insights from your own data",
    ))

    return registry


__all__ = ["CapabilityRegistry", "create_default_registry"]

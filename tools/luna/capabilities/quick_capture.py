"""Quick capture of tasks, goals and habits.

Builds an inert "create" descriptor. The host application decides whether
to persist it; nothing here writes anywhere.
"""

from __future__ import annotations

from tools.luna.models import (
    ActionDescriptor,
    AppContext,
    CapabilityOutput,
    EntityType,
    Intent,
    IntentCategory,
)
from tools.luna.parser.entity_extractor import extract_entities, first_entity

_KIND_BY_CATEGORY = {
    IntentCategory.TASK_MANAGEMENT: "task",
    IntentCategory.GOAL_SETTING: "goal",
    IntentCategory.HABIT_FORMATION: "habit",
}

_SUGGESTIONS = {
    "task": ("Set due date", "Add to project", "Set priority"),
    "goal": ("Add milestones", "Set target date", "Link tasks"),
    "habit": ("Set reminder time", "Choose frequency", "Start streak"),
}


def handle_quick_capture(intent: Intent, raw_input: str, context: AppContext) -> CapabilityOutput:
    kind = _KIND_BY_CATEGORY.get(intent.category, "task")
    entities = extract_entities(raw_input, context.time_context.now)

    title = first_entity(entities, EntityType.TITLE)
    due = first_entity(entities, EntityType.DATETIME)
    priority = first_entity(entities, EntityType.PRIORITY)
    duration = first_entity(entities, EntityType.DURATION)

    payload: dict = {
        "kind": kind,
        "title": title.value if title else None,
        "priority": priority.value if priority else "medium",
        "due": due.value if due else None,
        "needs_details": title is None,
        "source": "luna_local",
        "module": context.current_module.value if context.current_module else None,
    }
    if duration:
        payload["estimated_minutes"] = int(duration.value)
    if kind == "habit":
        frequency = first_entity(entities, EntityType.FREQUENCY)
        payload["frequency"] = frequency.value if frequency else "daily"

    if title:
        content = f'Ready to add {kind} "{title.value}".'
        if due:
            content = f'Ready to add {kind} "{title.value}" (due {due.value}).'
    else:
        content = f"Ready to add a new {kind}. What should it be called?"

    return CapabilityOutput(
        content=content,
        suggested_actions=_SUGGESTIONS[kind],
        action=ActionDescriptor(kind="create", payload=payload),
        # Relative dates depend on the request clock; titles keep the caller's
        # casing, which the cache key folds away
        cacheable=title is None and due is None,
    )

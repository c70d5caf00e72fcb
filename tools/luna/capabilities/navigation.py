"""Navigation to application sections."""

from __future__ import annotations

import re

from tools.luna.errors import CapabilityInputError
from tools.luna.models import ActionDescriptor, AppContext, CapabilityOutput, Intent
from tools.luna.parser.keywords import NAVIGATION_PATTERNS, normalize

# Canonical destination -> (route, label, tip)
DESTINATIONS: dict[str, tuple[str, str, str]] = {
    "tasks": ("/app/tasks", "your tasks", "Try: \"add task [description]\"."),
    "goals": ("/app/goals", "your goals", "Try: \"set a goal to ...\"."),
    "habits": ("/app/habits", "your habits", "Try: \"start a habit of ...\"."),
    "calendar": ("/app/calendar", "your calendar", "Try: \"plan my day\"."),
    "plan": ("/app/plan", "the planner", "Try: \"plan my week\"."),
    "analytics": ("/app/analytics", "analytics", "Try: \"show my productivity trends\"."),
    "projects": ("/app/projects", "your projects", "Try: \"optimize my workflow\"."),
    "notes": ("/app/notes", "your notes", "Jot anything down and sort it later."),
    "dashboard": ("/app/dashboard", "the dashboard", "Your day at a glance."),
    "settings": ("/app/settings", "settings", "Adjust language, timezone and working hours."),
    "profile": ("/app/profile", "your profile", "Keep your preferences up to date."),
    "capture": ("/app/capture", "quick capture", "Type anything; Luna sorts it out."),
    "home": ("/app", "home", "Welcome back."),
}

# Synonyms and translations -> canonical destination
_ALIASES: dict[str, str] = {
    "task": "tasks", "todo": "tasks", "todos": "tasks", "tareas": "tasks",
    "taches": "tasks", "aufgaben": "tasks", "tarefas": "tasks",
    "goal": "goals", "metas": "goals", "objectifs": "goals", "ziele": "goals",
    "habit": "habits", "habitos": "habits", "habitudes": "habits", "gewohnheiten": "habits",
    "calendario": "calendar", "calendrier": "calendar", "kalender": "calendar",
    "planner": "plan",
    "reports": "analytics", "report": "analytics", "insights": "analytics",
    "project": "projects",
    "note": "notes",
    "preferences": "settings", "ajustes": "settings", "parametres": "settings",
    "einstellungen": "settings", "configuracoes": "settings",
    "inbox": "capture",
}

_compiled = [re.compile(p) for p in NAVIGATION_PATTERNS]


def find_destination(text: str) -> str | None:
    """Canonical destination named in the utterance, if any."""
    normalized = normalize(text)
    for pattern in _compiled:
        match = pattern.search(normalized)
        if match:
            word = match.group("dest")
            return _ALIASES.get(word, word)
    return None


def handle_navigation(intent: Intent, raw_input: str, context: AppContext) -> CapabilityOutput:
    destination = find_destination(raw_input)
    if destination is None or destination not in DESTINATIONS:
        raise CapabilityInputError("no known destination in request")

    route, label, tip = DESTINATIONS[destination]
    return CapabilityOutput(
        content=f"Taking you to {label}. {tip}",
        suggested_actions=(f"Open {label}",),
        action=ActionDescriptor(kind="navigate", payload={"route": route, "module": destination}),
        cacheable=True,
    )

"""Priority advice using urgency and importance cues (Eisenhower matrix)."""

from __future__ import annotations

from tools.luna.models import AppContext, CapabilityOutput, Intent
from tools.luna.parser.keywords import normalize

URGENT_WORDS = {"urgent", "urgently", "asap", "immediately", "critical", "emergency", "deadline", "overdue"}
IMPORTANT_WORDS = {"important", "crucial", "vital", "significant", "key", "essential"}

# (urgent, important) -> (level, quadrant advice)
_MATRIX: dict[tuple[bool, bool], tuple[str, str]] = {
    (True, True): ("Critical", "Do it first, before anything else today."),
    (True, False): ("High", "Do it soon, or hand it off if someone else can."),
    (False, True): ("Medium-High", "Schedule a focused block for it this week."),
    (False, False): ("Medium", "Batch it with similar small tasks."),
}


def assess_priority(text: str) -> tuple[str, str, list[str]]:
    """Return (level, advice, reasons) for an utterance."""
    tokens = set(normalize(text).split())
    urgent = bool(tokens & URGENT_WORDS)
    important = bool(tokens & IMPORTANT_WORDS)

    reasons = []
    if urgent:
        reasons.append("urgency cues: " + ", ".join(sorted(tokens & URGENT_WORDS)))
    if important:
        reasons.append("importance cues: " + ", ".join(sorted(tokens & IMPORTANT_WORDS)))
    if not reasons:
        reasons.append("no urgency or importance cues")

    level, advice = _MATRIX[(urgent, important)]
    return level, advice, reasons


def handle_prioritize(intent: Intent, raw_input: str, context: AppContext) -> CapabilityOutput:
    level, advice, reasons = assess_priority(raw_input)
    return CapabilityOutput(
        content=(
            f"Suggested priority: {level} ({'; '.join(reasons)}). {advice}\n"
            "- Sort by urgent vs important\n"
            "- Give each task a clear deadline\n"
            "- Break large tasks into smaller steps"
        ),
        suggested_actions=("Create high priority task", "Set deadline", "Add to today"),
        cacheable=True,
    )

"""Productivity tips matched to the user's time of day.

The insight rotates with the weekday so repeated requests on one day give
the same answer.
"""

from __future__ import annotations

from tools.luna.models import AppContext, CapabilityOutput, Intent, TimeOfDay

# One per weekday, Monday first
GENERAL_INSIGHTS = (
    "Your brain works best in 90-minute focused blocks.",
    "Try the Pomodoro Technique: 25 minutes of work, then a 5-minute break.",
    "Start with your hardest task while your energy is highest.",
    "Turn off notifications during deep work.",
    "Stay hydrated; even mild dehydration blunts focus.",
    "Take a short walking break to reset your attention.",
    "Write distracting thoughts down and deal with them later.",
)

TIME_TIPS: dict[TimeOfDay, str] = {
    TimeOfDay.MORNING: "Morning energy suits creative and analytical work. Tackle the hard task first.",
    TimeOfDay.AFTERNOON: "Afternoons suit meetings and collaborative work. An energy dip around 2-3 PM is normal.",
    TimeOfDay.EVENING: "Evenings suit planning and admin. Review what you got done today.",
    TimeOfDay.NIGHT: "Keep to light tasks and tomorrow's plan. Avoid heavy thinking before bed.",
}

QUICK_WINS = (
    "Clear your workspace of distractions",
    "Set a 25-minute focus timer",
    "Pick ONE priority task to finish",
)


def pick_insight(context: AppContext) -> tuple[str, str]:
    """Return (general insight, time-of-day tip) for the request context."""
    time_context = context.time_context
    insight = GENERAL_INSIGHTS[time_context.now.weekday()]
    return insight, TIME_TIPS[time_context.time_of_day]


def handle_insights(intent: Intent, raw_input: str, context: AppContext) -> CapabilityOutput:
    insight, tip = pick_insight(context)
    if context.user_preferences.communication_style == "concise":
        content = tip
    else:
        wins = "\n".join(f"- {w}" for w in QUICK_WINS)
        content = f"{insight}\n\nRight now: {tip}\n\nQuick wins:\n{wins}"

    return CapabilityOutput(
        content=content,
        suggested_actions=("Apply suggestion", "Set focus timer", "Block distractions"),
        # Depends on the request clock
        cacheable=False,
    )

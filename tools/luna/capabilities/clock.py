"""Current time and date, read from the request context clock."""

from __future__ import annotations

from tools.luna.context import DAY_NAMES
from tools.luna.models import AppContext, CapabilityOutput, Intent
from tools.luna.parser.keywords import normalize

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_DATE_WORDS = {"date", "day", "fecha", "dia", "jour", "datum", "tag", "data"}
_TIME_WORDS = {"time", "hora", "horas", "heure", "uhrzeit", "spat", "clock"}


def format_time(hour: int, minute: int) -> str:
    """12-hour clock without a leading zero: 15:45 -> "3:45 PM"."""
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def handle_clock(intent: Intent, raw_input: str, context: AppContext) -> CapabilityOutput:
    now = context.time_context.now
    weekday = DAY_NAMES[now.weekday()]
    time_str = format_time(now.hour, now.minute)
    date_str = f"{weekday}, {MONTH_NAMES[now.month - 1]} {now.day}, {now.year}"

    tokens = set(normalize(raw_input).split())
    wants_date = bool(tokens & _DATE_WORDS)
    wants_time = bool(tokens & _TIME_WORDS) or not wants_date

    if wants_time and wants_date:
        content = f"It's {time_str} on {date_str}."
    elif wants_date:
        content = f"Today is {date_str}."
    elif context.user_preferences.communication_style == "concise":
        content = time_str
    else:
        content = f"It's {time_str} on {weekday}."

    return CapabilityOutput(
        content=content,
        suggested_actions=("Add to calendar", "Set reminder", "Create time block"),
        cacheable=False,
    )

"""Request context resolution.

Turns whatever the host application knows about the request (route,
module, locale, timezone, working hours) plus the user's session into a
complete AppContext. Missing or malformed hints are replaced with
configured defaults and listed in `defaults_applied`.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, fields
from datetime import datetime, time, timezone, tzinfo
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tools.logging_config import get_logger
from tools.luna.config import ContextConfig
from tools.luna.models import (
    AppContext,
    AppModule,
    Intent,
    SessionContext,
    TimeContext,
    TimeOfDay,
    UserPreferences,
    WorkingHours,
)

logger = get_logger(__name__)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

SUPPORTED_LANGUAGES = ("en", "es", "fr", "de", "pt")

# Accepted spellings from UI clients
_HINT_ALIASES = {
    "currentRoute": "route",
    "current_route": "route",
    "currentModule": "module",
    "current_module": "module",
    "locale": "language",
    "workingHoursStart": "working_hours_start",
    "workingHoursEnd": "working_hours_end",
    "communicationStyle": "communication_style",
    "currentFocus": "current_focus",
}

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def time_of_day_for(hour: int) -> TimeOfDay:
    """Bucket an hour: 05-11 morning, 12-16 afternoon, 17-20 evening, else night."""
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


@dataclass
class ContextHints:
    """What the caller knows about the request. Every field is optional."""

    route: str | None = None
    module: str | None = None
    language: str | None = None
    timezone: str | None = None
    working_hours_start: str | None = None
    working_hours_end: str | None = None
    communication_style: str | None = None
    current_focus: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ContextHints:
        """Build hints from a loose dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in (data or {}).items():
            key = _HINT_ALIASES.get(key, key)
            if key in known and value is not None:
                values[key] = str(value)
        return cls(**values)


class SessionState:
    """Per-user conversation state with bounded windows.

    Owned by the caller (one per user session) and passed to process().
    """

    def __init__(self, recent_window: int = 10, conversation_window: int = 20):
        self._recent: deque[Intent] = deque(maxlen=recent_window)
        self._history: deque[str] = deque(maxlen=conversation_window)
        self.current_focus: str | None = None

    @property
    def recent_intents(self) -> tuple[Intent, ...]:
        return tuple(self._recent)

    @property
    def conversation_history(self) -> tuple[str, ...]:
        return tuple(self._history)

    def remember(self, intent: Intent | None, text: str) -> None:
        """Record one processed utterance; the oldest entries drop off."""
        if intent is not None:
            self._recent.append(intent)
        if text:
            self._history.append(text)

    def clear(self) -> None:
        self._recent.clear()
        self._history.clear()
        self.current_focus = None

    def to_context(self) -> SessionContext:
        return SessionContext(
            recent_intents=self.recent_intents,
            conversation_history=self.conversation_history,
            current_focus=self.current_focus,
        )


class ContextResolver:
    """Builds an AppContext from hints, a session and a clock."""

    def __init__(
        self,
        config: ContextConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or ContextConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def new_session(self) -> SessionState:
        return SessionState(
            recent_window=self.config.recent_intents_window,
            conversation_window=self.config.conversation_window,
        )

    def resolve(
        self,
        hints: ContextHints | dict[str, Any] | None = None,
        session: SessionState | None = None,
    ) -> AppContext:
        """Resolve a complete context. Never raises on bad hints."""
        if not isinstance(hints, ContextHints):
            hints = ContextHints.from_dict(hints if isinstance(hints, dict) else None)
        cfg = self.config
        missing: list[str] = []
        rejected: list[str] = []

        route = (hints.route or "").strip()
        if not route:
            route = "/"
            missing.append("route")

        module = _parse_module(hints.module)
        if module is None:
            if hints.module:
                missing.append("module")
                rejected.append("module")
            module = module_from_route(route)

        language = _parse_language(hints.language)
        if language is None:
            language = cfg.default_language
            missing.append("language")
            if hints.language:
                rejected.append("language")

        tz_name, tz = _parse_timezone(hints.timezone)
        if tz is None:
            tz_name, tz = _parse_timezone(cfg.default_timezone)
            if tz is None:
                tz_name, tz = "UTC", timezone.utc
            missing.append("timezone")
            if hints.timezone:
                rejected.append("timezone")

        start = hints.working_hours_start
        end = hints.working_hours_end
        if not (_HHMM.match(start or "") and _HHMM.match(end or "")):
            start, end = cfg.default_working_hours_start, cfg.default_working_hours_end
            missing.append("working_hours")
            if hints.working_hours_start or hints.working_hours_end:
                rejected.append("working_hours")

        style = hints.communication_style or cfg.default_communication_style

        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(tz)

        time_context = TimeContext(
            time_of_day=time_of_day_for(local.hour),
            day_of_week=DAY_NAMES[local.weekday()],
            date=local.strftime("%Y-%m-%d"),
            now=local,
            within_working_hours=_within(local.time(), start, end),
        )

        session_context = session.to_context() if session is not None else SessionContext()
        if hints.current_focus:
            session_context = SessionContext(
                recent_intents=session_context.recent_intents,
                conversation_history=session_context.conversation_history,
                current_focus=hints.current_focus,
            )

        if missing:
            logger.debug("context_missing", fields=missing, rejected=rejected)

        return AppContext(
            time_context=time_context,
            current_route=route,
            current_module=module,
            user_preferences=UserPreferences(
                language=language,
                timezone=tz_name,
                working_hours=WorkingHours(start=start, end=end),
                communication_style=style,
            ),
            session_context=session_context,
            defaults_applied=tuple(missing),
            rejected_hints=tuple(rejected),
        )


def module_from_route(route: str) -> AppModule | None:
    """Find the first route segment naming a module ("/app/tasks/42" -> tasks)."""
    for segment in route.lower().split("?")[0].split("/"):
        module = _parse_module(segment)
        if module is not None:
            return module
    return None


def _parse_module(value: str | None) -> AppModule | None:
    if not value:
        return None
    try:
        return AppModule(value.strip().lower())
    except ValueError:
        return None


def _parse_language(value: str | None) -> str | None:
    """Reduce a locale to a supported language code (es-ES -> es)."""
    if not value:
        return None
    code = re.split(r"[-_]", value.strip().lower())[0]
    return code if code in SUPPORTED_LANGUAGES else None


def _parse_timezone(name: str | None) -> tuple[str, tzinfo | None]:
    if not name:
        return "", None
    if name.strip().upper() in ("UTC", "Z", "GMT"):
        return "UTC", timezone.utc
    try:
        return name, ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        # OSError covers directory names ("America") and overlong keys
        return "", None


def _within(now: time, start: str, end: str) -> bool:
    s = time.fromisoformat(start.zfill(5))
    e = time.fromisoformat(end.zfill(5))
    if s <= e:
        return s <= now < e
    # Overnight shift, e.g. 22:00-06:00
    return now >= s or now < e


__all__ = [
    "DAY_NAMES",
    "SUPPORTED_LANGUAGES",
    "ContextHints",
    "ContextResolver",
    "SessionState",
    "module_from_route",
    "time_of_day_for",
]

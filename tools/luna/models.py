"""Luna local intelligence data models.

Defines the intent taxonomy, request context, and result types for the
local pipeline:
    utterance + hints → AppContext → Intent → LocalTaskResult → ClassificationEvent
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable


class IntentCategory(str, Enum):
    """Top-level intent taxonomy (closed set)."""

    TASK_MANAGEMENT = "task_management"
    GOAL_SETTING = "goal_setting"
    PLANNING = "planning"
    ANALYTICS = "analytics"
    HABIT_FORMATION = "habit_formation"
    WORKFLOW = "workflow"
    GENERAL = "general"


# Actions per category. The first action is the category default.
CATEGORY_ACTIONS: dict[IntentCategory, tuple[str, ...]] = {
    IntentCategory.TASK_MANAGEMENT: ("create", "organize", "complete", "update", "review"),
    IntentCategory.GOAL_SETTING: ("create", "track", "update", "plan"),
    IntentCategory.PLANNING: ("daily", "weekly", "monthly", "event"),
    IntentCategory.ANALYTICS: ("analyze", "report", "insights", "compare"),
    IntentCategory.HABIT_FORMATION: ("create", "track", "build", "break"),
    IntentCategory.WORKFLOW: ("optimize", "automate", "integrate", "design"),
    IntentCategory.GENERAL: ("help", "explain", "guide", "time", "calculate", "navigate"),
}


class AppModule(str, Enum):
    """Application sections the assistant can be opened from."""

    TASKS = "tasks"
    CAPTURE = "capture"
    PLAN = "plan"
    CALENDAR = "calendar"
    GOALS = "goals"
    ENGAGE = "engage"
    HABITS = "habits"
    ANALYTICS = "analytics"
    PROJECTS = "projects"
    NOTES = "notes"
    DASHBOARD = "dashboard"
    SETTINGS = "settings"


# Module → category table used to break near-ties. Modules not listed
# resolve to no category (general).
MODULE_CATEGORY: dict[AppModule, IntentCategory] = {
    AppModule.TASKS: IntentCategory.TASK_MANAGEMENT,
    AppModule.CAPTURE: IntentCategory.TASK_MANAGEMENT,
    AppModule.PLAN: IntentCategory.PLANNING,
    AppModule.CALENDAR: IntentCategory.PLANNING,
    AppModule.GOALS: IntentCategory.GOAL_SETTING,
    AppModule.ENGAGE: IntentCategory.GOAL_SETTING,
    AppModule.HABITS: IntentCategory.HABIT_FORMATION,
    AppModule.ANALYTICS: IntentCategory.ANALYTICS,
    AppModule.PROJECTS: IntentCategory.WORKFLOW,
}


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class ResultType(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    ERROR = "error"


class Outcome(str, Enum):
    SUCCESSFUL = "successful"
    FAILED = "failed"
    AMBIGUOUS = "ambiguous"


class RequestState(str, Enum):
    """Per-request lifecycle: received → classified → terminal → logged."""

    RECEIVED = "received"
    CLASSIFIED = "classified"
    LOCALLY_HANDLED = "locally_handled"
    FALLBACK_REQUESTED = "fallback_requested"
    REJECTED = "rejected"
    LOGGED = "logged"


class FailureKind(str, Enum):
    """Internal failure taxonomy. None of these reach the caller as exceptions."""

    CLASSIFICATION_AMBIGUOUS = "classification_ambiguous"
    HANDLER_EXECUTION_FAILURE = "handler_execution_failure"
    CACHE_CORRUPTION = "cache_corruption"
    CONTEXT_MISSING = "context_missing"


class ResolutionSource(str, Enum):
    """Which signal decided the winning category."""

    KEYWORDS = "keywords"
    MODULE = "module"
    HISTORY = "history"
    ORDER = "order"
    FALLBACK = "fallback"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Intent
# =============================================================================


@dataclass(frozen=True)
class Intent:
    """A classified (category, action, confidence) triple."""

    category: IntentCategory
    action: str
    confidence: float = 0.0
    matched_terms: tuple[str, ...] = ()
    resolved_by: ResolutionSource = ResolutionSource.KEYWORDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", IntentCategory(self.category))
        object.__setattr__(self, "resolved_by", ResolutionSource(self.resolved_by))
        object.__setattr__(self, "confidence", min(1.0, max(0.0, float(self.confidence))))
        object.__setattr__(self, "matched_terms", tuple(self.matched_terms))

    @property
    def label(self) -> str:
        return f"{self.category.value}/{self.action}"

    def same_as(self, other: Intent | None) -> bool:
        """True when category and action match (confidence ignored)."""
        if other is None:
            return False
        return self.category == other.category and self.action == other.action

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "action": self.action,
            "confidence": round(self.confidence, 4),
            "matched_terms": list(self.matched_terms),
            "resolved_by": self.resolved_by.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Intent:
        return cls(
            category=IntentCategory(data["category"]),
            action=data["action"],
            confidence=data.get("confidence", 1.0),
            matched_terms=tuple(data.get("matched_terms", ())),
            resolved_by=ResolutionSource(data.get("resolved_by", "keywords")),
        )


class EntityType(str, Enum):
    """Entity types pulled out of an utterance."""

    TITLE = "title"
    DATETIME = "datetime"
    DURATION = "duration"
    PRIORITY = "priority"
    FREQUENCY = "frequency"


@dataclass
class Entity:
    """An extracted entity from an utterance."""

    type: EntityType
    value: str
    raw_text: str = ""
    confidence: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "raw_text": self.raw_text,
            "confidence": self.confidence,
        }


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class WorkingHours:
    start: str = "09:00"
    end: str = "17:00"

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class UserPreferences:
    language: str = "en"
    timezone: str = "UTC"
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    communication_style: str = "conversational"

    def to_dict(self) -> dict[str, Any]:
        return {
            "language": self.language,
            "timezone": self.timezone,
            "working_hours": self.working_hours.to_dict(),
            "communication_style": self.communication_style,
        }


@dataclass(frozen=True)
class TimeContext:
    time_of_day: TimeOfDay
    day_of_week: str
    date: str
    now: datetime
    within_working_hours: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_of_day": self.time_of_day.value,
            "day_of_week": self.day_of_week,
            "date": self.date,
            "now": self.now.isoformat(),
            "within_working_hours": self.within_working_hours,
        }


@dataclass(frozen=True)
class SessionContext:
    recent_intents: tuple[Intent, ...] = ()
    conversation_history: tuple[str, ...] = ()
    current_focus: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recent_intents": [i.label for i in self.recent_intents],
            "conversation_history": list(self.conversation_history),
            "current_focus": self.current_focus,
        }


@dataclass(frozen=True)
class ContextSnapshot:
    """The slice of AppContext kept on analytics events."""

    route: str = "/"
    module: str | None = None
    language: str = "en"
    time_of_day: str | None = None
    day_of_week: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "route": self.route,
            "module": self.module,
            "language": self.language,
            "time_of_day": self.time_of_day,
            "day_of_week": self.day_of_week,
        }


@dataclass(frozen=True)
class AppContext:
    """Everything the classifier and handlers know about the request."""

    time_context: TimeContext
    current_route: str = "/"
    current_module: AppModule | None = None
    user_preferences: UserPreferences = field(default_factory=UserPreferences)
    session_context: SessionContext = field(default_factory=SessionContext)
    defaults_applied: tuple[str, ...] = ()
    # Hints that were supplied but unusable (subset of defaults_applied)
    rejected_hints: tuple[str, ...] = ()

    @property
    def module_category(self) -> IntentCategory | None:
        if self.current_module is None:
            return None
        return MODULE_CATEGORY.get(self.current_module)

    @property
    def language(self) -> str:
        return self.user_preferences.language

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            route=self.current_route,
            module=self.current_module.value if self.current_module else None,
            language=self.user_preferences.language,
            time_of_day=self.time_context.time_of_day.value,
            day_of_week=self.time_context.day_of_week,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_route": self.current_route,
            "current_module": self.current_module.value if self.current_module else None,
            "time_context": self.time_context.to_dict(),
            "user_preferences": self.user_preferences.to_dict(),
            "session_context": self.session_context.to_dict(),
            "defaults_applied": list(self.defaults_applied),
            "rejected_hints": list(self.rejected_hints),
        }


# =============================================================================
# Capabilities & Results
# =============================================================================


@dataclass(frozen=True)
class ActionDescriptor:
    """Inert description of an action the host application must apply itself."""

    kind: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "payload": dict(self.payload)}


@dataclass(frozen=True)
class CapabilityOutput:
    """What a capability handler returns."""

    content: str
    suggested_actions: tuple[str, ...] = ()
    action: ActionDescriptor | None = None
    cacheable: bool = True


# Handler type: pure function(intent, raw_input, context) -> CapabilityOutput
HandlerFn = Callable[["Intent", str, "AppContext"], CapabilityOutput]


@dataclass(frozen=True)
class LocalCapability:
    """A deterministic handler able to satisfy specific intents locally."""

    name: str
    patterns: tuple[tuple[IntentCategory, str], ...]
    handler: HandlerFn
    max_execution_ms: float = 50.0
    description: str = ""
    fallback_hint: str = ""

    def supports(self, category: IntentCategory, action: str) -> bool:
        return (category, action) in self.patterns

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "patterns": [f"{c.value}/{a}" for c, a in self.patterns],
            "max_execution_ms": self.max_execution_ms,
            "description": self.description,
        }


@dataclass(frozen=True)
class LocalTaskResult:
    """Result of processing one utterance."""

    type: ResultType
    handled_locally: bool
    content: str
    confidence: float = 0.0
    execution_time: float = 0.0
    suggested_actions: tuple[str, ...] = ()
    intent: Intent | None = None
    action: ActionDescriptor | None = None
    cacheable: bool = False
    cached: bool = False
    state: RequestState | None = None
    capability: str | None = None
    event_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "handled_locally": self.handled_locally,
            "content": self.content,
            "confidence": round(self.confidence, 4),
            "execution_time": round(self.execution_time, 3),
            "suggested_actions": list(self.suggested_actions),
            "intent": self.intent.to_dict() if self.intent else None,
            "action": self.action.to_dict() if self.action else None,
            "cacheable": self.cacheable,
            "cached": self.cached,
            "state": self.state.value if self.state else None,
            "capability": self.capability,
            "event_id": self.event_id,
        }


@dataclass
class CacheEntry:
    signature: str
    value: LocalTaskResult
    created_at: float
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry


# =============================================================================
# Analytics
# =============================================================================


@dataclass(frozen=True)
class ClassificationEvent:
    """One processed utterance. Immutable once recorded."""

    id: str
    input: str
    context: ContextSnapshot
    predicted: Intent
    outcome: Outcome
    state: RequestState = RequestState.LOGGED
    result_type: ResultType = ResultType.ERROR
    handled_locally: bool = False
    actual_intent: Intent | None = None
    cached: bool = False
    capability: str | None = None
    failure: FailureKind | None = None
    execution_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def has_ground_truth(self) -> bool:
        return self.actual_intent is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "input": self.input,
            "context": self.context.to_dict(),
            "predicted": self.predicted.to_dict(),
            "actual_intent": self.actual_intent.to_dict() if self.actual_intent else None,
            "outcome": self.outcome.value,
            "state": self.state.value,
            "result_type": self.result_type.value,
            "handled_locally": self.handled_locally,
            "cached": self.cached,
            "capability": self.capability,
            "failure": self.failure.value if self.failure else None,
            "execution_time_ms": round(self.execution_time_ms, 3),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class FeedbackRecord:
    """Explicit or implicit feedback about an event."""

    event_id: str
    helpful: bool | None = None
    actual_intent: Intent | None = None
    source: str = "explicit"
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "helpful": self.helpful,
            "actual_intent": self.actual_intent.to_dict() if self.actual_intent else None,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
        }

"""Local execution engine.

Processes one utterance end to end:

    received → classified → locally_handled | fallback_requested | rejected → logged

Routing policy:
    confidence ≥ handle_threshold with a capability   → run it locally
    fallback_threshold ≤ confidence < handle_threshold → hand off with a hint
    below fallback_threshold, or no capability          → reject politely

A capability that raises or returns malformed output is downgraded to a
fallback. Nothing in here raises to the caller.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from tools.logging_config import get_logger, request_context
from tools.luna.analytics.metrics import AnalyticsFilter
from tools.luna.analytics.tracker import AnalyticsTracker
from tools.luna.cache import ResponseCache
from tools.luna.capabilities.registry import CapabilityRegistry, create_default_registry
from tools.luna.config import LunaConfig, load_config
from tools.luna.context import ContextHints, ContextResolver, SessionState
from tools.luna.errors import HandlerExecutionFailure
from tools.luna.models import (
    AppContext,
    CapabilityOutput,
    ClassificationEvent,
    ContextSnapshot,
    FailureKind,
    FeedbackRecord,
    Intent,
    LocalCapability,
    LocalTaskResult,
    Outcome,
    RequestState,
    ResolutionSource,
    ResultType,
)
from tools.luna.parser.intent_classifier import IntentClassifier
from tools.luna.parser.keywords import normalize

logger = get_logger(__name__)

_STATE_BY_TYPE = {
    ResultType.SUCCESS: RequestState.LOCALLY_HANDLED,
    ResultType.FALLBACK: RequestState.FALLBACK_REQUESTED,
    ResultType.ERROR: RequestState.REJECTED,
}


def _suggest_closest(text: str) -> str:
    """Suggest a phrasing Luna can answer locally."""
    words = set(normalize(text).split())

    if words & {"task", "tasks", "todo", "need", "remember"}:
        return 'Try: "add task [description]"'
    if words & {"time", "clock", "date", "day"}:
        return 'Try: "what time is it?"'
    if any(ch.isdigit() for ch in text):
        return 'Try: "calculate 25 * 8"'
    if words & {"go", "open", "show", "page"}:
        return 'Try: "go to goals"'
    if words & {"goal", "goals", "habit", "habits"}:
        return 'Try: "set a goal to [outcome]"'

    return 'Try: "add task [description]", "what time is it?" or "go to calendar"'


class LocalExecutionEngine:
    """Classifies utterances and answers the routine ones locally."""

    def __init__(
        self,
        config: LunaConfig | None = None,
        registry: CapabilityRegistry | None = None,
        classifier: IntentClassifier | None = None,
        resolver: ContextResolver | None = None,
        cache: ResponseCache | None = None,
        tracker: AnalyticsTracker | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.config = config or LunaConfig()
        self.registry = registry if registry is not None else create_default_registry()
        self.classifier = classifier or IntentClassifier(self.config.classifier)
        self.resolver = resolver or ContextResolver(self.config.context)
        if cache is None and self.config.cache.enabled:
            cache = ResponseCache(
                max_entries=self.config.cache.max_entries,
                ttl_seconds=self.config.cache.ttl_seconds,
            )
        self.cache = cache
        self.tracker = tracker if tracker is not None else AnalyticsTracker(self.config.analytics)
        self._timer = timer

    # ─── Public API ───────────────────────────────────────────────────

    def process(
        self,
        text: str,
        hints: ContextHints | dict[str, Any] | None = None,
        session: SessionState | None = None,
        actual_intent: Intent | None = None,
    ) -> LocalTaskResult:
        """Process one utterance. Always returns a result, never raises."""
        start = self._timer()
        event_id = uuid.uuid4().hex
        raw = text if isinstance(text, str) else ""

        with request_context(event_id):
            try:
                return self._process(raw, hints, session, actual_intent, start, event_id)
            except Exception:
                logger.exception("process_failed")
                intent = self.classifier.fallback_intent()
                result = LocalTaskResult(
                    type=ResultType.ERROR,
                    handled_locally=False,
                    content="Something went wrong on my side. Let me hand this to the assistant.",
                    confidence=intent.confidence,
                    execution_time=self._elapsed_ms(start),
                    intent=intent,
                    state=RequestState.REJECTED,
                    event_id=event_id,
                )
                self._log_failed(event_id, raw, result, actual_intent)
                return result

    def classify(
        self,
        text: str,
        hints: ContextHints | dict[str, Any] | None = None,
        session: SessionState | None = None,
    ) -> Intent:
        """Classify without executing or logging."""
        return self.classifier.classify(text, self.resolver.resolve(hints, session))

    def execute(self, intent: Intent, text: str, context: AppContext) -> LocalTaskResult:
        """Apply the routing policy to an already classified intent."""
        return self._execute(intent, text, context)[0]

    def new_session(self) -> SessionState:
        return self.resolver.new_session()

    def feedback(
        self,
        event_id: str,
        helpful: bool | None = None,
        actual_intent: Intent | None = None,
    ) -> FeedbackRecord | None:
        return self.tracker.record_feedback(event_id, helpful=helpful, actual_intent=actual_intent)

    def confirm(self, event_id: str) -> FeedbackRecord | None:
        """Mark a prediction as right (e.g. the user accepted the created task)."""
        return self.tracker.confirm(event_id)

    def dashboard_data(self, filter: AnalyticsFilter | None = None) -> dict[str, Any]:
        data = self.tracker.aggregate(filter, total_capabilities=len(self.registry))
        data["cache"] = self.cache.stats() if self.cache else None
        return data

    def clear_cache(self) -> int:
        return self.cache.clear() if self.cache else 0

    # ─── Internals ────────────────────────────────────────────────────

    def _process(
        self,
        raw: str,
        hints: ContextHints | dict[str, Any] | None,
        session: SessionState | None,
        actual_intent: Intent | None,
        start: float,
        event_id: str,
    ) -> LocalTaskResult:
        context = self.resolver.resolve(hints, session)
        logger.debug("request_received", module=context.snapshot().module)

        # Execution failures take precedence over these on the event
        noted = FailureKind.CONTEXT_MISSING if context.rejected_hints else None

        signature = None
        if self.cache is not None:
            signature = ResponseCache.signature(raw, context)
            hit, corrupted = self.cache.lookup(signature)
            if corrupted:
                noted = FailureKind.CACHE_CORRUPTION
            if hit is not None:
                result = replace(
                    hit,
                    cached=True,
                    execution_time=self._elapsed_ms(start),
                    event_id=event_id,
                )
                self._log(event_id, raw, context, result, noted, actual_intent)
                if session is not None and result.intent is not None:
                    session.remember(result.intent, raw)
                return result

        intent = self.classifier.classify(raw, context)
        logger.debug(
            "intent_classified",
            intent=intent.label,
            confidence=intent.confidence,
            resolved_by=intent.resolved_by.value,
        )

        result, failure = self._execute(intent, raw, context)
        result = replace(result, execution_time=self._elapsed_ms(start), event_id=event_id)

        if signature is not None and result.type == ResultType.SUCCESS and result.cacheable:
            self.cache.put(signature, result)

        self._log(event_id, raw, context, result, failure or noted, actual_intent)
        if session is not None:
            session.remember(intent, raw)
        return result

    def _execute(
        self,
        intent: Intent,
        text: str,
        context: AppContext,
    ) -> tuple[LocalTaskResult, FailureKind | None]:
        routing = self.config.routing
        capability = self.registry.lookup(intent.category, intent.action)

        if capability is None or intent.confidence < routing.fallback_threshold:
            failure = None
            if intent.resolved_by == ResolutionSource.FALLBACK:
                failure = FailureKind.CLASSIFICATION_AMBIGUOUS
            return self._rejected(intent, text), failure

        if intent.confidence < routing.handle_threshold:
            return self._fallback(
                intent, capability, "Let me check with the assistant to be sure."
            ), None

        try:
            output = self._run(capability, intent, text, context)
        except Exception as e:
            logger.warning(
                "capability_failed",
                capability=capability.name,
                intent=intent.label,
                error=f"{type(e).__name__}: {e}",
            )
            return self._fallback(
                intent, capability, "I couldn't finish that here. Let me hand it to the assistant."
            ), FailureKind.HANDLER_EXECUTION_FAILURE

        return LocalTaskResult(
            type=ResultType.SUCCESS,
            handled_locally=True,
            content=output.content,
            confidence=intent.confidence,
            suggested_actions=tuple(output.suggested_actions),
            intent=intent,
            action=output.action,
            cacheable=output.cacheable,
            state=RequestState.LOCALLY_HANDLED,
            capability=capability.name,
        ), None

    def _run(
        self,
        capability: LocalCapability,
        intent: Intent,
        text: str,
        context: AppContext,
    ) -> CapabilityOutput:
        started = self._timer()
        output = capability.handler(intent, text, context)
        elapsed = self._elapsed_ms(started)

        if not isinstance(output, CapabilityOutput):
            raise HandlerExecutionFailure(capability.name, f"returned {type(output).__name__}")
        if not isinstance(output.content, str) or not output.content.strip():
            raise HandlerExecutionFailure(capability.name, "empty content")
        if elapsed > capability.max_execution_ms:
            logger.warning(
                "capability_slow",
                capability=capability.name,
                elapsed_ms=round(elapsed, 3),
                budget_ms=capability.max_execution_ms,
            )
        return output

    def _fallback(self, intent: Intent, capability: LocalCapability, content: str) -> LocalTaskResult:
        hints = (capability.fallback_hint,) if capability.fallback_hint else ()
        return LocalTaskResult(
            type=ResultType.FALLBACK,
            handled_locally=False,
            content=content,
            confidence=intent.confidence,
            suggested_actions=hints,
            intent=intent,
            state=RequestState.FALLBACK_REQUESTED,
            capability=capability.name,
        )

    def _rejected(self, intent: Intent, text: str) -> LocalTaskResult:
        if intent.resolved_by == ResolutionSource.FALLBACK:
            content = f"I'm not sure what you mean yet. {_suggest_closest(text)}"
        else:
            content = "That one needs the full assistant. Let me pass it along."
        return LocalTaskResult(
            type=ResultType.ERROR,
            handled_locally=False,
            content=content,
            confidence=intent.confidence,
            suggested_actions=("Ask the assistant", "Rephrase"),
            intent=intent,
            state=RequestState.REJECTED,
        )

    def _log(
        self,
        event_id: str,
        text: str,
        context: AppContext,
        result: LocalTaskResult,
        failure: FailureKind | None,
        actual_intent: Intent | None,
    ) -> None:
        intent = result.intent or self.classifier.fallback_intent()
        event = ClassificationEvent(
            id=event_id,
            input=text,
            context=context.snapshot(),
            predicted=intent,
            outcome=_outcome(result, failure, self.config.routing.fallback_threshold),
            state=_STATE_BY_TYPE[result.type],
            result_type=result.type,
            handled_locally=result.handled_locally,
            actual_intent=actual_intent,
            cached=result.cached,
            capability=result.capability,
            failure=failure,
            execution_time_ms=result.execution_time,
        )
        self.tracker.record(event)
        logger.info(
            "request_logged",
            intent=intent.label,
            state=event.state.value,
            outcome=event.outcome.value,
            cached=event.cached,
            execution_ms=round(result.execution_time, 3),
        )

    def _log_failed(
        self,
        event_id: str,
        text: str,
        result: LocalTaskResult,
        actual_intent: Intent | None,
    ) -> None:
        """Record the event for a request that failed before it could be logged."""
        try:
            if self.tracker.get_event(event_id) is not None:
                return
            self.tracker.record(ClassificationEvent(
                id=event_id,
                input=text,
                context=ContextSnapshot(),
                predicted=result.intent or self.classifier.fallback_intent(),
                outcome=Outcome.FAILED,
                state=RequestState.REJECTED,
                result_type=ResultType.ERROR,
                handled_locally=False,
                actual_intent=actual_intent,
                execution_time_ms=result.execution_time,
            ))
        except Exception:
            logger.exception("event_record_failed")

    def _elapsed_ms(self, start: float) -> float:
        return max(0.0, (self._timer() - start) * 1000)


def _outcome(result: LocalTaskResult, failure: FailureKind | None, fallback_threshold: float) -> Outcome:
    if result.type == ResultType.SUCCESS:
        return Outcome.SUCCESSFUL
    if failure == FailureKind.HANDLER_EXECUTION_FAILURE:
        return Outcome.FAILED
    if result.type == ResultType.FALLBACK:
        return Outcome.AMBIGUOUS
    intent = result.intent
    if intent is None or intent.resolved_by == ResolutionSource.FALLBACK or intent.confidence < fallback_threshold:
        return Outcome.AMBIGUOUS
    # Confident, but nothing local can act on it
    return Outcome.FAILED


def create_engine(
    config: LunaConfig | None = None,
    clock: Callable[[], datetime] | None = None,
    **kwargs: Any,
) -> LocalExecutionEngine:
    """Build an engine from args/luna.yaml (or the given config)."""
    config = config or load_config()
    resolver = kwargs.pop("resolver", None) or ContextResolver(config.context, clock=clock)
    return LocalExecutionEngine(config=config, resolver=resolver, **kwargs)


__all__ = ["LocalExecutionEngine", "create_engine"]

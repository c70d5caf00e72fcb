"""Aggregation over classification events.

Pure functions: they take an event list plus feedback and return plain
dicts, so the tracker can compute them outside its lock.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tools.luna.config import AnalyticsConfig
from tools.luna.models import (
    ClassificationEvent,
    FeedbackRecord,
    Intent,
    IntentCategory,
    RequestState,
    ResultType,
)

FeedbackIndex = dict[str, list[FeedbackRecord]]

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass
class AnalyticsFilter:
    """Narrow the events an aggregation looks at."""

    since: datetime | None = None
    until: datetime | None = None
    category: IntentCategory | None = None
    module: str | None = None
    include_cached: bool = True

    def apply(self, events: list[ClassificationEvent]) -> list[ClassificationEvent]:
        selected = []
        for event in events:
            if self.since is not None and event.timestamp < self.since:
                continue
            if self.until is not None and event.timestamp > self.until:
                continue
            if self.category is not None and event.predicted.category != IntentCategory(self.category):
                continue
            if self.module is not None and event.context.module != self.module:
                continue
            if not self.include_cached and event.cached:
                continue
            selected.append(event)
        return selected

    def to_dict(self) -> dict[str, Any]:
        return {
            "since": self.since.isoformat() if self.since else None,
            "until": self.until.isoformat() if self.until else None,
            "category": IntentCategory(self.category).value if self.category else None,
            "module": self.module,
            "include_cached": self.include_cached,
        }


@dataclass
class UsageMetric:
    """Usage and success for one predicted (category, action)."""

    category: str
    action: str
    total_usage: int = 0
    successful: int = 0
    confidence_sum: float = 0.0
    execution_ms_sum: float = 0.0
    cache_hits: int = 0
    helpful: int = 0
    not_helpful: int = 0

    @property
    def label(self) -> str:
        return f"{self.category}/{self.action}"

    @property
    def success_rate(self) -> float:
        return self.successful / self.total_usage if self.total_usage else 0.0

    @property
    def average_confidence(self) -> float:
        return self.confidence_sum / self.total_usage if self.total_usage else 0.0

    @property
    def popularity_score(self) -> float:
        return self.total_usage * self.success_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "action": self.action,
            "total_usage": self.total_usage,
            "successful": self.successful,
            "success_rate": self.success_rate,
            "average_confidence": round(self.average_confidence, 4),
            "average_execution_ms": round(
                self.execution_ms_sum / self.total_usage if self.total_usage else 0.0, 3
            ),
            "cache_hits": self.cache_hits,
            "popularity_score": self.popularity_score,
            "user_satisfaction": {"helpful": self.helpful, "not_helpful": self.not_helpful},
        }


@dataclass
class AccuracyMetric:
    """Prediction accuracy for one ground-truth category."""

    category: str
    total_predictions: int = 0
    correct_predictions: int = 0
    confidence_sum: float = 0.0
    misclassifications: Counter = field(default_factory=Counter)

    @property
    def accuracy(self) -> float:
        return self.correct_predictions / self.total_predictions if self.total_predictions else 0.0

    def to_dict(self, top_k: int = 5) -> dict[str, Any]:
        return {
            "category": self.category,
            "total_predictions": self.total_predictions,
            "correct_predictions": self.correct_predictions,
            "accuracy": self.accuracy,
            "average_confidence": round(
                self.confidence_sum / self.total_predictions if self.total_predictions else 0.0, 4
            ),
            "common_misclassifications": _top_confusions(self.misclassifications, top_k),
        }


# =============================================================================
# Ground truth & feedback
# =============================================================================


def effective_actual(event: ClassificationEvent, feedback: FeedbackIndex) -> Intent | None:
    """Ground truth for an event: explicit on the event, else the latest feedback."""
    if event.actual_intent is not None:
        return event.actual_intent
    for record in reversed(feedback.get(event.id, [])):
        if record.actual_intent is not None:
            return record.actual_intent
    return None


def latest_helpful(event_id: str, feedback: FeedbackIndex) -> bool | None:
    for record in reversed(feedback.get(event_id, [])):
        if record.helpful is not None:
            return record.helpful
    return None


# =============================================================================
# Usage
# =============================================================================


def compute_usage(events: list[ClassificationEvent], feedback: FeedbackIndex) -> list[UsageMetric]:
    """Per predicted intent usage, best performers first."""
    metrics: dict[tuple[str, str], UsageMetric] = {}
    for event in events:
        key = (event.predicted.category.value, event.predicted.action)
        metric = metrics.get(key)
        if metric is None:
            metric = metrics[key] = UsageMetric(category=key[0], action=key[1])

        metric.total_usage += 1
        metric.confidence_sum += event.predicted.confidence
        metric.execution_ms_sum += event.execution_time_ms
        if event.result_type == ResultType.SUCCESS:
            metric.successful += 1
        if event.cached:
            metric.cache_hits += 1

        helpful = latest_helpful(event.id, feedback)
        if helpful is True:
            metric.helpful += 1
        elif helpful is False:
            metric.not_helpful += 1

    return sorted(
        metrics.values(),
        key=lambda m: (-m.popularity_score, -m.total_usage, m.label),
    )


# =============================================================================
# Accuracy
# =============================================================================


def compute_accuracy(
    events: list[ClassificationEvent],
    feedback: FeedbackIndex,
) -> tuple[dict[str, AccuracyMetric], AccuracyMetric]:
    """Accuracy keyed by ground-truth category, plus an overall metric.

    Only non-cached events with ground truth count. A prediction is
    correct when both category and action match.
    """
    per_category: dict[str, AccuracyMetric] = {}
    overall = AccuracyMetric(category="overall")

    for event in events:
        if event.cached:
            continue
        actual = effective_actual(event, feedback)
        if actual is None:
            continue

        key = actual.category.value
        metric = per_category.get(key)
        if metric is None:
            metric = per_category[key] = AccuracyMetric(category=key)

        correct = event.predicted.same_as(actual)
        for m in (metric, overall):
            m.total_predictions += 1
            m.confidence_sum += event.predicted.confidence
            if correct:
                m.correct_predictions += 1
            else:
                m.misclassifications[(event.predicted.label, actual.label)] += 1

    return per_category, overall


def _top_confusions(counter: Counter, top_k: int) -> list[dict[str, Any]]:
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [
        {"predicted": predicted, "actual": actual, "count": count}
        for (predicted, actual), count in ranked[:top_k]
    ]


# =============================================================================
# Overview & insights
# =============================================================================


def build_overview(
    events: list[ClassificationEvent],
    usage: list[UsageMetric],
    config: AnalyticsConfig,
    total_capabilities: int = 0,
) -> dict[str, Any]:
    total = len(events)
    states = Counter(e.state for e in events)
    return {
        "total_intents": len(usage),
        "total_capabilities": total_capabilities,
        "total_usage": total,
        "average_success_rate": (
            sum(m.success_rate for m in usage) / len(usage) if usage else 0.0
        ),
        "locally_handled": states.get(RequestState.LOCALLY_HANDLED, 0),
        "fallbacks": states.get(RequestState.FALLBACK_REQUESTED, 0),
        "rejected": states.get(RequestState.REJECTED, 0),
        "cache_hits": sum(1 for e in events if e.cached),
        "local_handling_rate": (
            sum(1 for e in events if e.handled_locally) / total if total else 0.0
        ),
        "average_confidence": round(
            sum(e.predicted.confidence for e in events) / total if total else 0.0, 4
        ),
        "average_execution_ms": round(
            sum(e.execution_time_ms for e in events) / total if total else 0.0, 3
        ),
        "top_performing": [m.to_dict() for m in usage[: config.top_performers]],
    }


def build_insights(
    events: list[ClassificationEvent],
    usage: list[UsageMetric],
    accuracy: dict[str, AccuracyMetric],
    overall: AccuracyMetric,
    config: AnalyticsConfig,
) -> dict[str, Any]:
    recommendations: list[dict[str, Any]] = []

    for metric in accuracy.values():
        if metric.total_predictions >= config.min_samples and metric.accuracy < config.low_accuracy_threshold:
            recommendations.append({
                "type": "low_accuracy",
                "priority": "high",
                "category": metric.category,
                "metric": metric.accuracy,
                "message": (
                    f"Recognition accuracy for {metric.category} is {metric.accuracy:.0%} "
                    f"over {metric.total_predictions} confirmed requests. "
                    "Review its trigger phrases."
                ),
            })

    for metric in usage:
        if metric.total_usage < config.min_samples:
            continue
        if (
            metric.average_confidence >= config.overconfidence_confidence
            and metric.success_rate < config.overconfidence_success_rate
        ):
            recommendations.append({
                "type": "overconfident",
                "priority": "medium",
                "category": metric.category,
                "metric": metric.success_rate,
                "message": (
                    f"{metric.label} is predicted with {metric.average_confidence:.0%} average "
                    f"confidence but succeeds only {metric.success_rate:.0%} of the time."
                ),
            })
        rated = metric.helpful + metric.not_helpful
        if rated >= config.min_samples and metric.not_helpful > metric.helpful:
            recommendations.append({
                "type": "low_satisfaction",
                "priority": "medium",
                "category": metric.category,
                "metric": metric.helpful / rated,
                "message": f"Most feedback on {metric.label} says it was not helpful.",
            })

    total = len(events)
    handled = sum(1 for e in events if e.handled_locally)
    if total >= config.min_samples and handled / total < 0.3:
        recommendations.append({
            "type": "low_local_coverage",
            "priority": "low",
            "category": None,
            "metric": handled / total,
            "message": "Most requests are going to the remote assistant. Consider adding local capabilities.",
        })

    recommendations.sort(key=lambda r: _PRIORITY_ORDER[r["priority"]])

    return {
        "patterns": _patterns(events, overall),
        "recommendations": recommendations,
    }


def _patterns(events: list[ClassificationEvent], overall: AccuracyMetric) -> list[dict[str, Any]]:
    total = len(events)
    if not total:
        return []

    patterns: list[dict[str, Any]] = []

    by_time = Counter(e.context.time_of_day for e in events if e.context.time_of_day)
    if by_time:
        period, count = sorted(by_time.items(), key=lambda item: (-item[1], item[0]))[0]
        patterns.append({
            "type": "peak_usage_time",
            "description": f"Most requests arrive in the {period}.",
            "confidence": count / total,
        })

    by_module = Counter(e.context.module for e in events if e.context.module)
    if by_module:
        module, count = sorted(by_module.items(), key=lambda item: (-item[1], item[0]))[0]
        patterns.append({
            "type": "busiest_module",
            "description": f"The {module} module sends the most requests.",
            "confidence": count / total,
        })

    confusions = _top_confusions(overall.misclassifications, 1)
    if confusions:
        top = confusions[0]
        patterns.append({
            "type": "frequent_confusion",
            "description": f"{top['actual']} is most often mistaken for {top['predicted']}.",
            "confidence": top["count"] / overall.total_predictions,
        })

    cache_hits = sum(1 for e in events if e.cached)
    if cache_hits:
        patterns.append({
            "type": "cache_effectiveness",
            "description": f"{cache_hits} of {total} requests were answered from cache.",
            "confidence": cache_hits / total,
        })

    return patterns


def build_dashboard(
    events: list[ClassificationEvent],
    feedback: FeedbackIndex,
    config: AnalyticsConfig,
    total_capabilities: int = 0,
) -> dict[str, Any]:
    """Overview, performance, accuracy and insights in one payload."""
    usage = compute_usage(events, feedback)
    accuracy, overall = compute_accuracy(events, feedback)
    top_k = config.top_k_misclassifications

    by_capability: dict[str, dict[str, Any]] = defaultdict(lambda: {"usage": 0, "successful": 0})
    for event in events:
        if event.capability:
            by_capability[event.capability]["usage"] += 1
            if event.result_type == ResultType.SUCCESS:
                by_capability[event.capability]["successful"] += 1

    return {
        "overview": build_overview(events, usage, config, total_capabilities),
        "performance": {
            "intents": [m.to_dict() for m in usage],
            "capabilities": {
                name: {**stats, "success_rate": stats["successful"] / stats["usage"]}
                for name, stats in sorted(by_capability.items())
            },
        },
        "accuracy": {
            "overall": overall.to_dict(top_k),
            "by_category": {
                key: metric.to_dict(top_k) for key, metric in sorted(accuracy.items())
            },
        },
        "insights": build_insights(events, usage, accuracy, overall, config),
    }


__all__ = [
    "AccuracyMetric",
    "AnalyticsFilter",
    "UsageMetric",
    "build_dashboard",
    "build_insights",
    "build_overview",
    "compute_accuracy",
    "compute_usage",
    "effective_actual",
]

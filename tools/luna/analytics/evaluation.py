"""Offline evaluation of the intent classifier against labeled cases.

Cases live in args/intent_cases.yaml:

    cases:
      - input: "Add a task to call mom"
        expected: task_management/create
        module: tasks        # optional context hint
        kind: basic          # basic | edge | multilingual | context
"""

from __future__ import annotations

import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from tools.logging_config import get_logger
from tools.luna import CASES_PATH
from tools.luna.context import ContextResolver
from tools.luna.models import Intent, IntentCategory
from tools.luna.parser.intent_classifier import IntentClassifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class LabeledCase:
    input: str
    expected_category: IntentCategory
    expected_action: str
    module: str | None = None
    language: str | None = None
    kind: str = "basic"
    description: str = ""

    @property
    def expected(self) -> Intent:
        return Intent(category=self.expected_category, action=self.expected_action, confidence=1.0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LabeledCase:
        category, _, action = str(data["expected"]).partition("/")
        return cls(
            input=str(data["input"]),
            expected_category=IntentCategory(category),
            expected_action=action,
            module=data.get("module"),
            language=data.get("language"),
            kind=data.get("kind", "basic"),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class CaseResult:
    case: LabeledCase
    predicted: Intent
    passed: bool
    execution_time_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.case.input,
            "expected": self.case.expected.label,
            "predicted": self.predicted.label,
            "confidence": round(self.predicted.confidence, 4),
            "passed": self.passed,
            "kind": self.case.kind,
            "module": self.case.module,
            "execution_time_ms": round(self.execution_time_ms, 3),
        }


@dataclass
class SuiteResult:
    total: int
    passed: int
    accuracy: float
    average_confidence: float
    average_execution_ms: float
    results: list[CaseResult] = field(default_factory=list)
    by_kind: dict[str, dict[str, Any]] = field(default_factory=dict)
    by_category: dict[str, dict[str, Any]] = field(default_factory=dict)
    misclassifications: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "accuracy": self.accuracy,
            "average_confidence": round(self.average_confidence, 4),
            "average_execution_ms": round(self.average_execution_ms, 3),
            "by_kind": self.by_kind,
            "by_category": self.by_category,
            "misclassifications": self.misclassifications,
            "results": [r.to_dict() for r in self.results],
        }


def load_cases(path: str | Path | None = None) -> list[LabeledCase]:
    """Load labeled cases from YAML. Malformed entries are skipped with a warning."""
    path = Path(path) if path else CASES_PATH
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    cases = []
    for i, item in enumerate(raw.get("cases", [])):
        try:
            cases.append(LabeledCase.from_dict(item))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("case_invalid", index=i, error=str(e))
    return cases


def run_suite(
    cases: list[LabeledCase],
    classifier: IntentClassifier | None = None,
    resolver: ContextResolver | None = None,
    timer: Callable[[], float] = time.perf_counter,
) -> SuiteResult:
    """Classify every case and score the predictions."""
    classifier = classifier or IntentClassifier()
    resolver = resolver or ContextResolver()

    results: list[CaseResult] = []
    for case in cases:
        context = resolver.resolve({"module": case.module, "language": case.language})
        started = timer()
        predicted = classifier.classify(case.input, context)
        elapsed = (timer() - started) * 1000
        results.append(CaseResult(
            case=case,
            predicted=predicted,
            passed=predicted.same_as(case.expected),
            execution_time_ms=elapsed,
        ))

    total = len(results)
    passed = sum(1 for r in results if r.passed)

    by_kind: dict[str, Counter] = defaultdict(Counter)
    by_category: dict[str, Counter] = defaultdict(Counter)
    confusions: Counter = Counter()
    for r in results:
        for bucket in (by_kind[r.case.kind], by_category[r.case.expected_category.value]):
            bucket["total"] += 1
            bucket["passed"] += int(r.passed)
        if not r.passed:
            confusions[(r.case.expected.label, r.predicted.label)] += 1

    def _summary(groups: dict[str, Counter]) -> dict[str, dict[str, Any]]:
        return {
            key: {
                "total": c["total"],
                "passed": c["passed"],
                "accuracy": c["passed"] / c["total"],
            }
            for key, c in sorted(groups.items())
        }

    return SuiteResult(
        total=total,
        passed=passed,
        accuracy=passed / total if total else 0.0,
        average_confidence=sum(r.predicted.confidence for r in results) / total if total else 0.0,
        average_execution_ms=sum(r.execution_time_ms for r in results) / total if total else 0.0,
        results=results,
        by_kind=_summary(by_kind),
        by_category=_summary(by_category),
        misclassifications=[
            {"expected": expected, "predicted": predicted, "count": count}
            for (expected, predicted), count in sorted(
                confusions.items(), key=lambda item: (-item[1], item[0])
            )
        ],
    )


def generate_report(result: SuiteResult) -> str:
    """Markdown summary of a suite run."""
    lines = [
        "# Intent Classification Report",
        "",
        f"- Cases: {result.total}",
        f"- Passed: {result.passed}",
        f"- Accuracy: {result.accuracy:.1%}",
        f"- Average confidence: {result.average_confidence:.2f}",
        f"- Average time: {result.average_execution_ms:.3f} ms",
        "",
        "## By kind",
        "",
        "| Kind | Passed | Total | Accuracy |",
        "|------|--------|-------|----------|",
    ]
    for kind, s in result.by_kind.items():
        lines.append(f"| {kind} | {s['passed']} | {s['total']} | {s['accuracy']:.1%} |")

    lines += [
        "",
        "## By category",
        "",
        "| Category | Passed | Total | Accuracy |",
        "|----------|--------|-------|----------|",
    ]
    for category, s in result.by_category.items():
        lines.append(f"| {category} | {s['passed']} | {s['total']} | {s['accuracy']:.1%} |")

    failures = [r for r in result.results if not r.passed]
    if failures:
        lines += ["", "## Failures", ""]
        for r in failures:
            module = f" [{r.case.module}]" if r.case.module else ""
            lines.append(
                f"- `{r.case.input}`{module}: expected {r.case.expected.label}, "
                f"got {r.predicted.label} ({r.predicted.confidence:.2f})"
            )

    return "\n".join(lines) + "\n"


def compare_results(before: SuiteResult, after: SuiteResult) -> dict[str, Any]:
    """What changed between two runs (e.g. before and after editing trigger tables)."""
    improved = []
    degraded = []
    for category in sorted(set(before.by_category) | set(after.by_category)):
        old = before.by_category.get(category, {}).get("accuracy", 0.0)
        new = after.by_category.get(category, {}).get("accuracy", 0.0)
        if new > old:
            improved.append(category)
        elif new < old:
            degraded.append(category)

    return {
        "accuracy_change": after.accuracy - before.accuracy,
        "confidence_change": after.average_confidence - before.average_confidence,
        "execution_time_change": after.average_execution_ms - before.average_execution_ms,
        "improved_categories": improved,
        "degraded_categories": degraded,
    }


__all__ = [
    "CaseResult",
    "LabeledCase",
    "SuiteResult",
    "compare_results",
    "generate_report",
    "load_cases",
    "run_suite",
]

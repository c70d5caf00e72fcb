"""Tests for offline classifier evaluation."""

from dataclasses import replace

import pytest

from tools.luna.analytics.evaluation import (
    LabeledCase,
    compare_results,
    generate_report,
    load_cases,
    run_suite,
)
from tools.luna.models import IntentCategory

CASES_YAML = """
cases:
  - input: "What time is it?"
    expected: general/time
  - input: "Calculate 25 * 8"
    expected: general/calculate
    kind: basic
  - input: "add this to my list"
    expected: goal_setting/create
    module: goals
    kind: context
  - input: "add this to my list"
    expected: habit_formation/create
    kind: context
  - input: "missing expected field"
  - input: "bad category"
    expected: astrology/horoscope
"""


@pytest.fixture
def cases_file(tmp_path):
    path = tmp_path / "cases.yaml"
    path.write_text(CASES_YAML)
    return path


class TestLoadCases:
    def test_invalid_entries_skipped(self, cases_file):
        cases = load_cases(cases_file)
        assert len(cases) == 4
        assert cases[2].module == "goals"
        assert cases[2].expected_category == IntentCategory.GOAL_SETTING
        assert cases[2].kind == "context"

    def test_from_dict(self):
        case = LabeledCase.from_dict({"input": "plan my day", "expected": "planning/daily"})
        assert case.expected.label == "planning/daily"
        assert case.kind == "basic"

    def test_shipped_cases_are_valid(self):
        cases = load_cases()
        assert len(cases) >= 50
        assert {c.kind for c in cases} >= {"basic", "edge", "multilingual", "context"}


class TestRunSuite:
    def test_scores_cases(self, cases_file, classifier, resolver):
        result = run_suite(load_cases(cases_file), classifier=classifier, resolver=resolver)

        assert result.total == 4
        assert result.passed == 3
        assert result.failed == 1
        assert result.accuracy == pytest.approx(0.75)
        assert result.by_kind["context"] == {"total": 2, "passed": 1, "accuracy": 0.5}
        assert result.misclassifications == [{
            "expected": "habit_formation/create",
            "predicted": "task_management/create",
            "count": 1,
        }]

    def test_report(self, cases_file, classifier, resolver):
        report = generate_report(run_suite(load_cases(cases_file), classifier=classifier, resolver=resolver))

        assert report.startswith("# Intent Classification Report")
        assert "- Accuracy: 75.0%" in report
        assert "## Failures" in report
        assert "`add this to my list`: expected habit_formation/create" in report

    def test_empty_suite(self):
        result = run_suite([])
        assert result.total == 0
        assert result.accuracy == 0.0

    def test_compare(self, cases_file, classifier, resolver):
        cases = load_cases(cases_file)
        before = run_suite(cases, classifier=classifier, resolver=resolver)
        # The same utterance, now sent from the habits screen
        fixed = cases[:3] + [replace(cases[3], module="habits")]
        after = run_suite(fixed, classifier=classifier, resolver=resolver)

        diff = compare_results(before, after)
        assert diff["accuracy_change"] == pytest.approx(0.25)
        assert diff["improved_categories"] == ["habit_formation"]
        assert diff["degraded_categories"] == []

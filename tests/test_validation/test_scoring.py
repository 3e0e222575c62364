"""Tests for scoring and recommendations."""

from __future__ import annotations

import pytest

from fixgate.core.models import Action, Confidence, StageName, StageResult
from fixgate.validation.scoring import (
    WEIGHTS,
    compute_score,
    critical_issues,
    recommend,
    recommendations,
    summarize,
)


def _stages(failing: set[StageName] = frozenset(), **details) -> dict[StageName, StageResult]:
    return {
        name: StageResult(
            name=name,
            passed=name not in failing,
            details=details.get(name.value, {}),
            error_count=0 if name not in failing else 1,
        )
        for name in StageName
    }


class TestComputeScore:
    def test_weights_sum_to_100(self):
        assert sum(WEIGHTS.values()) == 100

    def test_all_pass(self):
        stages = _stages()
        score = compute_score(stages)
        rec = recommend(score)

        assert score == 100
        assert (rec.action, rec.confidence) == (Action.APPLY, Confidence.HIGH)

    def test_syntax_failure(self):
        score = compute_score(_stages({StageName.SYNTAX}))
        rec = recommend(score)

        assert score == 80
        assert (rec.action, rec.confidence) == (Action.APPLY_WITH_MONITORING, Confidence.MEDIUM)

    def test_regression_and_performance_failure(self):
        score = compute_score(_stages({StageName.REGRESSION, StageName.PERFORMANCE}))
        rec = recommend(score)

        assert score == 60
        assert (rec.action, rec.confidence) == (Action.MANUAL_REVIEW, Confidence.LOW)

    def test_all_fail(self):
        score = compute_score(_stages(set(StageName)))
        assert score == 0
        assert recommend(score).action is Action.REJECT

    def test_missing_stage_counts_as_failed(self):
        stages = _stages()
        del stages[StageName.FUNCTIONAL]
        assert compute_score(stages) == 70


class TestRecommend:
    @pytest.mark.parametrize(
        "score,action",
        [
            (100, Action.APPLY),
            (90, Action.APPLY),
            (89, Action.APPLY_WITH_MONITORING),
            (75, Action.APPLY_WITH_MONITORING),
            (74, Action.MANUAL_REVIEW),
            (50, Action.MANUAL_REVIEW),
            (49, Action.REJECT),
            (0, Action.REJECT),
        ],
    )
    def test_thresholds(self, score: int, action: Action):
        assert recommend(score).action is action

    def test_reject_has_no_confidence(self):
        assert recommend(10).confidence is Confidence.NONE


class TestSummary:
    def test_critical_issues_per_failing_stage(self):
        stages = _stages(
            {StageName.REGRESSION, StageName.SIDE_EFFECTS},
            regression={"failed": 2, "total": 7, "failures": [{"test": "boot"}, {"test": "save"}]},
            side_effects={"highest_severity": "HIGH"},
        )

        issues = critical_issues(stages)

        assert len(issues) == 2
        assert "2/7" in issues[0]
        assert "HIGH" in issues[1]

    def test_recommendations_name_failing_tests(self):
        stages = _stages(
            {StageName.REGRESSION},
            regression={"failed": 1, "total": 1, "failures": [{"test": "boot"}]},
        )
        assert recommendations(stages) == ["Investigate failing regression tests: boot"]

    def test_stage_error_reported(self):
        stages = _stages({StageName.FUNCTIONAL}, functional={"error": "Timed out after 60s", "timeout": True})

        assert "Timed out" in critical_issues(stages)[0]
        assert "longer timeout" in recommendations(stages)[0]

    def test_summarize(self):
        stages = _stages({StageName.SYNTAX})
        summary = summarize(stages, 80, recommend(80))

        assert summary.overall_result is Action.APPLY_WITH_MONITORING
        assert summary.stages_passed == 4
        assert summary.stages_total == 5
        assert summary.score == 80
        assert summary.recommendations == ["Fix syntax errors before applying"]

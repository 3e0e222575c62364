"""Score computation and recommendation for validation runs."""

from __future__ import annotations

from collections.abc import Mapping

from fixgate.core.models import (
    Action,
    Confidence,
    Recommendation,
    StageName,
    StageResult,
    ValidationSummary,
)

# Points each stage contributes when it passes. Sums to 100.
WEIGHTS = {
    StageName.SYNTAX: 20,
    StageName.FUNCTIONAL: 30,
    StageName.REGRESSION: 25,
    StageName.PERFORMANCE: 15,
    StageName.SIDE_EFFECTS: 10,
}

# (minimum score, action, confidence, reasoning), checked top-down.
THRESHOLDS = [
    (90, Action.APPLY, Confidence.HIGH, "Fix passed all critical validations"),
    (
        75,
        Action.APPLY_WITH_MONITORING,
        Confidence.MEDIUM,
        "Fix passed most validations but has minor issues",
    ),
    (50, Action.MANUAL_REVIEW, Confidence.LOW, "Fix has significant issues requiring review"),
    (0, Action.REJECT, Confidence.NONE, "Fix failed critical validations"),
]


def compute_score(stages: Mapping[StageName, StageResult]) -> int:
    """
    Weighted sum of passing stages, 0-100.

    A stage missing from *stages* counts as failed.
    """
    score = sum(weight for name, weight in WEIGHTS.items() if name in stages and stages[name].passed)
    return max(0, min(100, round(score)))


def recommend(score: int) -> Recommendation:
    for minimum, action, confidence, reasoning in THRESHOLDS:
        if score >= minimum:
            return Recommendation(action=action, confidence=confidence, reasoning=reasoning)
    _, action, confidence, reasoning = THRESHOLDS[-1]
    return Recommendation(action=action, confidence=confidence, reasoning=reasoning)


def critical_issues(stages: Mapping[StageName, StageResult]) -> list[str]:
    """One human-readable line per failing stage."""
    issues: list[str] = []
    for name in WEIGHTS:
        result = stages.get(name)
        if result is None or result.passed:
            continue
        d = result.details
        if "error" in d:
            issues.append(f"{name.value.replace('_', ' ').capitalize()} stage error: {d['error']}")
        elif name is StageName.SYNTAX:
            issues.append(
                f"Syntax errors detected: {result.error_count or 0} issue(s) "
                f"in {d.get('files_with_errors', 0)} file(s)"
            )
        elif name is StageName.FUNCTIONAL:
            if d.get("original_error_fixed") is False:
                issues.append(f"Original error still reproduces: {d.get('reproduction', '')}")
            else:
                issues.append(
                    f"Functional validation failed: {result.error_count or 0} new error(s); "
                    f"{d.get('smoke_checks', '')}"
                )
        elif name is StageName.REGRESSION:
            issues.append(f"Regression tests failed: {d.get('failed', 0)}/{d.get('total', 0)} tests")
        elif name is StageName.PERFORMANCE:
            issues.append(f"Performance thresholds exceeded: {', '.join(d.get('violations', []))}")
        elif name is StageName.SIDE_EFFECTS:
            issues.append(
                f"Side effects detected: {result.error_count or 0} finding(s), "
                f"highest severity {d.get('highest_severity')}"
            )
    return issues


def recommendations(stages: Mapping[StageName, StageResult]) -> list[str]:
    """Suggested next steps for each failing stage."""
    advice: list[str] = []
    for name in WEIGHTS:
        result = stages.get(name)
        if result is None or result.passed:
            continue
        d = result.details
        if d.get("timeout"):
            advice.append(f"Re-run the {name.value} stage with a longer timeout")
        elif name is StageName.SYNTAX:
            advice.append("Fix syntax errors before applying")
        elif name is StageName.FUNCTIONAL:
            if d.get("original_error_fixed") is False:
                advice.append("Fix does not resolve the original error; revise the fix")
            else:
                advice.append("Investigate runtime errors introduced by the fix")
        elif name is StageName.REGRESSION:
            names = [f["test"] for f in d.get("failures", [])]
            advice.append(
                "Investigate failing regression tests"
                + (f": {', '.join(names)}" if names else "")
            )
        elif name is StageName.PERFORMANCE:
            advice.append("Optimize the fix to meet performance budgets")
        elif name is StageName.SIDE_EFFECTS:
            advice.append(f"Address {result.error_count or 0} detected side effect(s)")
            if d.get("highest_severity") == "HIGH":
                advice.append("Review global state changes before applying")
    return advice


def summarize(
    stages: Mapping[StageName, StageResult],
    score: int,
    recommendation: Recommendation,
) -> ValidationSummary:
    return ValidationSummary(
        overall_result=recommendation.action,
        confidence=recommendation.confidence,
        score=score,
        stages_passed=sum(1 for r in stages.values() if r.passed),
        stages_total=len(WEIGHTS),
        critical_issues=critical_issues(stages),
        recommendations=recommendations(stages),
    )

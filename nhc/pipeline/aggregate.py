"""Fold evaluation results into an EvaluationSummary.

The aggregation method is pluggable; the default is the unweighted mean of all scores.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from nhc.core.models import EvaluationResult, EvaluationSummary
from nhc.evaluators.base import clamp_0_100, round_half_up_ratio

NO_EVALUATORS_EXPLANATION = "No evaluators ran."


class ScoreAggregator(Protocol):
    def summarize(self, results: Sequence[EvaluationResult]) -> EvaluationSummary: ...


def explain(results: Sequence[EvaluationResult]) -> str:
    if not results:
        return NO_EVALUATORS_EXPLANATION
    return "; ".join(f"{r.headline} ({r.score}/100)" for r in results)


class MeanScoreAggregator:
    """Arithmetic mean of all scores, rounded half up (exact integer arithmetic, no float drift)."""

    def summarize(self, results: Sequence[EvaluationResult]) -> EvaluationSummary:
        results = list(results)
        if not results:
            return EvaluationSummary(evaluation_results=[], summary_score=0, summary_explanation=explain(results))
        total = sum(r.score for r in results)
        return EvaluationSummary(
            evaluation_results=results,
            summary_score=clamp_0_100(round_half_up_ratio(total, len(results))),
            summary_explanation=explain(results),
        )

from __future__ import annotations

from typing import List

from nhc.core.models import BaselineConfiguration, EvaluationResult, FetchedInputs
from nhc.evaluators.base import clamp_0_100, round_half_up_ratio, unavailable_result


class MetricsPresenceEvaluator:
    """Checks that every metric the baseline requires is exported by the node."""

    evaluator_id = "metrics_presence"
    requires = frozenset({"metrics"})

    def evaluate(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        metrics = inputs.metrics
        if metrics is None:
            return self.data_unavailable(inputs, baseline)
        args = baseline.evaluator_args.metrics_presence
        links = list(args.links)
        required = list(args.required_metrics)

        if not required:
            return EvaluationResult(
                headline="No metrics required",
                score=100,
                explanation=(
                    f"{baseline.display_name} does not require any metrics; "
                    f"the node exports {len(metrics.metric_names)} metric names."
                ),
                source=self.evaluator_id,
                links=links,
            )

        missing: List[str] = [name for name in required if not metrics.has(name)]
        present = len(required) - len(missing)
        score = clamp_0_100(round_half_up_ratio(100 * present, len(required)))

        if not missing:
            return EvaluationResult(
                headline="All required metrics present!",
                score=score,
                explanation=f"All {len(required)} metrics required by {baseline.display_name} are exported.",
                source=self.evaluator_id,
                links=links,
            )
        return EvaluationResult(
            headline="Metrics missing!",
            score=score,
            explanation=(
                f"{present} of {len(required)} required metrics are exported. Missing: {', '.join(missing)}."
            ),
            source=self.evaluator_id,
            links=links,
        )

    def data_unavailable(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        return unavailable_result(
            self.evaluator_id, inputs, ["metrics"], links=baseline.evaluator_args.metrics_presence.links
        )

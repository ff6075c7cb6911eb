from __future__ import annotations

from nhc.core.models import BaselineConfiguration, EvaluationResult, FetchedInputs
from nhc.evaluators.base import clamp_0_100, round_half_up_ratio, unavailable_result

USECS_PER_SEC = 1_000_000


def staleness_score(staleness_usecs: int, max_staleness_secs: int, decay_window_secs: int) -> int:
    """
    100 while within the staleness bound; beyond it, decays linearly to 0 across the decay window.
    """
    bound = max_staleness_secs * USECS_PER_SEC
    if staleness_usecs <= bound:
        return 100
    window = decay_window_secs * USECS_PER_SEC
    over = staleness_usecs - bound
    if over >= window:
        return 0
    return clamp_0_100(round_half_up_ratio(100 * (window - over), window))


class StateSyncEvaluator:
    """
    Checks that the node's ledger is advancing and recent.

    Staleness is measured against `inputs.observed_at_usecs` (the moment fetching finished), never
    against a clock read during evaluation, so re-evaluating the same inputs is reproducible.
    """

    evaluator_id = "state_sync"
    requires = frozenset({"api"})

    def evaluate(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        api = inputs.api
        if api is None:
            return self.data_unavailable(inputs, baseline)
        args = baseline.evaluator_args.state_sync
        links = list(args.links)

        if api.ledger_version <= args.minimum_version:
            return EvaluationResult(
                headline="State sync not advancing",
                score=0,
                explanation=(
                    f"The node reports ledger version {api.ledger_version}, which is not past the minimum "
                    f"{args.minimum_version} expected by {baseline.display_name}; it does not appear to be syncing."
                ),
                source=self.evaluator_id,
                links=links,
            )

        # A node clock slightly ahead of ours is not staleness.
        staleness_usecs = max(0, inputs.observed_at_usecs - api.ledger_timestamp_usecs)
        staleness_secs = staleness_usecs // USECS_PER_SEC
        score = staleness_score(staleness_usecs, args.max_staleness_secs, args.decay_window_secs)

        if score == 100:
            headline = "State sync is healthy!"
            explanation = (
                f"Ledger version {api.ledger_version} is {staleness_secs}s old, within the "
                f"{args.max_staleness_secs}s bound."
            )
        elif score == 0:
            headline = "State sync stalled"
            explanation = (
                f"Ledger version {api.ledger_version} is {staleness_secs}s old, more than "
                f"{args.max_staleness_secs + args.decay_window_secs}s behind; the node has stopped syncing."
            )
        else:
            headline = "State sync is lagging"
            explanation = (
                f"Ledger version {api.ledger_version} is {staleness_secs}s old, beyond the "
                f"{args.max_staleness_secs}s bound."
            )
        return EvaluationResult(
            headline=headline,
            score=score,
            explanation=explanation,
            source=self.evaluator_id,
            links=links,
        )

    def data_unavailable(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        return unavailable_result(
            self.evaluator_id, inputs, ["api"], links=baseline.evaluator_args.state_sync.links
        )

from __future__ import annotations

from typing import FrozenSet, List, Protocol, Sequence

from nhc.core.models import BaselineConfiguration, EvaluationResult, FetchedInputs


class Evaluator(Protocol):
    """
    Evaluator contract.

    Evaluators are designed to be:
    - stateless and deterministic (same inputs + baseline -> same result)
    - total: always return exactly one EvaluationResult
    - independent: each scores one health dimension from the fetched data it declares in `requires`
    """

    evaluator_id: str
    requires: FrozenSet[str]

    def evaluate(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        """Score the node. Only called when at least one of `requires` was fetched successfully."""

    def data_unavailable(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        """Return the degraded result used when none of `requires` could be fetched."""


def clamp_0_100(x: int) -> int:
    return max(0, min(100, int(x)))


def round_half_up_ratio(numerator: int, denominator: int) -> int:
    """round(numerator / denominator) with halves rounded up, in exact integer arithmetic (non-negative inputs)."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


_AREA_NAMES = {"api": "Node API", "metrics": "Metrics", "handshake": "Noise port"}


def unavailable_result(
    evaluator_id: str,
    inputs: FetchedInputs,
    kinds: Sequence[str],
    *,
    links: Sequence[str] = (),
) -> EvaluationResult:
    """
    Standard "data unavailable" result: score 0, naming each degraded area and its failure cause.
    """
    causes: List[str] = []
    for kind in kinds:
        area = _AREA_NAMES.get(kind, kind)
        failure = inputs.failure(kind)
        if failure is not None:
            causes.append(f"{area} unavailable ({failure.describe()})")
        elif inputs.outcome(kind) is None:
            causes.append(f"{area} was not fetched")
    areas = " / ".join(_AREA_NAMES.get(k, k) for k in kinds)
    return EvaluationResult(
        headline=f"{areas} unavailable",
        score=0,
        explanation=(
            f"Could not evaluate {evaluator_id} because its data could not be retrieved: "
            + "; ".join(causes or ["no data"])
            + "."
        ),
        source=evaluator_id,
        links=list(links),
    )

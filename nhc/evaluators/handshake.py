from __future__ import annotations

from nhc.core.models import BaselineConfiguration, EvaluationResult, FetchedInputs


class HandshakeEvaluator:
    """Noise port liveness: 100 if the handshake check succeeded, 0 otherwise."""

    evaluator_id = "handshake"
    requires = frozenset({"handshake"})

    def evaluate(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        hs = inputs.handshake
        if hs is None:
            return self.data_unavailable(inputs, baseline)
        return EvaluationResult(
            headline="Noise port is live!",
            score=100,
            explanation=f"The {hs.peer} {hs.detail}.",
            source=self.evaluator_id,
            links=list(baseline.evaluator_args.handshake.links),
        )

    def data_unavailable(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        failure = inputs.failure("handshake")
        cause = failure.describe() if failure is not None else "the noise port was not checked"
        return EvaluationResult(
            headline="Noise port unreachable",
            score=0,
            explanation=f"The noise port handshake failed ({cause}). Peers will not be able to connect to this node.",
            source=self.evaluator_id,
            links=list(baseline.evaluator_args.handshake.links),
        )

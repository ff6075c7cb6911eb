from __future__ import annotations

from typing import List

from nhc.core.models import BaselineConfiguration, EvaluationResult, FetchedInputs
from nhc.evaluators.base import unavailable_result


class NodeIdentityEvaluator:
    """Checks the node reports the chain id (and role) the baseline expects."""

    evaluator_id = "node_identity"
    requires = frozenset({"api"})

    def evaluate(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        api = inputs.api
        args = baseline.evaluator_args.node_identity
        if api is None:
            return self.data_unavailable(inputs, baseline)

        problems: List[str] = []
        headline = "Node identity matches!"
        if baseline.chain_id is not None and api.chain_id != baseline.chain_id:
            headline = "Chain id mismatch"
            problems.append(
                f"the node reports chain id {api.chain_id!r} but {baseline.display_name} expects {baseline.chain_id!r}"
            )
        if baseline.role_type is not None and api.node_role is not None and api.node_role != baseline.role_type:
            if not problems:
                headline = "Role type mismatch"
            problems.append(
                f"the node reports role {api.node_role!r} but {baseline.display_name} expects {baseline.role_type!r}"
            )

        if problems:
            return EvaluationResult(
                headline=headline,
                score=0,
                explanation=(
                    "The node does not belong to the network described by the baseline: "
                    + "; ".join(problems)
                    + "."
                ),
                source=self.evaluator_id,
                links=list(args.links),
            )

        role_s = f" with role {api.node_role!r}" if api.node_role else ""
        return EvaluationResult(
            headline=headline,
            score=100,
            explanation=f"The node reports chain id {api.chain_id!r}{role_s}, as {baseline.display_name} expects.",
            source=self.evaluator_id,
            links=list(args.links),
        )

    def data_unavailable(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        return unavailable_result(
            self.evaluator_id, inputs, ["api"], links=baseline.evaluator_args.node_identity.links
        )

from __future__ import annotations

import re
from typing import Optional, Tuple

from nhc.core.models import BaselineConfiguration, EvaluationResult, FetchedInputs
from nhc.evaluators.base import unavailable_result

# Score when the node does not report any build version at all.
UNKNOWN_VERSION_SCORE = 50

_MAJOR_MINOR_RE = re.compile(r"(\d+)\.(\d+)")


def major_minor(version: str) -> Optional[Tuple[int, int]]:
    """Extract (major, minor) from strings like '1.2.3', 'v1.2', 'aptos-node-v1.2.0-rc1'."""
    m = _MAJOR_MINOR_RE.search(version or "")
    if m is None:
        return None
    return int(m.group(1)), int(m.group(2))


class BuildVersionEvaluator:
    """Compares the build/version string reported by the node with the baseline's expectation."""

    evaluator_id = "build_version"
    requires = frozenset({"api"})

    def evaluate(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        api = inputs.api
        if api is None:
            return self.data_unavailable(inputs, baseline)
        args = baseline.evaluator_args.build_version
        links = list(args.links)
        observed = api.build_version

        if args.expected_version is None and args.expected_pattern is None:
            return EvaluationResult(
                headline="Build version not checked",
                score=100,
                explanation=(
                    f"{baseline.display_name} does not pin a build version; "
                    f"the node reports {observed or 'no version'}."
                ),
                source=self.evaluator_id,
                links=links,
            )

        expected_desc = args.expected_version or f"a version matching /{args.expected_pattern}/"
        if observed is None:
            return EvaluationResult(
                headline="Build version unknown",
                score=UNKNOWN_VERSION_SCORE,
                explanation=f"The node does not report a build version; expected {expected_desc}.",
                source=self.evaluator_id,
                links=links,
            )

        if args.expected_version is not None and observed == args.expected_version:
            return self._match(observed, "exactly matches the expected version", links)
        if args.expected_pattern is not None and re.fullmatch(args.expected_pattern, observed):
            return self._match(observed, f"matches the expected pattern /{args.expected_pattern}/", links)
        if args.expected_version is not None:
            want = major_minor(args.expected_version)
            got = major_minor(observed)
            if want is not None and want == got:
                return EvaluationResult(
                    headline="Build version compatible!",
                    score=100,
                    explanation=(
                        f"The node runs {observed}, which is compatible with the expected "
                        f"{args.expected_version} (same {want[0]}.{want[1]} release line)."
                    ),
                    source=self.evaluator_id,
                    links=links,
                )

        return EvaluationResult(
            headline="Build version mismatch",
            score=args.mismatch_score,
            explanation=f"The node runs {observed} but {baseline.display_name} expects {expected_desc}.",
            source=self.evaluator_id,
            links=links,
        )

    def _match(self, observed: str, how: str, links: list) -> EvaluationResult:
        return EvaluationResult(
            headline="Build version matches!",
            score=100,
            explanation=f"The node runs {observed}, which {how}.",
            source=self.evaluator_id,
            links=links,
        )

    def data_unavailable(self, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        return unavailable_result(
            self.evaluator_id, inputs, ["api"], links=baseline.evaluator_args.build_version.links
        )

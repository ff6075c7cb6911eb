"""
Evaluation orchestrator.

Per request:  ResolvingBaseline -> FetchingData -> Evaluating -> Aggregated
with a single failure exit (baseline resolution) plus the outer deadline.

Once a baseline is resolved the orchestrator never fails: fetch failures and evaluator crashes
degrade individual scores, they do not abort the response.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from pydantic import ValidationError

from nhc.baselines.registry import BaselineRegistry
from nhc.core.errors import EvaluationTimeoutError, InvalidNodeAddressError
from nhc.core.models import (
    FETCH_KINDS,
    BaselineConfiguration,
    EvaluationResult,
    EvaluationSummary,
    FetchedData,
    FetchedInputs,
    NodeAddress,
    RunnerArgs,
)
from nhc.evaluators.base import Evaluator
from nhc.evaluators.registry import EvaluatorRegistry, get_default_registry
from nhc.pipeline.aggregate import MeanScoreAggregator, ScoreAggregator
from nhc.pipeline.fetch import Fetchers, default_fetchers, fetch_all

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_MARGIN_S = 1.0

Clock = Callable[[], int]
T = TypeVar("T")


def utcnow_usecs() -> int:
    return time.time_ns() // 1000


class EvaluationState(str, Enum):
    RESOLVING_BASELINE = "ResolvingBaseline"
    FETCHING_DATA = "FetchingData"
    EVALUATING = "Evaluating"
    AGGREGATED = "Aggregated"
    BASELINE_RESOLUTION_FAILED = "BaselineResolutionFailed"


class EvaluationOrchestrator:
    def __init__(
        self,
        baselines: BaselineRegistry,
        *,
        evaluators: Optional[EvaluatorRegistry] = None,
        fetchers: Optional[Fetchers] = None,
        aggregator: Optional[ScoreAggregator] = None,
        clock: Optional[Clock] = None,
        deadline_margin_s: float = DEFAULT_DEADLINE_MARGIN_S,
    ) -> None:
        self.baselines = baselines
        self.evaluators = evaluators or get_default_registry()
        self.fetchers = fetchers or default_fetchers()
        self.aggregator = aggregator or MeanScoreAggregator()
        self.clock = clock or utcnow_usecs
        self.deadline_margin_s = deadline_margin_s

    # ---- public API ----

    async def evaluate(
        self,
        node_address: NodeAddress,
        baseline_name: Optional[str] = None,
        port_overrides: Optional[Mapping[str, Optional[int]]] = None,
    ) -> EvaluationSummary:
        """
        Evaluate one target node.

        Raises BaselineResolutionError subclasses or EvaluationTimeoutError; nothing else escapes once
        the baseline is resolved.
        """
        address = _apply_port_overrides(node_address, port_overrides)

        self._transition(address, EvaluationState.RESOLVING_BASELINE)
        try:
            baseline, prefetched = await self.resolve_baseline(address, baseline_name)
        except EvaluationTimeoutError:
            raise
        except Exception:
            self._transition(address, EvaluationState.BASELINE_RESOLUTION_FAILED)
            raise

        self._transition(address, EvaluationState.FETCHING_DATA)
        inputs = await self.fetch_inputs(address, baseline, prefetched)

        self._transition(address, EvaluationState.EVALUATING)
        summary = self.evaluate_fetched(baseline, inputs)

        self._transition(address, EvaluationState.AGGREGATED)
        logger.info(
            "Evaluated %s against %s: score=%d",
            address.url,
            baseline.configuration_name,
            summary.summary_score,
        )
        return summary

    async def resolve_baseline(
        self, address: NodeAddress, baseline_name: Optional[str]
    ) -> Tuple[BaselineConfiguration, Dict[str, FetchedData]]:
        """
        Explicit lookup, or fetch and infer. Returns the baseline plus whatever was fetched on the
        way (so it is not fetched twice).

        Inference cannot know which kinds the winning baseline needs, so every kind any registered
        baseline needs is fetched at once, under the same single deadline a named evaluation gets.
        """
        if baseline_name:
            return self.baselines.lookup(baseline_name), {}

        runner = self._inference_runner_args()
        kinds = self._inference_kinds()
        deadline = max(runner.timeout_for(k) for k in kinds) + self.deadline_margin_s
        fetched = await _within_deadline(
            fetch_all(kinds, self.fetchers, address, runner),
            deadline,
            f"Baseline inference for {address.url} exceeded the {deadline:g}s deadline",
        )
        return self.baselines.infer(fetched.get("api")), fetched

    async def fetch_inputs(
        self,
        address: NodeAddress,
        baseline: BaselineConfiguration,
        prefetched: Optional[Dict[str, FetchedData]] = None,
    ) -> FetchedInputs:
        prefetched = dict(prefetched or {})
        required = self.evaluators.required_kinds(baseline.evaluators)
        remaining = [k for k in required if k not in prefetched]

        outcomes: Dict[str, FetchedData] = {k: v for k, v in prefetched.items() if k in required}
        if remaining:
            runner = baseline.runner_args
            deadline = max(runner.timeout_for(k) for k in remaining) + self.deadline_margin_s
            fetched = await _within_deadline(
                fetch_all(remaining, self.fetchers, address, runner),
                deadline,
                f"Fetching data from {address.url} exceeded the {deadline:g}s deadline",
            )
            outcomes.update(fetched)

        return FetchedInputs(outcomes=outcomes, observed_at_usecs=int(self.clock()))

    def evaluate_fetched(self, baseline: BaselineConfiguration, inputs: FetchedInputs) -> EvaluationSummary:
        """
        Pure part of the evaluation: run every evaluator the baseline lists, in its order, and aggregate.
        """
        results = [self._run_evaluator(name, inputs, baseline) for name in baseline.evaluators]
        return self.aggregator.summarize(results)

    # ---- internals ----

    def _inference_kinds(self) -> List[str]:
        kinds = {"api"}
        for cfg in self.baselines.configurations():
            kinds.update(self.evaluators.required_kinds(cfg.evaluators))
        return [k for k in FETCH_KINDS if k in kinds]

    def _inference_runner_args(self) -> RunnerArgs:
        configs = self.baselines.configurations()
        if not configs:
            return RunnerArgs()
        return RunnerArgs(
            api_timeout_secs=max(c.runner_args.api_timeout_secs for c in configs),
            metrics_timeout_secs=max(c.runner_args.metrics_timeout_secs for c in configs),
            handshake_timeout_secs=max(c.runner_args.handshake_timeout_secs for c in configs),
        )

    def _run_evaluator(self, name: str, inputs: FetchedInputs, baseline: BaselineConfiguration) -> EvaluationResult:
        evaluator: Optional[Evaluator] = self.evaluators.get(name)
        if evaluator is None:
            # The registry rejects unknown names at load time; this only guards hand-built baselines.
            return EvaluationResult(
                headline="Unknown evaluator",
                score=0,
                explanation=f"Evaluator {name!r} is not available in this node checker.",
                source=name,
                links=[],
            )
        try:
            if any(inputs.succeeded(k) for k in evaluator.requires):
                return evaluator.evaluate(inputs, baseline)
            return evaluator.data_unavailable(inputs, baseline)
        except Exception as e:
            logger.warning("Evaluator %s failed", name, exc_info=True)
            return EvaluationResult(
                headline="Evaluator error",
                score=0,
                explanation=f"Evaluator {name} failed unexpectedly: {e}",
                source=name,
                links=[],
            )

    def _transition(self, address: NodeAddress, state: EvaluationState) -> None:
        logger.debug("Evaluation %s -> %s", address.url, state.value)


async def _within_deadline(coro: Awaitable[T], deadline_s: float, message: str) -> T:
    """
    Await `coro` for at most `deadline_s`. Unlike `asyncio.wait_for`, this returns on time even when
    a fetcher ignores cancellation: the task is cancelled and left behind, not awaited.
    """
    task = asyncio.ensure_future(coro)
    try:
        done, _ = await asyncio.wait({task}, timeout=deadline_s)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task not in done:
        task.cancel()
        logger.warning("%s", message)
        raise EvaluationTimeoutError(message)
    return task.result()


def _apply_port_overrides(address: NodeAddress, overrides: Optional[Mapping[str, Optional[int]]]) -> NodeAddress:
    if not overrides:
        return address
    unknown = set(overrides) - {"api_port", "metrics_port", "noise_port"}
    if unknown:
        raise InvalidNodeAddressError(f"Unknown port overrides: {', '.join(sorted(unknown))}")
    try:
        return address.with_ports(
            api_port=overrides.get("api_port"),
            metrics_port=overrides.get("metrics_port"),
            noise_port=overrides.get("noise_port"),
        )
    except ValidationError as e:
        raise InvalidNodeAddressError(f"Invalid port override: {e.errors()[0].get('msg')}") from e

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from nhc.evaluators.base import Evaluator


@dataclass
class EvaluatorRegistry:
    evaluators: List[Evaluator] = field(default_factory=list)

    def register(self, evaluator: Evaluator) -> None:
        eid = getattr(evaluator, "evaluator_id", "")
        if not eid:
            raise ValueError(f"evaluator {evaluator!r} has no evaluator_id")
        if self.get(eid) is not None:
            raise ValueError(f"evaluator {eid!r} is already registered")
        self.evaluators.append(evaluator)

    def get(self, evaluator_id: str) -> Optional[Evaluator]:
        for e in self.evaluators:
            if e.evaluator_id == evaluator_id:
                return e
        return None

    def names(self) -> List[str]:
        return [e.evaluator_id for e in self.evaluators]

    def unknown(self, names: Iterable[str]) -> List[str]:
        known = set(self.names())
        return [n for n in names if n not in known]

    def required_kinds(self, names: Iterable[str]) -> FrozenSet[str]:
        kinds: set = set()
        for n in names:
            e = self.get(n)
            if e is not None:
                kinds.update(e.requires)
        return frozenset(kinds)


_DEFAULT_REGISTRY: EvaluatorRegistry | None = None


def get_default_registry() -> EvaluatorRegistry:
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is not None:
        return _DEFAULT_REGISTRY
    reg = EvaluatorRegistry()
    # Explicit composition (single source of truth lives in `nhc.evaluators.builtin`).
    from nhc.evaluators.builtin import DEFAULT_EVALUATOR_CLASSES  # noqa: WPS433

    for cls in DEFAULT_EVALUATOR_CLASSES:
        try:
            reg.register(cls())
        except Exception as e:
            raise RuntimeError(f"Failed to register evaluator {cls}: {e}") from e

    _DEFAULT_REGISTRY = reg
    return reg

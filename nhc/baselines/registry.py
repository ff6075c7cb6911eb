from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from nhc.core.errors import (
    AmbiguousBaselineError,
    BaselineNotFoundError,
    ConfigurationError,
    InsufficientDataForInferenceError,
    NoBaselineMatchedError,
)
from nhc.core.models import BaselineConfiguration, FetchedData
from nhc.evaluators.registry import EvaluatorRegistry, get_default_registry

logger = logging.getLogger(__name__)


@dataclass
class BaselineRegistry:
    """
    Name -> BaselineConfiguration mapping.

    Single writer at startup (register + seal), many concurrent readers afterwards. Entries are
    frozen models, so readers never need a lock once the registry is sealed.
    """

    evaluators: Optional[EvaluatorRegistry] = None
    _configurations: Dict[str, BaselineConfiguration] = field(default_factory=dict)
    _sealed: bool = False

    def register(self, name: str, configuration: BaselineConfiguration) -> None:
        if self._sealed:
            raise ConfigurationError(f"Baseline registry is sealed; cannot register {name!r} at runtime")
        if name != configuration.configuration_name:
            raise ConfigurationError(
                f"Baseline registered as {name!r} but its configuration_name is {configuration.configuration_name!r}"
            )
        if not configuration.evaluators:
            raise ConfigurationError(f"Baseline {name!r} lists no evaluators")
        if len(set(configuration.evaluators)) != len(configuration.evaluators):
            raise ConfigurationError(f"Baseline {name!r} lists an evaluator more than once")
        evaluators = self.evaluators or get_default_registry()
        unknown = evaluators.unknown(configuration.evaluators)
        if unknown:
            raise ConfigurationError(
                f"Baseline {name!r} references unknown evaluators: {', '.join(unknown)} "
                f"(known: {', '.join(evaluators.names())})"
            )
        if name in self._configurations:
            logger.info("Replacing baseline configuration %s", name)
        self._configurations[name] = configuration

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def names(self) -> List[str]:
        return sorted(self._configurations)

    def configurations(self) -> List[BaselineConfiguration]:
        return [self._configurations[n] for n in self.names()]

    def lookup(self, name: str) -> BaselineConfiguration:
        cfg = self._configurations.get(name)
        if cfg is None:
            raise BaselineNotFoundError(name, self.names())
        return cfg

    def infer(self, api_outcome: Optional[FetchedData]) -> BaselineConfiguration:
        """
        Pick the baseline whose expected chain id (and role, when both sides know it) matches the node.

        Deterministic: candidates are considered in name order and more than one match is an error,
        never a tie-break.
        """
        if api_outcome is None or api_outcome.kind != "api":
            raise InsufficientDataForInferenceError("no API data was fetched")
        if not api_outcome.ok or api_outcome.api is None:
            cause = api_outcome.failure.describe() if api_outcome.failure is not None else "no API data"
            raise InsufficientDataForInferenceError(cause)

        api = api_outcome.api
        matches: List[BaselineConfiguration] = []
        for cfg in self.configurations():
            if cfg.chain_id is None or cfg.chain_id != api.chain_id:
                continue
            if cfg.role_type is not None and api.node_role is not None and cfg.role_type != api.node_role:
                continue
            matches.append(cfg)

        if not matches:
            raise NoBaselineMatchedError(api.chain_id, api.node_role)
        if len(matches) > 1:
            raise AmbiguousBaselineError(api.chain_id, [m.configuration_name for m in matches])
        logger.debug("Inferred baseline %s for chain id %s", matches[0].configuration_name, api.chain_id)
        return matches[0]

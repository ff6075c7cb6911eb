"""Pluggable evaluators.

Each evaluator scores one health dimension of a target node from the data fetched for it
(API ledger info, metrics scrape, noise port handshake) against a baseline configuration.
Baselines list evaluators by `evaluator_id`; results come back in that order.
"""

from .base import Evaluator
from .registry import EvaluatorRegistry, get_default_registry

__all__ = ["Evaluator", "EvaluatorRegistry", "get_default_registry"]

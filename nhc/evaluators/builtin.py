from __future__ import annotations

from nhc.evaluators.build_version import BuildVersionEvaluator
from nhc.evaluators.handshake import HandshakeEvaluator
from nhc.evaluators.metrics_presence import MetricsPresenceEvaluator
from nhc.evaluators.node_identity import NodeIdentityEvaluator
from nhc.evaluators.state_sync import StateSyncEvaluator

# Registration order. Adding an evaluator means adding its class here; the orchestrator is untouched.
DEFAULT_EVALUATOR_CLASSES = [
    NodeIdentityEvaluator,
    BuildVersionEvaluator,
    StateSyncEvaluator,
    MetricsPresenceEvaluator,
    HandshakeEvaluator,
]

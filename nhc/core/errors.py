"""Request-terminating error types.

Fetch-level failures are *not* exceptions: they are captured as `FetchFailure` data and only surface
inside an evaluator's explanation. Everything here aborts a request (or startup) and is shown to the
caller verbatim.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class NodeCheckerError(RuntimeError):
    """Base error mapped to a standardized `{code, message}` response payload."""

    status: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code

    def to_payload(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ConfigurationError(NodeCheckerError):
    """Malformed baseline document or missing preconfigured target. Fatal at startup."""

    status = 400
    code = "configuration_error"


class InvalidNodeAddressError(NodeCheckerError):
    status = 400
    code = "invalid_node_address"


class BaselineResolutionError(NodeCheckerError):
    """The baseline could not be resolved (explicitly or by inference); the request is aborted."""

    status = 400
    code = "baseline_resolution_failed"


class BaselineNotFoundError(BaselineResolutionError):
    status = 404
    code = "baseline_not_found"

    def __init__(self, name: str, known: List[str]) -> None:
        known_s = ", ".join(known) if known else "none"
        super().__init__(f"Baseline configuration {name!r} not found (known: {known_s})")
        self.name = name


class AmbiguousBaselineError(BaselineResolutionError):
    status = 409
    code = "ambiguous_baseline"

    def __init__(self, chain_id: str, candidates: List[str]) -> None:
        super().__init__(
            f"Chain id {chain_id!r} matches several baseline configurations ({', '.join(candidates)}); "
            "specify baseline_configuration_name explicitly"
        )
        self.candidates = list(candidates)


class NoBaselineMatchedError(BaselineResolutionError):
    status = 422
    code = "no_baseline_matched"

    def __init__(self, chain_id: str, role: Optional[str] = None) -> None:
        role_s = f" and role {role!r}" if role else ""
        super().__init__(f"No baseline configuration matches chain id {chain_id!r}{role_s}")


class InsufficientDataForInferenceError(BaselineResolutionError):
    status = 424
    code = "insufficient_data_for_inference"

    def __init__(self, cause: str) -> None:
        super().__init__(f"Cannot infer a baseline configuration: the node API could not be read ({cause})")


class EvaluationTimeoutError(NodeCheckerError):
    status = 504
    code = "evaluation_timeout"

"""Canonical domain models (single source of truth).

This file is the one place where we define models used across:
- fetching diagnostic data from a target node (API / metrics / noise handshake)
- baseline configurations (what "healthy" looks like for a network)
- evaluation results and the aggregated summary returned to callers

Design note:
- Baseline configurations and request inputs are frozen: they are read by many concurrent
  evaluations and must never change after construction.
- Fetch outcomes always carry either a payload or a typed failure, never both, never neither.
"""

from __future__ import annotations

import re
from typing import Any, Dict, FrozenSet, List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_API_PORT = 8080
DEFAULT_METRICS_PORT = 9101
DEFAULT_NOISE_PORT = 6180

FetchKind = Literal["api", "metrics", "handshake"]
FETCH_KINDS: tuple = ("api", "metrics", "handshake")

FailureKind = Literal[
    "timeout",
    "connection_error",
    "http_error",
    "parse_error",
    "protocol_error",
    "unexpected_error",
]


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BaseModelFrozen(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# ---- Target node ----


def normalize_node_url(raw: str) -> str:
    """
    Normalize a user-supplied node URL.

    If there is no scheme we prepend http:// (operators routinely paste bare hostnames/IPs).
    Trailing slashes are dropped so ports can be appended safely.
    """
    s = (raw or "").strip()
    if not s:
        raise ValueError("node URL is empty")
    if "://" not in s:
        s = f"http://{s}"
    parts = urlsplit(s)
    if parts.scheme not in ("http", "https"):
        raise ValueError(f"unsupported URL scheme: {parts.scheme!r}")
    if not parts.hostname:
        raise ValueError(f"URL has no host: {raw!r}")
    try:
        # Accessing .port validates an embedded port (raises ValueError when out of range / non-numeric).
        _ = parts.port
    except ValueError as e:
        raise ValueError(f"invalid port in URL {raw!r}: {e}") from e
    return s.rstrip("/")


class NodeAddress(BaseModelFrozen):
    url: str
    api_port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535)
    metrics_port: int = Field(default=DEFAULT_METRICS_PORT, ge=1, le=65535)
    noise_port: int = Field(default=DEFAULT_NOISE_PORT, ge=1, le=65535)

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, v: Any) -> str:
        return normalize_node_url(str(v) if v is not None else "")

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    def api_base(self) -> str:
        return f"{self.scheme}://{_host_for_url(self.host)}:{self.api_port}"

    def metrics_base(self) -> str:
        return f"{self.scheme}://{_host_for_url(self.host)}:{self.metrics_port}"

    def with_ports(
        self,
        *,
        api_port: Optional[int] = None,
        metrics_port: Optional[int] = None,
        noise_port: Optional[int] = None,
    ) -> "NodeAddress":
        """Return a copy with the given port overrides applied (None keeps the current port)."""
        update: Dict[str, Any] = {}
        if api_port is not None:
            update["api_port"] = api_port
        if metrics_port is not None:
            update["metrics_port"] = metrics_port
        if noise_port is not None:
            update["noise_port"] = noise_port
        if not update:
            return self
        # model_validate (not model_copy) so overrides go through the port range checks.
        return NodeAddress.model_validate({**self.model_dump(), **update})


def _host_for_url(host: str) -> str:
    # IPv6 literals must be bracketed when a port is appended.
    return f"[{host}]" if ":" in host else host


# ---- Baseline configuration ----


class _EvaluatorArgsBase(BaseModelFrozen):
    links: List[str] = Field(default_factory=list)


class NodeIdentityArgs(_EvaluatorArgsBase):
    pass


class MetricsPresenceArgs(_EvaluatorArgsBase):
    required_metrics: List[str] = Field(default_factory=list)


class StateSyncArgs(_EvaluatorArgsBase):
    minimum_version: int = Field(default=0, ge=0)
    max_staleness_secs: int = Field(default=60, ge=0)
    decay_window_secs: int = Field(default=540, ge=1)


class BuildVersionArgs(_EvaluatorArgsBase):
    expected_version: Optional[str] = None
    expected_pattern: Optional[str] = None
    mismatch_score: int = Field(default=10, ge=0, le=100)

    @field_validator("expected_pattern")
    @classmethod
    def _pattern_compiles(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"expected_pattern is not a valid regex: {e}") from e
        return v


class HandshakeArgs(_EvaluatorArgsBase):
    pass


class EvaluatorArgs(BaseModelFrozen):
    node_identity: NodeIdentityArgs = Field(default_factory=NodeIdentityArgs)
    metrics_presence: MetricsPresenceArgs = Field(default_factory=MetricsPresenceArgs)
    state_sync: StateSyncArgs = Field(default_factory=StateSyncArgs)
    build_version: BuildVersionArgs = Field(default_factory=BuildVersionArgs)
    handshake: HandshakeArgs = Field(default_factory=HandshakeArgs)


class RunnerArgs(BaseModelFrozen):
    api_timeout_secs: float = Field(default=5.0, gt=0)
    metrics_timeout_secs: float = Field(default=5.0, gt=0)
    handshake_timeout_secs: float = Field(default=5.0, gt=0)

    def timeout_for(self, kind: str) -> float:
        if kind == "api":
            return self.api_timeout_secs
        if kind == "metrics":
            return self.metrics_timeout_secs
        if kind == "handshake":
            return self.handshake_timeout_secs
        raise KeyError(kind)


class BaselineConfiguration(BaseModelFrozen):
    """
    A named, immutable profile of what a healthy node looks like on one network.

    `configuration_name` is what clients send over the wire (e.g. devnet_fullnode);
    `configuration_name_pretty` is what a UI would show (e.g. "Devnet FullNode").
    """

    configuration_name: str = Field(min_length=1)
    configuration_name_pretty: Optional[str] = None
    chain_id: Optional[str] = None
    role_type: Optional[str] = None
    evaluators: List[str] = Field(min_length=1)
    evaluator_args: EvaluatorArgs = Field(default_factory=EvaluatorArgs)
    runner_args: RunnerArgs = Field(default_factory=RunnerArgs)

    @field_validator("chain_id", mode="before")
    @classmethod
    def _chain_id_as_str(cls, v: Any) -> Optional[str]:
        # YAML happily turns `chain_id: 16` into an int; identifiers are compared as strings.
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("evaluators")
    @classmethod
    def _unique_evaluators(cls, v: List[str]) -> List[str]:
        seen = set()
        for name in v:
            if not name or not name.strip():
                raise ValueError("evaluator names must be non-empty")
            if name in seen:
                raise ValueError(f"evaluator listed twice: {name}")
            seen.add(name)
        return v

    @property
    def display_name(self) -> str:
        return self.configuration_name_pretty or self.configuration_name


# ---- Fetched data ----


class FetchFailure(BaseModelFrozen):
    kind: FailureKind
    cause: str

    def describe(self) -> str:
        return f"{self.kind.replace('_', ' ')}: {self.cause}"


class ApiData(BaseModelFrozen):
    chain_id: str
    ledger_version: int = Field(ge=0)
    ledger_timestamp_usecs: int = Field(ge=0)
    epoch: Optional[int] = None
    block_height: Optional[int] = None
    node_role: Optional[str] = None
    build_version: Optional[str] = None


class MetricsData(BaseModelFrozen):
    # Canonical series key -> sample value, e.g. 'aptos_state_sync_version{type="synced"}' -> 1234.0
    samples: Dict[str, float] = Field(default_factory=dict)
    skipped_lines: int = 0

    @property
    def metric_names(self) -> FrozenSet[str]:
        return frozenset(k.split("{", 1)[0] for k in self.samples)

    def has(self, name_or_key: str) -> bool:
        """A bare metric name matches any series of that name; a full series key must match exactly."""
        if "{" in name_or_key:
            return canonical_series_key_from_text(name_or_key) in self.samples
        return name_or_key in self.metric_names

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        return self.samples.get(canonical_series_key(name, labels or {}))


class HandshakeData(BaseModelFrozen):
    peer: str
    detail: str


def canonical_series_key(name: str, labels: Dict[str, str]) -> str:
    if not labels:
        return name
    inner = ",".join(f'{k}="{labels[k]}"' for k in sorted(labels))
    return f"{name}{{{inner}}}"


_LABEL_PAIR_RE = re.compile(r'\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*=\s*"((?:[^"\\]|\\.)*)"\s*,?')


def parse_label_block(block: str) -> Optional[Dict[str, str]]:
    """
    Parse the inside of a `{...}` label block. Returns None when the block is malformed.
    """
    labels: Dict[str, str] = {}
    pos = 0
    block = block.strip()
    while pos < len(block):
        m = _LABEL_PAIR_RE.match(block, pos)
        if m is None or m.end() == pos:
            return None
        labels[m.group(1)] = m.group(2)
        pos = m.end()
    return labels


def canonical_series_key_from_text(text: str) -> str:
    """Normalize a user-written series key (label order / spacing) to the canonical form."""
    s = text.strip()
    if "{" not in s or not s.endswith("}"):
        return s
    name, _, rest = s.partition("{")
    labels = parse_label_block(rest[:-1])
    if labels is None:
        return s
    return canonical_series_key(name.strip(), labels)


class FetchedData(BaseModelFrozen):
    """
    Outcome of exactly one fetch attempt: a payload matching `kind`, or a typed failure.
    """

    kind: FetchKind
    api: Optional[ApiData] = None
    metrics: Optional[MetricsData] = None
    handshake: Optional[HandshakeData] = None
    failure: Optional[FetchFailure] = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "FetchedData":
        payloads = {"api": self.api, "metrics": self.metrics, "handshake": self.handshake}
        present = [k for k, v in payloads.items() if v is not None]
        if self.failure is not None:
            if present:
                raise ValueError("a failed fetch must not carry a payload")
            return self
        if present != [self.kind]:
            raise ValueError(f"a successful {self.kind} fetch must carry exactly its own payload")
        return self

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, kind: str, payload: BaseModel) -> "FetchedData":
        return cls.model_validate({"kind": kind, kind: payload})

    @classmethod
    def failed(cls, kind: str, failure_kind: str, cause: str) -> "FetchedData":
        return cls(kind=kind, failure=FetchFailure(kind=failure_kind, cause=cause))  # type: ignore[arg-type]


class FetchedInputs(BaseModelFrozen):
    """Everything evaluators may consume for one evaluation (kinds never requested are absent)."""

    outcomes: Dict[str, FetchedData] = Field(default_factory=dict)
    observed_at_usecs: int = 0

    def outcome(self, kind: str) -> Optional[FetchedData]:
        return self.outcomes.get(kind)

    def succeeded(self, kind: str) -> bool:
        o = self.outcomes.get(kind)
        return o is not None and o.ok

    def failure(self, kind: str) -> Optional[FetchFailure]:
        o = self.outcomes.get(kind)
        return o.failure if o is not None else None

    @property
    def api(self) -> Optional[ApiData]:
        o = self.outcomes.get("api")
        return o.api if o is not None else None

    @property
    def metrics(self) -> Optional[MetricsData]:
        o = self.outcomes.get("metrics")
        return o.metrics if o is not None else None

    @property
    def handshake(self) -> Optional[HandshakeData]:
        o = self.outcomes.get("handshake")
        return o.handshake if o is not None else None


# ---- Evaluation output ----


class EvaluationResult(BaseModelFrozen):
    headline: str
    score: int = Field(ge=0, le=100)
    explanation: str
    source: str
    links: List[str] = Field(default_factory=list)


class EvaluationSummary(BaseModelFrozen):
    evaluation_results: List[EvaluationResult] = Field(default_factory=list)
    summary_score: int = Field(ge=0, le=100)
    summary_explanation: str

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from nhc.core.errors import ConfigurationError
from nhc.core.models import DEFAULT_API_PORT, DEFAULT_METRICS_PORT, DEFAULT_NOISE_PORT, NodeAddress

DEFAULT_BASELINE_CONFIGS = "configs"
DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 20121


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name) or "").strip() or None


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float, *, lo: float, hi: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        v = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if not math.isfinite(v):
        raise ConfigurationError(f"{name} must be a finite number, got {raw!r}")
    return max(lo, min(hi, v))


@dataclass(frozen=True)
class ServiceConfig:
    baseline_config_paths: List[str]
    # Target checked by /check_preconfigured_node; None when the service was started without one.
    preconfigured_node: Optional[NodeAddress]
    deadline_margin_s: float
    listen_host: str
    listen_port: int


def build_node_address(
    url: str,
    *,
    api_port: int = DEFAULT_API_PORT,
    metrics_port: int = DEFAULT_METRICS_PORT,
    noise_port: int = DEFAULT_NOISE_PORT,
) -> NodeAddress:
    """NodeAddress from loose inputs; invalid values raise ValueError with a readable message."""
    try:
        return NodeAddress(url=url, api_port=api_port, metrics_port=metrics_port, noise_port=noise_port)
    except ValidationError as e:
        msgs = "; ".join(str(err.get("msg")) for err in e.errors())
        raise ValueError(msgs) from e


def load_service_config() -> ServiceConfig:
    paths_raw = _env_str("NHC_BASELINE_CONFIGS") or DEFAULT_BASELINE_CONFIGS
    paths = [p.strip() for p in paths_raw.split(",") if p.strip()]

    preconfigured: Optional[NodeAddress] = None
    node_url = _env_str("NHC_PRECONFIGURED_NODE_URL")
    if node_url:
        try:
            preconfigured = build_node_address(
                node_url,
                api_port=_env_int("NHC_PRECONFIGURED_API_PORT", DEFAULT_API_PORT),
                metrics_port=_env_int("NHC_PRECONFIGURED_METRICS_PORT", DEFAULT_METRICS_PORT),
                noise_port=_env_int("NHC_PRECONFIGURED_NOISE_PORT", DEFAULT_NOISE_PORT),
            )
        except ValueError as e:
            raise ConfigurationError(f"NHC_PRECONFIGURED_NODE_URL is invalid: {e}") from e

    return ServiceConfig(
        baseline_config_paths=paths,
        preconfigured_node=preconfigured,
        deadline_margin_s=_env_float("NHC_DEADLINE_MARGIN_SECONDS", 1.0, lo=0.1, hi=30.0),
        listen_host=_env_str("NHC_LISTEN_HOST") or DEFAULT_LISTEN_HOST,
        listen_port=_env_int("NHC_LISTEN_PORT", DEFAULT_LISTEN_PORT),
    )

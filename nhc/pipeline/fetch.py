"""Concurrent fetch phase: one attempt per data kind, each bounded by its own timeout."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable

from nhc.core.models import FETCH_KINDS, FetchedData, NodeAddress, RunnerArgs
from nhc.providers.api_provider import ApiProvider, get_api_provider
from nhc.providers.metrics_provider import MetricsProvider, get_metrics_provider
from nhc.providers.noise_provider import HandshakeProvider, get_handshake_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fetchers:
    api: ApiProvider
    metrics: MetricsProvider
    handshake: HandshakeProvider


def default_fetchers() -> Fetchers:
    return Fetchers(api=get_api_provider(), metrics=get_metrics_provider(), handshake=get_handshake_provider())


async def fetch_one(kind: str, fetchers: Fetchers, address: NodeAddress, timeout_s: float) -> FetchedData:
    """
    Run a single fetcher under `timeout_s`.

    Never raises (except for cancellation of the surrounding evaluation): a timeout here or an
    exception escaping a provider becomes a typed failure.
    """
    try:
        if kind == "api":
            # requests is blocking; keep the event loop free for the other fetchers.
            coro = asyncio.to_thread(fetchers.api.fetch_api_data, address, timeout_s)
        elif kind == "metrics":
            coro = asyncio.to_thread(fetchers.metrics.fetch_metrics, address, timeout_s)
        elif kind == "handshake":
            coro = fetchers.handshake.probe_noise_port(address, timeout_s)
        else:
            raise ValueError(f"unknown fetch kind: {kind}")
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.info("Fetch %s for %s timed out after %.1fs", kind, address.url, timeout_s)
        return FetchedData.failed(kind, "timeout", f"no {kind} response within {timeout_s:g}s")
    except Exception as e:
        logger.warning("Fetch %s for %s raised", kind, address.url, exc_info=True)
        return FetchedData.failed(kind, "unexpected_error", str(e) or type(e).__name__)


async def fetch_all(
    kinds: Iterable[str],
    fetchers: Fetchers,
    address: NodeAddress,
    runner_args: RunnerArgs,
) -> Dict[str, FetchedData]:
    """
    Launch the requested fetchers concurrently and wait for every one to finish or time out.

    The result is keyed by kind in a fixed order (api, metrics, handshake), independent of which
    fetch completed first.
    """
    wanted = set(kinds)
    ordered = [k for k in FETCH_KINDS if k in wanted]
    if not ordered:
        return {}
    outcomes = await asyncio.gather(
        *(fetch_one(k, fetchers, address, runner_args.timeout_for(k)) for k in ordered)
    )
    return dict(zip(ordered, outcomes))

"""Prometheus exposition-format scraper for the node metrics port."""

from __future__ import annotations

import logging
import math
import re
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

import requests

from nhc.core.models import FetchedData, MetricsData, NodeAddress, canonical_series_key, parse_label_block
from nhc.providers.http import BodyTooLargeError, get_text

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"

# name{labels} value [timestamp]
_SAMPLE_RE = re.compile(
    r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)"
    r"(?:\{(?P<labels>.*)\})?"
    r"\s+(?P<value>\S+)"
    r"(?:\s+(?P<ts>-?\d+))?\s*$"
)

_SPECIAL_VALUES = {"nan": math.nan, "+inf": math.inf, "inf": math.inf, "-inf": -math.inf}


@runtime_checkable
class MetricsProvider(Protocol):
    def fetch_metrics(self, address: NodeAddress, timeout_s: float) -> FetchedData: ...


class DefaultMetricsProvider:
    def fetch_metrics(self, address: NodeAddress, timeout_s: float) -> FetchedData:
        return fetch_metrics(address, timeout_s)


def get_metrics_provider() -> MetricsProvider:
    """Seam for swapping provider implementations later."""
    return DefaultMetricsProvider()


def _parse_value(raw: str) -> Optional[float]:
    special = _SPECIAL_VALUES.get(raw.lower())
    if special is not None:
        return special
    try:
        return float(raw)
    except ValueError:
        return None


def parse_sample_line(line: str) -> Optional[Tuple[str, float]]:
    """
    Parse one exposition-format sample line into (canonical_series_key, value).

    Returns None for malformed lines.
    """
    m = _SAMPLE_RE.match(line)
    if m is None:
        return None
    labels: Dict[str, str] = {}
    if m.group("labels") is not None:
        parsed = parse_label_block(m.group("labels"))
        if parsed is None:
            return None
        labels = parsed
    value = _parse_value(m.group("value"))
    if value is None:
        return None
    return canonical_series_key(m.group("name"), labels), value


def parse_exposition_text(text: str) -> MetricsData:
    """
    Parse Prometheus text exposition into a flat series -> value mapping.

    Malformed lines are skipped one by one (and counted) rather than failing the whole parse.
    When a series appears more than once, the last sample wins.
    """
    samples: Dict[str, float] = {}
    skipped = 0
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        parsed = parse_sample_line(line)
        if parsed is None:
            skipped += 1
            continue
        key, value = parsed
        samples[key] = value
    return MetricsData(samples=samples, skipped_lines=skipped)


def fetch_metrics(address: NodeAddress, timeout_s: float) -> FetchedData:
    """
    Scrape the metrics endpoint of the node.

    Never raises: every failure is returned as a typed `FetchedData` failure.
    """
    url = f"{address.metrics_base()}{METRICS_PATH}"
    try:
        body = get_text(url, timeout_s, headers={"Accept": "text/plain"})
    except requests.exceptions.Timeout:
        logger.info("Metrics scrape timed out: %s", url)
        return FetchedData.failed("metrics", "timeout", f"no complete response from {url} within {timeout_s:g}s")
    except requests.exceptions.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        logger.info("Metrics scrape HTTP error: %s (%s)", url, status)
        return FetchedData.failed("metrics", "http_error", f"{url} returned HTTP {status}")
    except BodyTooLargeError as e:
        return FetchedData.failed("metrics", "parse_error", str(e))
    except requests.exceptions.RequestException as e:
        logger.info("Metrics scrape connection error: %s (%s)", url, e)
        return FetchedData.failed("metrics", "connection_error", f"could not connect to {url}: {e}")
    except Exception as e:
        logger.warning("Metrics scrape unexpected error: %s", url, exc_info=True)
        return FetchedData.failed("metrics", "unexpected_error", f"{url}: {e}")

    data = parse_exposition_text(body)
    if not data.samples and data.skipped_lines:
        return FetchedData.failed(
            "metrics",
            "parse_error",
            f"{url} returned no parseable samples ({data.skipped_lines} malformed lines)",
        )
    if data.skipped_lines:
        logger.debug("Metrics scrape %s: skipped %d malformed lines", url, data.skipped_lines)
    return FetchedData.success("metrics", data)

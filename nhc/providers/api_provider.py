"""Node REST API client (ledger info: chain id, ledger version/timestamp, role, build)."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import requests

from nhc.core.models import ApiData, FetchedData, NodeAddress
from nhc.providers.http import BodyTooLargeError, get_text

logger = logging.getLogger(__name__)

# Ledger info lives at the API root of the versioned REST surface.
LEDGER_INFO_PATH = "/v1"


@runtime_checkable
class ApiProvider(Protocol):
    def fetch_api_data(self, address: NodeAddress, timeout_s: float) -> FetchedData: ...


class DefaultApiProvider:
    def fetch_api_data(self, address: NodeAddress, timeout_s: float) -> FetchedData:
        return fetch_api_data(address, timeout_s)


def get_api_provider() -> ApiProvider:
    """Seam for swapping provider implementations later (e.g. a client with auth headers)."""
    return DefaultApiProvider()


def _as_int(raw: Any, field: str) -> int:
    # u64 values are serialized as JSON strings so they survive JS number precision.
    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"{field} is missing")
    try:
        return int(str(raw).strip())
    except ValueError as e:
        raise ValueError(f"{field} is not an integer: {raw!r}") from e


def _as_opt_int(raw: Any, field: str) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return _as_int(raw, field)


def _as_opt_str(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def parse_ledger_info(data: Dict[str, Any]) -> ApiData:
    """
    Parse the ledger info document returned by the node API.

    Raises ValueError if required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise ValueError("ledger info is not a JSON object")
    chain_id = _as_opt_str(data.get("chain_id"))
    if chain_id is None:
        raise ValueError("chain_id is missing")
    return ApiData(
        chain_id=chain_id,
        ledger_version=_as_int(data.get("ledger_version"), "ledger_version"),
        ledger_timestamp_usecs=_as_int(data.get("ledger_timestamp"), "ledger_timestamp"),
        epoch=_as_opt_int(data.get("epoch"), "epoch"),
        block_height=_as_opt_int(data.get("block_height"), "block_height"),
        node_role=_as_opt_str(data.get("node_role")),
        build_version=_as_opt_str(data.get("build_version") or data.get("git_hash")),
    )


def fetch_api_data(address: NodeAddress, timeout_s: float) -> FetchedData:
    """
    Fetch ledger info from the node REST API.

    Never raises: every failure is returned as a typed `FetchedData` failure.
    """
    url = f"{address.api_base()}{LEDGER_INFO_PATH}"
    try:
        body = get_text(url, timeout_s, headers={"Accept": "application/json"})
    except requests.exceptions.Timeout:
        logger.info("API fetch timed out: %s", url)
        return FetchedData.failed("api", "timeout", f"no complete response from {url} within {timeout_s:g}s")
    except requests.exceptions.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        logger.info("API fetch HTTP error: %s (%s)", url, status)
        return FetchedData.failed("api", "http_error", f"{url} returned HTTP {status}")
    except BodyTooLargeError as e:
        return FetchedData.failed("api", "parse_error", str(e))
    except requests.exceptions.RequestException as e:
        logger.info("API fetch connection error: %s (%s)", url, e)
        return FetchedData.failed("api", "connection_error", f"could not connect to {url}: {e}")
    except Exception as e:
        logger.warning("API fetch unexpected error: %s", url, exc_info=True)
        return FetchedData.failed("api", "unexpected_error", f"{url}: {e}")

    try:
        payload = json.loads(body)
    except ValueError:
        return FetchedData.failed("api", "parse_error", f"{url} did not return JSON")
    try:
        api = parse_ledger_info(payload)
    except ValueError as e:
        return FetchedData.failed("api", "parse_error", f"{url} returned unexpected ledger info: {e}")
    return FetchedData.success("api", api)

"""Blocking HTTP GET with a deadline on the whole transfer.

`requests` timeouts bound each socket operation, not the request: a node that trickles its body a
few bytes at a time never trips them. Here the body is streamed with `read1` (one socket read per
call) and a monotonic deadline is checked between reads, with the socket timeout shrunk to whatever
budget is left.
"""

from __future__ import annotations

import time
from typing import Dict, Optional

import requests
from urllib3.exceptions import ProtocolError, ReadTimeoutError

READ_CHUNK_BYTES = 64 * 1024
# Metrics dumps of busy nodes are a few MB; anything far beyond that is not a metrics page.
MAX_BODY_BYTES = 32 * 1024 * 1024


class BodyTooLargeError(requests.exceptions.RequestException):
    pass


def _shrink_read_timeout(resp: requests.Response, remaining_s: float) -> None:
    conn = getattr(resp.raw, "connection", None)
    sock = getattr(conn, "sock", None)
    if sock is not None:
        sock.settimeout(max(0.01, remaining_s))


def get_text(url: str, timeout_s: float, *, headers: Optional[Dict[str, str]] = None) -> str:
    """
    GET `url` and return the decoded body, all within `timeout_s` seconds.

    Raises `requests.exceptions.Timeout` when the deadline passes (connect, headers or body),
    `HTTPError` on non-2xx, `ConnectionError` on transport failures.
    """
    deadline = time.monotonic() + timeout_s
    resp = requests.get(url, timeout=(timeout_s, timeout_s), headers=headers, stream=True)
    try:
        resp.raise_for_status()
        chunks = []
        size = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise requests.exceptions.ReadTimeout(f"{url} did not finish sending within {timeout_s:g}s")
            _shrink_read_timeout(resp, remaining)
            try:
                chunk = resp.raw.read1(READ_CHUNK_BYTES, decode_content=True)
            except ReadTimeoutError as e:
                raise requests.exceptions.ReadTimeout(f"{url} stalled while sending the body") from e
            except ProtocolError as e:
                raise requests.exceptions.ConnectionError(f"{url} dropped the connection: {e}") from e
            if not chunk:
                break
            chunks.append(chunk)
            size += len(chunk)
            if size > MAX_BODY_BYTES:
                raise BodyTooLargeError(f"{url} sent more than {MAX_BODY_BYTES} bytes")
        return b"".join(chunks).decode(resp.encoding or "utf-8", errors="replace")
    finally:
        resp.close()

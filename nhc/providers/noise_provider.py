"""Liveness check for the peer-to-peer (noise) port.

We never join the network. After connecting we send a short initiator message that no noise
responder can accept. A responder either keeps waiting for the rest of a handshake or drops the
connection, and in neither case does it answer. Anything else that listens on the port and replies
(an HTTP server is the usual suspect) is not speaking noise:

- connection refused / unreachable                -> connection_error
- peer stays silent, or hangs up without a reply -> live (success)
- peer answers the invalid message               -> protocol_error (not a noise responder)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

from nhc.core.models import FetchedData, HandshakeData, NodeAddress

logger = logging.getLogger(__name__)

# Upper bound for each of the write and read windows after connect (seconds).
MAX_READ_WINDOW_S = 1.0

# Zero bytes where the ephemeral key belongs, then CRLFs so line-based servers (HTTP) answer.
INVALID_INITIATOR_MESSAGE = b"\x00" * 32 + b"\r\n\r\n"


@runtime_checkable
class HandshakeProvider(Protocol):
    async def probe_noise_port(self, address: NodeAddress, timeout_s: float) -> FetchedData: ...


class DefaultHandshakeProvider:
    async def probe_noise_port(self, address: NodeAddress, timeout_s: float) -> FetchedData:
        return await probe_noise_port(address, timeout_s)


def get_handshake_provider() -> HandshakeProvider:
    """Seam for swapping provider implementations later (e.g. a full noise IK initiator)."""
    return DefaultHandshakeProvider()


def read_window_for(timeout_s: float) -> float:
    return max(0.01, min(MAX_READ_WINDOW_S, timeout_s / 4.0))


async def _close(writer: Optional[asyncio.StreamWriter]) -> None:
    if writer is None:
        return
    try:
        writer.close()
        await writer.wait_closed()
    except (ConnectionError, OSError):
        # Peer already gone; nothing left to release.
        return


async def probe_noise_port(address: NodeAddress, timeout_s: float) -> FetchedData:
    """
    Open a TCP connection to the noise port and check that it behaves like a noise responder.

    Never raises (except for cancellation): failures come back as typed `FetchedData` failures.
    """
    host, port = address.host, address.noise_port
    peer = f"{host}:{port}"
    window = read_window_for(timeout_s)
    connect_budget = max(0.01, timeout_s - 2 * window)

    writer: Optional[asyncio.StreamWriter] = None
    try:
        try:
            reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=connect_budget)
        except asyncio.TimeoutError:
            logger.info("Noise port connect timed out: %s", peer)
            return FetchedData.failed("handshake", "timeout", f"connect to {peer} timed out after {timeout_s:g}s")
        except OSError as e:
            logger.info("Noise port connect failed: %s (%s)", peer, e)
            return FetchedData.failed("handshake", "connection_error", f"could not connect to {peer}: {e}")

        try:
            writer.write(INVALID_INITIATOR_MESSAGE)
            await asyncio.wait_for(writer.drain(), timeout=window)
            data = await asyncio.wait_for(reader.read(64), timeout=window)
        except asyncio.TimeoutError:
            return FetchedData.success(
                "handshake",
                HandshakeData(peer=peer, detail="noise port accepted the connection and awaits a valid handshake"),
            )
        except (ConnectionError, OSError):
            data = b""

        if not data:
            return FetchedData.success(
                "handshake",
                HandshakeData(peer=peer, detail="noise port rejected an invalid handshake without replying"),
            )
        if data.startswith(b"HTTP/"):
            return FetchedData.failed(
                "handshake",
                "protocol_error",
                f"{peer} answered like an HTTP server; the noise port may point at the API or metrics port",
            )
        return FetchedData.failed(
            "handshake", "protocol_error", f"{peer} replied to an invalid handshake; not a noise responder"
        )
    except Exception as e:
        logger.warning("Noise port check unexpected error: %s", peer, exc_info=True)
        return FetchedData.failed("handshake", "unexpected_error", f"{peer}: {e}")
    finally:
        await _close(writer)

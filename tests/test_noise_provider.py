from __future__ import annotations

import asyncio
import socket

import pytest


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _serve(handler):
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


def _address(port: int):
    from nhc.core.models import NodeAddress

    return NodeAddress(url="http://127.0.0.1", noise_port=port)


def test_read_window_is_bounded() -> None:
    from nhc.providers.noise_provider import MAX_READ_WINDOW_S, read_window_for

    assert read_window_for(0.2) == pytest.approx(0.05)
    assert read_window_for(60.0) == MAX_READ_WINDOW_S
    assert read_window_for(0.0) == 0.01


@pytest.mark.asyncio
async def test_silent_listener_is_live() -> None:
    from nhc.providers.noise_provider import probe_noise_port

    release = asyncio.Event()

    async def silent(reader, writer):
        await release.wait()
        writer.close()

    server, port = await _serve(silent)
    try:
        out = await probe_noise_port(_address(port), 0.4)
    finally:
        release.set()
        server.close()
        await server.wait_closed()

    assert out.ok
    assert out.handshake.peer == f"127.0.0.1:{port}"


@pytest.mark.asyncio
async def test_silent_listener_receives_the_invalid_initiator_message() -> None:
    from nhc.providers.noise_provider import INVALID_INITIATOR_MESSAGE, probe_noise_port

    received = []

    async def recorder(reader, writer):
        received.append(await reader.read(len(INVALID_INITIATOR_MESSAGE)))
        await asyncio.sleep(1.0)
        writer.close()

    server, port = await _serve(recorder)
    try:
        out = await probe_noise_port(_address(port), 0.4)
    finally:
        server.close()
        await server.wait_closed()

    assert out.ok
    assert received == [INVALID_INITIATOR_MESSAGE]


@pytest.mark.asyncio
async def test_peer_that_drops_the_invalid_handshake_is_live() -> None:
    from nhc.providers.noise_provider import probe_noise_port

    async def reject(reader, writer):
        await reader.read(8)
        writer.close()

    server, port = await _serve(reject)
    try:
        out = await probe_noise_port(_address(port), 1.0)
    finally:
        server.close()
        await server.wait_closed()

    assert out.ok
    assert "without replying" in out.handshake.detail


@pytest.mark.asyncio
async def test_http_server_on_the_noise_port_is_a_protocol_error() -> None:
    from nhc.providers.noise_provider import probe_noise_port

    async def http_like(reader, writer):
        await reader.readline()
        writer.write(b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\n\r\n")
        await writer.drain()
        writer.close()

    server, port = await _serve(http_like)
    try:
        out = await probe_noise_port(_address(port), 2.0)
    finally:
        server.close()
        await server.wait_closed()

    assert not out.ok
    assert out.failure.kind == "protocol_error"
    assert "HTTP server" in out.failure.cause


@pytest.mark.asyncio
async def test_peer_that_talks_first_is_a_protocol_error() -> None:
    from nhc.providers.noise_provider import probe_noise_port

    release = asyncio.Event()

    async def chatty(reader, writer):
        writer.write(b"SSH-2.0-OpenSSH_9.6\r\n")
        await writer.drain()
        await release.wait()
        writer.close()

    server, port = await _serve(chatty)
    try:
        out = await probe_noise_port(_address(port), 1.0)
    finally:
        release.set()
        server.close()
        await server.wait_closed()

    assert out.failure is not None
    assert out.failure.kind == "protocol_error"
    assert "not a noise responder" in out.failure.cause


@pytest.mark.asyncio
async def test_closed_port_is_a_connection_error() -> None:
    from nhc.providers.noise_provider import probe_noise_port

    out = await probe_noise_port(_address(_free_port()), 1.0)
    assert out.failure is not None
    assert out.failure.kind == "connection_error"

from __future__ import annotations

import asyncio
import math
import time

import requests

from factories import FakeHttpResponse, TricklingHttpServer

SCRAPE = """
# HELP aptos_state_sync_version Sync versions
# TYPE aptos_state_sync_version gauge
aptos_state_sync_version{type="synced"} 1234
aptos_state_sync_version{type="committed"} 1230 1700000000000
aptos_connections{network_id="Public",direction="inbound",role_type="full_node"} 3
aptos_storage_ledger_version 1234
process_cpu_seconds_total 1.5e2
weird_gauge NaN
upper_bound +Inf
this line is garbage
broken_labels{type=synced} 1
no_value_metric
bad_value_metric abc
"""


def test_parse_exposition_text_skips_malformed_lines_individually() -> None:
    from nhc.providers.metrics_provider import parse_exposition_text

    data = parse_exposition_text(SCRAPE)
    assert data.skipped_lines == 4
    assert data.samples['aptos_state_sync_version{type="synced"}'] == 1234.0
    assert data.samples['aptos_state_sync_version{type="committed"}'] == 1230.0
    # Labels are canonicalized (sorted) regardless of exposition order.
    assert data.samples['aptos_connections{direction="inbound",network_id="Public",role_type="full_node"}'] == 3.0
    assert data.samples["aptos_storage_ledger_version"] == 1234.0
    assert data.samples["process_cpu_seconds_total"] == 150.0
    assert math.isnan(data.samples["weird_gauge"])
    assert data.samples["upper_bound"] == math.inf
    assert "aptos_state_sync_version" in data.metric_names


def test_parse_sample_line_handles_escaped_quotes_in_labels() -> None:
    from nhc.providers.metrics_provider import parse_sample_line

    parsed = parse_sample_line(r'build_info{version="v1 \"beta\"",commit="abc"} 1')
    assert parsed is not None
    key, value = parsed
    assert key == r'build_info{commit="abc",version="v1 \"beta\""}'
    assert value == 1.0


def test_fetch_metrics_success_hits_metrics_port(monkeypatch, node_address) -> None:
    from nhc.providers.metrics_provider import fetch_metrics

    seen = {}

    def fake_get(url, *args, **kwargs):
        seen["url"] = url
        seen["timeout"] = kwargs.get("timeout")
        seen["stream"] = kwargs.get("stream")
        return FakeHttpResponse(SCRAPE)

    monkeypatch.setattr(requests, "get", fake_get)
    out = fetch_metrics(node_address, 3.0)
    assert out.ok
    assert seen == {"url": "http://node.example:9101/metrics", "timeout": (3.0, 3.0), "stream": True}
    assert out.metrics.has("aptos_connections")


def test_fetch_metrics_classifies_failures(monkeypatch, node_address) -> None:
    from nhc.providers.metrics_provider import fetch_metrics

    def timeout_get(url, *args, **kwargs):
        raise requests.exceptions.ReadTimeout("slow")

    monkeypatch.setattr(requests, "get", timeout_get)
    assert fetch_metrics(node_address, 1.0).failure.kind == "timeout"

    def refused_get(url, *args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", refused_get)
    assert fetch_metrics(node_address, 1.0).failure.kind == "connection_error"

    monkeypatch.setattr(requests, "get", lambda url, *a, **k: FakeHttpResponse("", status=503))
    out = fetch_metrics(node_address, 1.0)
    assert out.failure.kind == "http_error"
    assert "503" in out.failure.cause

    monkeypatch.setattr(requests, "get", lambda url, *a, **k: FakeHttpResponse("<html>not metrics</html>\n"))
    assert fetch_metrics(node_address, 1.0).failure.kind == "parse_error"


def test_fetch_metrics_empty_body_is_an_empty_success(monkeypatch, node_address) -> None:
    from nhc.providers.metrics_provider import fetch_metrics

    monkeypatch.setattr(requests, "get", lambda url, *a, **k: FakeHttpResponse("# only comments\n"))
    out = fetch_metrics(node_address, 1.0)
    assert out.ok
    assert out.metrics.samples == {}


def test_fetch_metrics_closes_the_response(monkeypatch, node_address) -> None:
    from nhc.providers.metrics_provider import fetch_metrics

    resp = FakeHttpResponse(SCRAPE)
    monkeypatch.setattr(requests, "get", lambda url, *a, **k: resp)
    fetch_metrics(node_address, 1.0)
    assert resp.closed


def _loopback(port: int):
    from nhc.core.models import NodeAddress

    return NodeAddress(url="http://127.0.0.1", metrics_port=port, api_port=port)


def test_trickled_body_is_cut_off_at_the_timeout() -> None:
    from nhc.providers.metrics_provider import fetch_metrics

    with TricklingHttpServer(content_length=1000, chunk=b"up 1", interval_s=0.1) as server:
        start = time.monotonic()
        out = fetch_metrics(_loopback(server.port), 0.5)
        elapsed = time.monotonic() - start

    assert out.failure is not None
    assert out.failure.kind == "timeout"
    assert elapsed < 1.5


def test_silent_body_is_cut_off_at_the_timeout() -> None:
    from nhc.providers.api_provider import fetch_api_data

    with TricklingHttpServer(content_length=100, chunk=b"", interval_s=0.05) as server:
        start = time.monotonic()
        out = fetch_api_data(_loopback(server.port), 0.5)
        elapsed = time.monotonic() - start

    assert out.failure is not None
    assert out.failure.kind == "timeout"
    assert elapsed < 1.5


def test_timed_out_fetch_does_not_outlive_the_event_loop() -> None:
    from nhc.pipeline.fetch import default_fetchers, fetch_one

    with TricklingHttpServer(content_length=1000, chunk=b"up 1", interval_s=0.1) as server:
        start = time.monotonic()
        # asyncio.run waits for the worker thread, so this measures the real end of the fetch.
        out = asyncio.run(fetch_one("metrics", default_fetchers(), _loopback(server.port), 0.5))
        elapsed = time.monotonic() - start

    assert out.failure is not None
    assert out.failure.kind == "timeout"
    assert elapsed < 2.0

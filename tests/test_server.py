from __future__ import annotations

from fastapi.testclient import TestClient

from factories import NOW_USECS, FakeApiProvider, FakeHandshakeProvider, FakeMetricsProvider, make_baseline, ok_api


def _client(*, api=None, preconfigured=None) -> TestClient:
    from nhc.api.server import create_app
    from nhc.baselines.registry import BaselineRegistry
    from nhc.pipeline.fetch import Fetchers
    from nhc.pipeline.orchestrator import EvaluationOrchestrator

    baselines = BaselineRegistry()
    for cfg in (make_baseline(), make_baseline("testnet_fullnode", chain_id="2")):
        baselines.register(cfg.configuration_name, cfg)
    baselines.seal()
    orch = EvaluationOrchestrator(
        baselines,
        fetchers=Fetchers(
            api=api or FakeApiProvider(),
            metrics=FakeMetricsProvider(),
            handshake=FakeHandshakeProvider(),
        ),
        clock=lambda: NOW_USECS,
    )
    return TestClient(create_app(orch, preconfigured_node=preconfigured))


def test_healthz() -> None:
    r = _client().get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_configurations_lists_loaded_baselines() -> None:
    body = _client().get("/configurations").json()
    assert [c["configuration_name"] for c in body] == ["devnet_fullnode", "testnet_fullnode"]
    assert body[1]["chain_id"] == "2"


def test_check_node_returns_summary() -> None:
    api = FakeApiProvider()
    r = _client(api=api).get(
        "/check_node",
        params={"node_url": "node.example", "baseline_configuration_name": "devnet_fullnode", "api_port": 8081},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["summary_score"] == 100
    assert len(body["evaluation_results"]) == 5
    assert set(body["evaluation_results"][0]) == {"headline", "score", "explanation", "source", "links"}
    assert api.calls[0].url == "http://node.example"
    assert api.calls[0].api_port == 8081


def test_check_node_degraded_fetch_is_still_200() -> None:
    from nhc.core.models import FetchedData

    down = FakeApiProvider(FetchedData.failed("api", "timeout", "slow"))
    r = _client(api=down).get(
        "/check_node", params={"node_url": "http://node.example", "baseline_configuration_name": "devnet_fullnode"}
    )
    assert r.status_code == 200
    assert r.json()["summary_score"] < 100


def test_check_node_error_mapping() -> None:
    client = _client(api=FakeApiProvider(ok_api(chain_id="mainnet")))

    missing = client.get("/check_node")
    assert missing.status_code == 400
    assert missing.json()["code"] == "invalid_node_address"

    bad_url = client.get("/check_node", params={"node_url": "ftp://node.example"})
    assert bad_url.status_code == 400

    unknown = client.get("/check_node", params={"node_url": "node.example", "baseline_configuration_name": "nope"})
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "baseline_not_found"

    unmatched = client.get("/check_node", params={"node_url": "node.example"})
    assert unmatched.status_code == 422
    assert unmatched.json()["code"] == "no_baseline_matched"

    out_of_range = client.get("/check_node", params={"node_url": "node.example", "noise_port": 0})
    assert out_of_range.status_code == 400
    assert out_of_range.json()["code"] == "invalid_node_address"
    assert set(out_of_range.json()) == {"code", "message"}

    not_a_number = client.get("/check_node", params={"node_url": "node.example", "metrics_port": "abc"})
    assert not_a_number.status_code == 400
    assert not_a_number.json()["code"] == "invalid_node_address"
    assert "metrics_port" in not_a_number.json()["message"]


def test_check_preconfigured_node() -> None:
    from nhc.core.models import NodeAddress

    without = _client().get("/check_preconfigured_node")
    assert without.status_code == 400
    assert without.json()["code"] == "configuration_error"

    api = FakeApiProvider()
    client = _client(api=api, preconfigured=NodeAddress(url="http://preconfigured.example", metrics_port=9102))
    r = client.get("/check_preconfigured_node", params={"baseline_configuration_name": "devnet_fullnode"})
    assert r.status_code == 200
    assert api.calls[0].host == "preconfigured.example"

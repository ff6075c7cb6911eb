from __future__ import annotations

import pytest

from factories import make_baseline, ok_api


def _registry(*configs):
    from nhc.baselines.registry import BaselineRegistry

    reg = BaselineRegistry()
    for cfg in configs:
        reg.register(cfg.configuration_name, cfg)
    reg.seal()
    return reg


def test_lookup_returns_registered_configuration() -> None:
    cfg = make_baseline("devnet_fullnode")
    reg = _registry(cfg)
    assert reg.lookup("devnet_fullnode") is cfg
    assert reg.names() == ["devnet_fullnode"]


def test_lookup_unknown_name_lists_known_names() -> None:
    from nhc.core.errors import BaselineNotFoundError

    reg = _registry(make_baseline("devnet_fullnode"), make_baseline("testnet_fullnode", chain_id="2"))
    with pytest.raises(BaselineNotFoundError) as ei:
        reg.lookup("mainnet_fullnode")
    assert ei.value.status == 404
    assert "devnet_fullnode, testnet_fullnode" in ei.value.message


def test_register_rejects_unknown_evaluators_and_name_mismatch() -> None:
    from nhc.baselines.registry import BaselineRegistry
    from nhc.core.errors import ConfigurationError

    reg = BaselineRegistry()
    with pytest.raises(ConfigurationError, match="unknown evaluators: latency"):
        reg.register("x", make_baseline("x", evaluators=["state_sync", "latency"]))
    with pytest.raises(ConfigurationError, match="configuration_name"):
        reg.register("y", make_baseline("x"))


def test_sealed_registry_rejects_runtime_registration() -> None:
    from nhc.core.errors import ConfigurationError

    reg = _registry(make_baseline("devnet_fullnode"))
    assert reg.sealed
    with pytest.raises(ConfigurationError, match="sealed"):
        reg.register("other", make_baseline("other"))


def test_infer_matches_chain_id() -> None:
    reg = _registry(make_baseline("devnet_fullnode"), make_baseline("testnet_fullnode", chain_id="2"))
    assert reg.infer(ok_api(chain_id="2")).configuration_name == "testnet_fullnode"


def test_infer_uses_role_to_disambiguate() -> None:
    reg = _registry(
        make_baseline("testnet_fullnode", chain_id="2", role_type="full_node"),
        make_baseline("testnet_validator", chain_id="2", role_type="validator"),
    )
    assert reg.infer(ok_api(chain_id="2", node_role="validator")).configuration_name == "testnet_validator"


def test_infer_ambiguous_match_is_an_error_not_a_tie_break() -> None:
    from nhc.core.errors import AmbiguousBaselineError

    reg = _registry(
        make_baseline("testnet_fullnode", chain_id="2", role_type="full_node"),
        make_baseline("testnet_validator", chain_id="2", role_type="validator"),
    )
    with pytest.raises(AmbiguousBaselineError) as ei:
        reg.infer(ok_api(chain_id="2", node_role=None))
    assert ei.value.candidates == ["testnet_fullnode", "testnet_validator"]
    assert ei.value.status == 409


def test_infer_without_match_fails() -> None:
    from nhc.core.errors import NoBaselineMatchedError

    reg = _registry(make_baseline("devnet_fullnode"))
    with pytest.raises(NoBaselineMatchedError):
        reg.infer(ok_api(chain_id="1"))


def test_infer_ignores_baselines_without_chain_id() -> None:
    from nhc.core.errors import NoBaselineMatchedError

    reg = _registry(make_baseline("anything", chain_id=None))
    with pytest.raises(NoBaselineMatchedError):
        reg.infer(ok_api(chain_id="devnet"))


def test_infer_without_api_data_reports_the_fetch_failure() -> None:
    from nhc.core.errors import InsufficientDataForInferenceError
    from nhc.core.models import FetchedData

    reg = _registry(make_baseline("devnet_fullnode"))
    with pytest.raises(InsufficientDataForInferenceError) as ei:
        reg.infer(FetchedData.failed("api", "connection_error", "refused"))
    assert "connection error: refused" in ei.value.message
    assert ei.value.status == 424

    with pytest.raises(InsufficientDataForInferenceError):
        reg.infer(None)

from __future__ import annotations

from pathlib import Path

REPO_CONFIGS = str(Path(__file__).resolve().parents[1] / "configs")


def test_list_baselines_prints_loaded_names(capsys) -> None:
    import main

    assert main.list_baselines([REPO_CONFIGS]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert [ln.split("\t")[0] for ln in lines] == ["devnet_fullnode", "testnet_fullnode", "testnet_validator"]
    assert "chain_id=2" in lines[1]


def test_bad_baseline_path_is_a_config_error(tmp_path) -> None:
    import main

    assert main.list_baselines([str(tmp_path / "missing")]) == main.EXIT_CONFIG_ERROR
    code = main.check_node_once(
        "node.example",
        baseline=None,
        baseline_paths=[str(tmp_path / "missing")],
        api_port=8080,
        metrics_port=9101,
        noise_port=6180,
    )
    assert code == main.EXIT_CONFIG_ERROR


def test_invalid_node_url_is_a_request_error() -> None:
    import main

    code = main.check_node_once(
        "ftp://node.example",
        baseline="devnet_fullnode",
        baseline_paths=[REPO_CONFIGS],
        api_port=8080,
        metrics_port=9101,
        noise_port=6180,
    )
    assert code == main.EXIT_REQUEST_ERROR


def test_create_baseline_writes_a_loadable_document(tmp_path) -> None:
    import main
    from nhc.baselines.loader import load_baseline_file

    out = tmp_path / "local.yaml"
    code = main.create_baseline(
        "local_testnet", chain_id="4", role_type="full_node", evaluators=["state_sync", "handshake"], output=str(out)
    )
    assert code == 0
    cfg = load_baseline_file(out)
    assert cfg.configuration_name == "local_testnet"
    assert cfg.chain_id == "4"
    assert cfg.evaluators == ["state_sync", "handshake"]


def test_create_baseline_prints_to_stdout_and_rejects_unknown_evaluators(capsys) -> None:
    import main

    assert main.create_baseline("local_testnet") == 0
    assert "configuration_name: local_testnet" in capsys.readouterr().out

    assert main.create_baseline("local_testnet", evaluators=["latency"]) == main.EXIT_CONFIG_ERROR

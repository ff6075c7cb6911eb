#!/usr/bin/env python3
"""
Node Health Checker - evaluate a network node against a baseline configuration.

Runs either as an HTTP service (--serve-api) or as a one-shot check printing the summary JSON.
"""

import argparse
import logging
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

logger = logging.getLogger("nhc")

#
# NOTE: Keep nhc imports lazy (inside functions) so `--help` stays fast.
#

EXIT_REQUEST_ERROR = 2
EXIT_CONFIG_ERROR = 3


def check_node_once(
    node_url: str,
    *,
    baseline: Optional[str],
    baseline_paths: List[str],
    api_port: int,
    metrics_port: int,
    noise_port: int,
) -> int:
    """Evaluate one node and print the summary JSON to stdout. Returns the process exit code."""
    import asyncio

    from nhc.api.config import build_node_address
    from nhc.baselines.loader import load_baseline_registry
    from nhc.core.errors import ConfigurationError, NodeCheckerError
    from nhc.pipeline.orchestrator import EvaluationOrchestrator

    try:
        registry = load_baseline_registry(baseline_paths)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        return EXIT_CONFIG_ERROR

    try:
        address = build_node_address(node_url, api_port=api_port, metrics_port=metrics_port, noise_port=noise_port)
    except ValueError as e:
        logger.error("Invalid node URL %r: %s", node_url, e)
        return EXIT_REQUEST_ERROR

    orchestrator = EvaluationOrchestrator(registry)
    try:
        summary = asyncio.run(orchestrator.evaluate(address, baseline))
    except NodeCheckerError as e:
        logger.error("%s: %s", e.code, e.message)
        return EXIT_REQUEST_ERROR

    print(summary.model_dump_json(indent=2))
    return 0


def list_baselines(baseline_paths: List[str]) -> int:
    from nhc.baselines.loader import load_baseline_registry
    from nhc.core.errors import ConfigurationError

    try:
        registry = load_baseline_registry(baseline_paths)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        return EXIT_CONFIG_ERROR
    for cfg in registry.configurations():
        print(f"{cfg.configuration_name}\t{cfg.display_name}\tchain_id={cfg.chain_id or '-'}")
    return 0


def create_baseline(
    name: str,
    *,
    chain_id: Optional[str] = None,
    role_type: Optional[str] = None,
    pretty_name: Optional[str] = None,
    evaluators: Optional[List[str]] = None,
    output: Optional[str] = None,
) -> int:
    """Write a starter baseline YAML document to `output` (stdout when omitted)."""
    from pathlib import Path

    from nhc.baselines.loader import build_baseline, dump_baseline_document
    from nhc.core.errors import ConfigurationError

    try:
        cfg = build_baseline(
            name, chain_id=chain_id, role_type=role_type, pretty_name=pretty_name, evaluator_names=evaluators
        )
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        return EXIT_CONFIG_ERROR

    text = dump_baseline_document(cfg)
    if not output:
        sys.stdout.write(text)
        return 0
    try:
        Path(output).write_text(text, encoding="utf-8")
    except OSError as e:
        logger.error("Cannot write baseline configuration to %s: %s", output, e)
        return EXIT_CONFIG_ERROR
    logger.info("Wrote baseline configuration %s to %s", name, output)
    return 0


def main() -> None:
    from nhc.core.models import DEFAULT_API_PORT, DEFAULT_METRICS_PORT, DEFAULT_NOISE_PORT

    parser = argparse.ArgumentParser(
        description="Evaluate the health of a network node against a baseline configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the HTTP service
  python main.py --serve-api --port 20121

  # One-shot check with an explicit baseline
  python main.py --check-node http://fullnode.mysite.com --baseline devnet_fullnode

  # Let the checker infer the baseline from the node's chain id
  python main.py --check-node 44.238.19.217

  # List loaded baselines
  python main.py --list-baselines --baseline-configs configs/

  # Write a starter baseline for a new network
  python main.py --create-baseline mainnet_fullnode --chain-id 1 --role-type full_node --output configs/mainnet_fullnode.yaml
        """,
    )

    parser.add_argument("--serve-api", action="store_true", help="Run the HTTP service")
    parser.add_argument("--host", help="Listen host for --serve-api (default: NHC_LISTEN_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port for --serve-api (default: NHC_LISTEN_PORT or 20121)")
    parser.add_argument("--check-node", metavar="URL", help="Evaluate one node and print the summary JSON")
    parser.add_argument("--baseline", help="Baseline configuration name (default: infer from chain id)")
    parser.add_argument("--api-port", type=int, default=DEFAULT_API_PORT)
    parser.add_argument("--metrics-port", type=int, default=DEFAULT_METRICS_PORT)
    parser.add_argument("--noise-port", type=int, default=DEFAULT_NOISE_PORT)
    parser.add_argument("--list-baselines", action="store_true", help="List loaded baseline configurations")
    parser.add_argument(
        "--baseline-configs",
        nargs="+",
        metavar="PATH",
        help="Baseline YAML files or directories (default: NHC_BASELINE_CONFIGS or ./configs)",
    )
    parser.add_argument("--create-baseline", metavar="NAME", help="Write a starter baseline configuration YAML")
    parser.add_argument("--chain-id", help="Chain id for --create-baseline")
    parser.add_argument("--role-type", help="Node role for --create-baseline (e.g. full_node, validator)")
    parser.add_argument("--pretty-name", help="Display name for --create-baseline")
    parser.add_argument(
        "--evaluators", nargs="+", metavar="NAME", help="Evaluators for --create-baseline (default: all)"
    )
    parser.add_argument("--output", metavar="PATH", help="Where --create-baseline writes (default: stdout)")

    args = parser.parse_args()

    if args.create_baseline:
        sys.exit(
            create_baseline(
                args.create_baseline,
                chain_id=args.chain_id,
                role_type=args.role_type,
                pretty_name=args.pretty_name,
                evaluators=args.evaluators,
                output=args.output,
            )
        )

    from dataclasses import replace

    from nhc.api.config import load_service_config
    from nhc.core.errors import ConfigurationError

    try:
        cfg = load_service_config()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e.message)
        sys.exit(EXIT_CONFIG_ERROR)
    if args.baseline_configs:
        cfg = replace(cfg, baseline_config_paths=list(args.baseline_configs))
    if args.host:
        cfg = replace(cfg, listen_host=args.host)
    if args.port:
        cfg = replace(cfg, listen_port=args.port)

    if args.serve_api:
        from nhc.api.server import run as run_server

        try:
            run_server(cfg)
        except ConfigurationError as e:
            logger.error("Configuration error: %s", e.message)
            sys.exit(EXIT_CONFIG_ERROR)
        return

    if args.list_baselines:
        sys.exit(list_baselines(cfg.baseline_config_paths))

    if args.check_node:
        sys.exit(
            check_node_once(
                args.check_node,
                baseline=args.baseline,
                baseline_paths=cfg.baseline_config_paths,
                api_port=args.api_port,
                metrics_port=args.metrics_port,
                noise_port=args.noise_port,
            )
        )

    parser.print_help()


if __name__ == "__main__":
    main()

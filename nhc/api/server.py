"""
Node health checker HTTP service.

Thin adapter over `EvaluationOrchestrator`: parses query parameters into a NodeAddress, runs one
evaluation per request and returns the EvaluationSummary JSON. Baselines are loaded once at startup.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nhc.api.config import ServiceConfig, build_node_address
from nhc.baselines.loader import load_baseline_registry
from nhc.baselines.registry import BaselineRegistry
from nhc.core.errors import ConfigurationError, InvalidNodeAddressError, NodeCheckerError
from nhc.core.models import DEFAULT_API_PORT, DEFAULT_METRICS_PORT, DEFAULT_NOISE_PORT, NodeAddress
from nhc.pipeline.orchestrator import EvaluationOrchestrator

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: EvaluationOrchestrator,
    *,
    preconfigured_node: Optional[NodeAddress] = None,
) -> FastAPI:
    app = FastAPI(title="Node Health Checker")
    baselines: BaselineRegistry = orchestrator.baselines

    @app.exception_handler(NodeCheckerError)
    async def _node_checker_error(_request: Request, exc: NodeCheckerError) -> JSONResponse:
        return JSONResponse(status_code=exc.status, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _query_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed query parameters are bad node addresses, reported like every other error.
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "query")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        error = InvalidNodeAddressError("Invalid query parameters: " + "; ".join(parts))
        return JSONResponse(status_code=error.status, content=error.to_payload())

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming HTTP requests."""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/configurations")
    def configurations() -> List[Dict[str, Any]]:
        """Baseline configurations this instance can evaluate against."""
        return [
            {
                "configuration_name": c.configuration_name,
                "configuration_name_pretty": c.display_name,
                "chain_id": c.chain_id,
                "role_type": c.role_type,
                "evaluators": list(c.evaluators),
            }
            for c in baselines.configurations()
        ]

    @app.get("/check_node")
    async def check_node(
        node_url: Optional[str] = Query(None, description="URL of the node to check, e.g. http://fullnode.mysite.com"),
        baseline_configuration_name: Optional[str] = Query(None),
        metrics_port: int = Query(DEFAULT_METRICS_PORT),
        api_port: int = Query(DEFAULT_API_PORT),
        noise_port: int = Query(DEFAULT_NOISE_PORT),
    ) -> Dict[str, Any]:
        """
        Check the health of a target node. Without `baseline_configuration_name` the baseline is
        inferred from the chain id the node reports.
        """
        if not node_url:
            raise InvalidNodeAddressError("node_url is required")
        try:
            address = build_node_address(
                node_url, api_port=api_port, metrics_port=metrics_port, noise_port=noise_port
            )
        except ValueError as e:
            raise InvalidNodeAddressError(f"Invalid node_url {node_url!r}: {e}") from e
        summary = await orchestrator.evaluate(address, baseline_configuration_name or None)
        return summary.model_dump(mode="json")

    @app.get("/check_preconfigured_node")
    async def check_preconfigured_node(
        baseline_configuration_name: Optional[str] = Query(None),
    ) -> Dict[str, Any]:
        """Check the node this instance was started with (if any)."""
        if preconfigured_node is None:
            raise ConfigurationError("No preconfigured node was supplied when the node checker was started")
        summary = await orchestrator.evaluate(preconfigured_node, baseline_configuration_name or None)
        return summary.model_dump(mode="json")

    return app


def build_app(config: ServiceConfig) -> FastAPI:
    """
    Wire the service from configuration. Raises ConfigurationError (startup fails) on malformed
    baseline documents.
    """
    baselines = load_baseline_registry(config.baseline_config_paths)
    orchestrator = EvaluationOrchestrator(baselines, deadline_margin_s=config.deadline_margin_s)
    if config.preconfigured_node is not None:
        logger.info("Preconfigured node: %s", config.preconfigured_node.url)
    logger.info("Loaded %d baseline configurations: %s", len(baselines.names()), ", ".join(baselines.names()))
    return create_app(orchestrator, preconfigured_node=config.preconfigured_node)


def run(config: ServiceConfig) -> None:
    import uvicorn

    app = build_app(config)
    uvicorn.run(app, host=config.listen_host, port=config.listen_port)

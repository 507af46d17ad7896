"""FastAPI app factory.

Endpoints are thin wrappers over `Orchestrator` operations.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cli_agent_orchestrator import __version__
from cli_agent_orchestrator.core.orchestrator import Orchestrator, Preferences
from cli_agent_orchestrator.errors import ConfigurationError, ExecutionError
from cli_agent_orchestrator.server.config import ServerSettings
from cli_agent_orchestrator.server.models import (
    CapabilitiesRequest,
    OrchestrateRequest,
    OrchestrateResponse,
    ParallelRequest,
    WorkflowRunRequest,
)

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: Orchestrator | None = None,
    settings: ServerSettings | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    orch = orchestrator or Orchestrator()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        orch.start()
        try:
            yield
        finally:
            orch.stop()

    app = FastAPI(
        title="CLI Agent Orchestrator",
        version=__version__,
        description="REST API over the cli-agent-orchestrator operations.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.orchestrator = orch

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConfigurationError)
    async def configuration_error(_request: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ExecutionError)
    async def execution_error(_request: Request, exc: ExecutionError) -> JSONResponse:
        logger.error("Request failed", extra={"error": str(exc)})
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "monitoring_active": orch.monitor.monitoring_active,
        }

    @app.get("/api/health/agents")
    async def agent_health() -> dict[str, Any]:
        return await orch.check_health()

    @app.post("/api/orchestrate", response_model=OrchestrateResponse)
    async def orchestrate(req: OrchestrateRequest) -> dict[str, Any]:
        prefs = Preferences(
            workflow=req.workflow, agent=req.agent, role=req.role, timeout=req.timeout
        )
        return await orch.orchestrate(req.prompt, prefs)

    @app.get("/api/workflows")
    def list_workflows() -> list[dict[str, object]]:
        return orch.list_workflows()

    @app.post("/api/workflows/{name}/run")
    async def run_workflow(name: str, req: WorkflowRunRequest) -> dict[str, Any]:
        return await orch.orchestrate_workflow(name, req.input, req.context, req.overrides)

    @app.post("/api/parallel")
    async def parallel(req: ParallelRequest) -> dict[str, Any]:
        return await orch.orchestrate_parallel(
            req.prompt, req.agents, mode=req.mode, role=req.role, timeout=req.timeout
        )

    @app.get("/api/agents")
    def list_agents() -> list[dict[str, object]]:
        return orch.list_agents()

    @app.post("/api/capabilities")
    def capabilities(req: CapabilitiesRequest) -> list[dict[str, object]]:
        return orch.get_capabilities(req.task, req.requirements)

    @app.get("/api/processes")
    def process_stats() -> dict[str, Any]:
        return orch.get_process_stats()

    @app.get("/api/metrics")
    def metrics() -> dict[str, Any]:
        return orch.get_metrics()

    return app

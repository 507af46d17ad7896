"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from cli_agent_orchestrator.agents.descriptor import Requirements
from cli_agent_orchestrator.dispatch.base import DispatchMode
from cli_agent_orchestrator.orchestrator.workflow.models import WorkflowOverrides


class OrchestrateRequest(BaseModel):
    prompt: str = Field(min_length=1)
    workflow: str | None = None
    agent: str | None = None
    role: str | None = None
    timeout: float | None = Field(default=None, gt=0)


class OrchestrateResponse(BaseModel):
    success: bool
    result: Any = None
    agent: str | list[str] | None = None
    workflow: str
    execution_id: str
    error: str | None = None


class WorkflowRunRequest(BaseModel):
    input: Any = None
    context: dict[str, Any] = Field(default_factory=dict)
    overrides: WorkflowOverrides | None = None


class ParallelRequest(BaseModel):
    prompt: str = Field(min_length=1)
    agents: list[str] = Field(min_length=1)
    mode: DispatchMode = "all"
    role: str | None = None
    timeout: float | None = Field(default=None, gt=0)


class CapabilitiesRequest(BaseModel):
    task: str = ""
    requirements: Requirements | None = None

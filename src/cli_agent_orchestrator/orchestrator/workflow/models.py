"""Workflow definitions and execution records."""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from cli_agent_orchestrator.agents.descriptor import Requirements
from cli_agent_orchestrator.dispatch.base import DispatchMode
from cli_agent_orchestrator.dispatch.retry import RetryPolicy
from cli_agent_orchestrator.errors import IllegalTransitionError

StepTarget = str | list[str] | None


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
    ExecutionStatus.RUNNING: {
        ExecutionStatus.COMPLETED,
        ExecutionStatus.FAILED,
        ExecutionStatus.ERROR,
    },
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
    ExecutionStatus.ERROR: set(),
}


class StepDefinition(BaseModel):
    """One step of a workflow.

    `condition`, `transform` and `validate` are keys into the function table
    (for example ``has:planning`` or ``min_length:20``), never inline code.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1)
    description: str = ""
    agent: StepTarget = Field(
        default=None,
        description='Agent name, list of names for parallel dispatch, "auto", or None',
    )
    role: str | None = None
    mode: DispatchMode = "all"

    condition: str | None = None
    transform: str | None = None
    validator: str | None = Field(default=None, alias="validate")

    retry: RetryPolicy | None = None
    on_success: str | None = None
    on_failure: str | None = None
    loop_to: str | None = None
    stop_on_error: bool = False

    timeout: float | None = Field(default=None, gt=0)
    output_key: str | None = None
    requirements: Requirements | None = None

    @model_validator(mode="after")
    def _check_agent(self) -> StepDefinition:
        if isinstance(self.agent, list) and not self.agent:
            raise ValueError(f"Step {self.name!r} has an empty agent list")
        return self

    @property
    def context_key(self) -> str:
        return self.output_key or self.name


class WorkflowSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=3, ge=1, description="Per-step cap on loops and branches")
    timeout: float | None = Field(default=None, gt=0, description="Overall deadline in seconds")
    max_steps: int = Field(default=100, ge=1, description="Cap on executed steps per run")


class WorkflowDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    title: str = ""
    description: str = ""
    steps: list[StepDefinition] = Field(min_length=1)
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)

    @model_validator(mode="after")
    def _unique_step_names(self) -> WorkflowDefinition:
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name {step.name!r} in workflow {self.name!r}")
            seen.add(step.name)
        return self

    def step_index(self, name: str) -> int | None:
        for i, step in enumerate(self.steps):
            if step.name == name:
                return i
        return None

    def summary(self) -> dict[str, object]:
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "steps": [s.name for s in self.steps],
        }


class WorkflowOverrides(BaseModel):
    """Per-run adjustments applied on top of a workflow definition."""

    agent: str | None = Field(default=None, description='Replaces every "auto" target')
    timeout: float | None = Field(default=None, gt=0, description="Default per-step timeout")
    max_iterations: int | None = Field(default=None, ge=1)


class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: StepStatus
    agent: StepTarget = None
    role: str | None = None
    duration: float = 0.0
    attempts: int = 1
    output: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StepStatus.SUCCESS


class Execution(BaseModel):
    """One run of a workflow: accumulating context plus step history."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    workflow: str
    input: Any = None
    context: dict[str, Any] = Field(default_factory=dict)
    steps: list[StepResult] = Field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.RUNNING

    started_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    ended_at: datetime | None = None
    duration: float | None = None
    error: str | None = None

    _clock_start: float = PrivateAttr(default_factory=time.monotonic)

    def record(self, result: StepResult) -> None:
        self.steps.append(result)

    def transition(self, to: ExecutionStatus, *, error: str | None = None) -> None:
        if to not in ALLOWED_TRANSITIONS[self.status]:
            raise IllegalTransitionError(
                f"Illegal transition: {self.status.value} -> {to.value}"
            )
        self.status = to
        if error is not None:
            self.error = error
        self.ended_at = datetime.now(tz=UTC)
        self.duration = round(time.monotonic() - self._clock_start, 6)

    @property
    def last_output(self) -> Any:
        for step in reversed(self.steps):
            if step.ok:
                return step.output
        return None

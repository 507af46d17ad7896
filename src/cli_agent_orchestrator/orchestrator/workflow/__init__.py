"""Workflow definitions and the engine that runs them.

Steps are plain data. Conditions, transforms and validators are referenced by
string key and resolved against a `FunctionTable`, so definitions can be
loaded from JSON and tested without code.
"""

from cli_agent_orchestrator.orchestrator.workflow.engine import WorkflowEngine
from cli_agent_orchestrator.orchestrator.workflow.functions import FunctionTable
from cli_agent_orchestrator.orchestrator.workflow.models import (
    Execution,
    ExecutionStatus,
    StepDefinition,
    StepResult,
    StepStatus,
    WorkflowDefinition,
    WorkflowOverrides,
    WorkflowSettings,
)

__all__ = [
    "Execution",
    "ExecutionStatus",
    "FunctionTable",
    "StepDefinition",
    "StepResult",
    "StepStatus",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowOverrides",
    "WorkflowSettings",
]

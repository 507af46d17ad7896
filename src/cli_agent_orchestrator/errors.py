"""Error taxonomy shared by the adapter, dispatcher and workflow engine.

Two families matter for control flow:
- `ConfigurationError`: a bad workflow, step, agent or function reference. These
  are reported immediately and never retried.
- `ExecutionError`: something went wrong while an agent was running. These are
  eligible for step-level and dispatcher-level retries.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""


class ConfigurationError(OrchestratorError):
    """A reference in configuration does not resolve."""


class WorkflowNotFound(ConfigurationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Workflow {name!r} not found")
        self.name = name


class StepNotFound(ConfigurationError):
    def __init__(self, workflow: str, step: str) -> None:
        super().__init__(f"Step {step!r} not found in workflow {workflow!r}")
        self.workflow = workflow
        self.step = step


class AgentNotFound(ConfigurationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Agent {name!r} not found")
        self.name = name


class AgentAlreadyRegistered(ConfigurationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Agent with name {name!r} is already registered")
        self.name = name


class UnknownFunctionError(ConfigurationError):
    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"Unknown {kind} {key!r}")
        self.kind = kind
        self.key = key


class ExecutionError(OrchestratorError):
    """A runtime failure while producing a step or dispatch result."""


class ProcessTimeout(ExecutionError):
    """The adapter's hard deadline expired before the agent finished."""

    def __init__(self, command: str, timeout: float, partial_output: str = "") -> None:
        super().__init__(f"{command} timed out after {timeout:g}s")
        self.command = command
        self.timeout = timeout
        self.partial_output = partial_output


class ProcessExitError(ExecutionError):
    """The agent exited without producing any usable output."""

    def __init__(self, command: str, returncode: int | None, stderr: str = "") -> None:
        detail = stderr.strip()
        message = f"{command} exited with code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class ValidationFailed(ExecutionError):
    def __init__(self, step: str, validator: str) -> None:
        super().__init__(f"Step {step!r} output rejected by validator {validator!r}")
        self.step = step
        self.validator = validator


class AgentDispatchError(ExecutionError):
    """Every agent of a parallel dispatch failed."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class MaxIterationsExceeded(OrchestratorError):
    """A loop or branch reached the per-step iteration cap.

    The engine logs this and falls through past the loop rather than failing.
    """

    def __init__(self, step: str, limit: int) -> None:
        super().__init__(f"Step {step!r} reached the iteration cap of {limit}")
        self.step = step
        self.limit = limit


class IllegalTransitionError(ValueError):
    pass

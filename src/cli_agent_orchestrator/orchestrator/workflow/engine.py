"""Workflow execution engine.

The engine walks a workflow's step list with an explicit program counter so
that branches and loops can jump to any step. Each step is:

1. skipped when its condition is false (no result recorded);
2. given the run input, optionally transformed against the context;
3. dispatched to its agent(s), or passed through when it has none;
4. validated;
5. retried with backoff on execution errors, per its retry policy;
6. recorded, with a successful output merged into the context;
7. followed by flow control: stop on error, loop, branch, or advance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from cli_agent_orchestrator.dispatch.base import AUTO, AgentOutcome, DispatchOptions, Dispatcher
from cli_agent_orchestrator.errors import (
    AgentDispatchError,
    ConfigurationError,
    ExecutionError,
    MaxIterationsExceeded,
    StepNotFound,
    ValidationFailed,
    WorkflowNotFound,
)
from cli_agent_orchestrator.orchestrator.workflow.functions import FunctionTable
from cli_agent_orchestrator.orchestrator.workflow.models import (
    Execution,
    ExecutionStatus,
    StepDefinition,
    StepResult,
    StepStatus,
    StepTarget,
    WorkflowDefinition,
    WorkflowOverrides,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Resolver = Callable[[str, DispatchOptions], str]


class WorkflowEngine:
    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        functions: FunctionTable | None = None,
        workflows: Iterable[WorkflowDefinition] = (),
        sleep: Sleep = asyncio.sleep,
        resolver: Resolver | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.resolver = resolver
        self.functions = functions or FunctionTable()
        self._workflows: dict[str, WorkflowDefinition] = {}
        self._sleep = sleep
        for workflow in workflows:
            self.register(workflow)

    def register(self, workflow: WorkflowDefinition) -> None:
        """Add a workflow, replacing any existing one with the same name.

        Raises UnknownFunctionError if a step references an unregistered function.
        """

        self.functions.check(workflow.steps)
        if workflow.name in self._workflows:
            logger.info("Replacing workflow definition", extra={"workflow": workflow.name})
        self._workflows[workflow.name] = workflow

    def get(self, name: str) -> WorkflowDefinition | None:
        return self._workflows.get(name)

    def require(self, name: str) -> WorkflowDefinition:
        workflow = self._workflows.get(name)
        if workflow is None:
            raise WorkflowNotFound(name)
        return workflow

    def definitions(self) -> list[WorkflowDefinition]:
        return list(self._workflows.values())

    async def execute(
        self,
        name: str,
        input: Any,
        initial_context: Mapping[str, Any] | None = None,
        overrides: WorkflowOverrides | None = None,
    ) -> Execution:
        workflow = self.require(name)
        overrides = overrides or WorkflowOverrides()
        execution = Execution(workflow=name, input=input, context=dict(initial_context or {}))

        logger.info(
            "Workflow started",
            extra={"workflow": name, "execution_id": execution.id},
        )

        timeout = workflow.settings.timeout
        try:
            async with asyncio.timeout(timeout):
                await self._run(workflow, execution, overrides)
        except TimeoutError:
            execution.transition(
                ExecutionStatus.ERROR, error=f"Workflow {name!r} timed out after {timeout:g}s"
            )
        except Exception as e:
            if execution.status is ExecutionStatus.RUNNING:
                execution.transition(ExecutionStatus.ERROR, error=str(e))
            logger.error(
                "Workflow aborted",
                extra={"workflow": name, "execution_id": execution.id, "error": str(e)},
            )
            raise

        logger.info(
            "Workflow finished",
            extra={
                "workflow": name,
                "execution_id": execution.id,
                "status": execution.status.value,
                "steps": len(execution.steps),
                "duration_seconds": execution.duration,
            },
        )
        return execution

    async def _run(
        self,
        workflow: WorkflowDefinition,
        execution: Execution,
        overrides: WorkflowOverrides,
    ) -> None:
        steps = workflow.steps
        max_iterations = overrides.max_iterations or workflow.settings.max_iterations
        max_steps = workflow.settings.max_steps
        iterations: Counter[str] = Counter()
        executed = 0
        pc = 0

        while pc < len(steps):
            step = steps[pc]

            if step.condition and not self.functions.condition(step.condition)(execution.context):
                logger.debug("Step skipped", extra={"step": step.name, "condition": step.condition})
                pc += 1
                continue

            if executed >= max_steps:
                execution.transition(
                    ExecutionStatus.ERROR,
                    error=f"Workflow exceeded the limit of {max_steps} executed steps",
                )
                return
            executed += 1
            iterations[step.name] += 1

            result = await self._run_step(step, execution, overrides)
            execution.record(result)
            if result.ok:
                self._merge(execution, step, result.output)

            # (i) stop on error
            if not result.ok and step.stop_on_error:
                execution.transition(ExecutionStatus.FAILED, error=result.error)
                return

            # (ii) loop back, only after a successful attempt
            if result.ok and step.loop_to:
                target = self._index(workflow, step.loop_to)
                if iterations[step.name] < max_iterations:
                    pc = target
                    continue
                self._log_cap(MaxIterationsExceeded(step.name, max_iterations))

            # (iii) branch on outcome
            branch = step.on_success if result.ok else step.on_failure
            if branch:
                target = self._index(workflow, branch)
                if iterations[steps[target].name] < max_iterations:
                    pc = target
                    continue
                self._log_cap(MaxIterationsExceeded(steps[target].name, max_iterations))

            # (iv) advance
            pc += 1

        last = execution.steps[-1] if execution.steps else None
        if last is not None and not last.ok:
            last_step = steps[workflow.step_index(last.name) or 0]
            if not last_step.on_failure:
                execution.transition(ExecutionStatus.FAILED, error=last.error)
                return
        execution.transition(ExecutionStatus.COMPLETED)

    async def _run_step(
        self,
        step: StepDefinition,
        execution: Execution,
        overrides: WorkflowOverrides,
    ) -> StepResult:
        options = DispatchOptions(
            role=step.role,
            mode=step.mode,
            timeout=step.timeout or overrides.timeout,
            requirements=step.requirements,
        )
        target = self._resolve(self._target(step, overrides), options)
        retries = step.retry.attempts if step.retry else 0
        started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            try:
                output = await self._attempt(step, target, execution, options)
            except ConfigurationError:
                raise
            except ExecutionError as e:
                if step.retry is not None and attempt <= retries:
                    delay = step.retry.delay_for(attempt)
                    logger.warning(
                        "Step failed; retrying",
                        extra={
                            "step": step.name,
                            "attempt": attempt,
                            "delay_seconds": delay,
                            "error": str(e),
                        },
                    )
                    await self._sleep(delay)
                    continue

                message = str(e) or type(e).__name__
                if retries:
                    message = f"Step failed after {retries} retries: {message}"
                logger.warning("Step failed", extra={"step": step.name, "error": message})
                return StepResult(
                    name=step.name,
                    status=StepStatus.FAILED,
                    agent=target,
                    role=step.role,
                    duration=round(time.monotonic() - started, 6),
                    attempts=attempt,
                    error=message,
                )

            logger.info("Step succeeded", extra={"step": step.name, "attempts": attempt})
            return StepResult(
                name=step.name,
                status=StepStatus.SUCCESS,
                agent=target,
                role=step.role,
                duration=round(time.monotonic() - started, 6),
                attempts=attempt,
                output=output,
            )

    async def _attempt(
        self,
        step: StepDefinition,
        target: StepTarget,
        execution: Execution,
        options: DispatchOptions,
    ) -> Any:
        value = execution.input
        if step.transform:
            value = self.functions.transform(step.transform)(value, execution.context)

        if target is None:
            result: Any = value
        else:
            prompt = value if isinstance(value, str) else str(value)
            result = await self.dispatcher.dispatch(prompt, target, options)
            if isinstance(result, AgentOutcome):
                # race or vote where every agent failed
                raise AgentDispatchError(
                    f"All agents failed; first error from {result.agent}: {result.error}",
                    {result.agent: result.error or ""},
                )
            if isinstance(result, list):
                result = [o.to_json() if isinstance(o, AgentOutcome) else o for o in result]

        if step.validator and not self.functions.validator(step.validator)(result):
            raise ValidationFailed(step.name, step.validator)
        return result

    @staticmethod
    def _target(step: StepDefinition, overrides: WorkflowOverrides) -> StepTarget:
        if overrides.agent is None:
            return step.agent
        if step.agent == AUTO:
            return overrides.agent
        if isinstance(step.agent, list):
            return [overrides.agent if a == AUTO else a for a in step.agent]
        return step.agent

    def _resolve(self, target: StepTarget, options: DispatchOptions) -> StepTarget:
        """Replace "auto" with the agent selection would pick, so results name it."""

        if self.resolver is None or target is None:
            return target
        if isinstance(target, str):
            return self.resolver(target, options) if target == AUTO else target
        return [self.resolver(a, options) if a == AUTO else a for a in target]

    @staticmethod
    def _merge(execution: Execution, step: StepDefinition, output: Any) -> None:
        if isinstance(output, dict):
            execution.context.update(output)
        else:
            execution.context[step.context_key] = output

    @staticmethod
    def _index(workflow: WorkflowDefinition, name: str) -> int:
        index = workflow.step_index(name)
        if index is None:
            raise StepNotFound(workflow.name, name)
        return index

    @staticmethod
    def _log_cap(e: MaxIterationsExceeded) -> None:
        logger.info("Iteration cap reached; falling through", extra={"step": e.step, "limit": e.limit})

"""Main orchestrator implementation."""

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from cli_agent_orchestrator.agents.descriptor import (
    AgentDescriptor,
    Requirements,
    builtin_descriptors,
    load_descriptors,
)
from cli_agent_orchestrator.agents.registry import AgentRegistry
from cli_agent_orchestrator.cache.response_cache import ResponseCache
from cli_agent_orchestrator.core.config import OrchestratorConfig
from cli_agent_orchestrator.dispatch.base import AUTO, AgentOutcome, DispatchMode, DispatchOptions
from cli_agent_orchestrator.dispatch.dispatcher import AgentDispatcher, build_dispatcher
from cli_agent_orchestrator.dispatch.retry import RetryPolicy
from cli_agent_orchestrator.orchestrator.metrics import Metrics
from cli_agent_orchestrator.orchestrator.workflow.builtin import builtin_workflows
from cli_agent_orchestrator.orchestrator.workflow.engine import WorkflowEngine
from cli_agent_orchestrator.orchestrator.workflow.functions import FunctionTable
from cli_agent_orchestrator.orchestrator.workflow.loader import load_workflows
from cli_agent_orchestrator.orchestrator.workflow.models import (
    ExecutionStatus,
    WorkflowOverrides,
)
from cli_agent_orchestrator.process.adapter import ProcessAdapter, check_available
from cli_agent_orchestrator.process.monitor import ProcessMonitor

logger = logging.getLogger(__name__)

PLANNING_WORKFLOW = "plan-execute"
DIRECT_WORKFLOW = "direct"

_PLANNING_KEYWORDS = re.compile(
    r"\b(plan|design|architect\w*|build|implement|create|develop|refactor|migrate|"
    r"step[- ]by[- ]step|multi[- ]step|project|application|app|system)\b",
    re.IGNORECASE,
)


def choose_workflow(prompt: str) -> str:
    """Pick the planning workflow for prompts that read like multi-step work."""

    return PLANNING_WORKFLOW if _PLANNING_KEYWORDS.search(prompt) else DIRECT_WORKFLOW


class Preferences(BaseModel):
    """Caller preferences for `Orchestrator.orchestrate`."""

    workflow: str | None = None
    agent: str | None = Field(default=None, description='Agent used for "auto" steps')
    role: str | None = None
    timeout: float | None = Field(default=None, gt=0)


class Orchestrator:
    """Owns the agent registry, cache, monitor, metrics, dispatcher and engine.

    Every operation exposed by the CLI and the REST server goes through this
    class.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        adapter: ProcessAdapter | None = None,
        functions: FunctionTable | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration object. If None, loads from environment.
            adapter: Process adapter override, mainly for tests.
            functions: Step function table; defaults to the built-in functions.
        """
        self.config = config or OrchestratorConfig()
        self.config.setup_logging()

        logger.info("Initializing CLI Agent Orchestrator")

        monitor_cfg = self.config.monitor
        self.monitor = ProcessMonitor(
            max_cpu_percent=monitor_cfg.max_cpu_percent,
            max_age_seconds=monitor_cfg.max_age_seconds,
            interval_seconds=monitor_cfg.interval_seconds,
            grace_seconds=monitor_cfg.grace_seconds,
        )

        self.cache: ResponseCache | None = None
        if self.config.cache.enabled:
            self.cache = ResponseCache(
                ttl=self.config.cache.ttl_seconds,
                max_size=self.config.cache.max_size,
            )
            self.monitor.add_sweep_hook(self.cache.cleanup)

        self.metrics = Metrics()
        self.registry = AgentRegistry()
        for descriptor in self._agent_descriptors():
            self.registry.register(descriptor)
            self.monitor.watch(descriptor.command)

        self.adapter = adapter or ProcessAdapter(
            monitor=self.monitor,
            quiescence=self.config.quiescence_seconds,
            grace_period=monitor_cfg.grace_seconds,
        )

        retry_cfg = self.config.retry
        self.dispatcher = build_dispatcher(
            registry=self.registry,
            adapter=self.adapter,
            cache=self.cache,
            metrics=self.metrics,
            default_timeout=self.config.default_timeout,
            default_agent=self.config.agents.default_agent,
            retry=RetryPolicy(
                attempts=retry_cfg.attempts,
                delay=retry_cfg.delay,
                backoff_factor=retry_cfg.backoff_factor,
            ),
            max_concurrency=self.config.max_concurrency,
        )
        # Used to resolve "auto" up front so results can name the agent.
        self._selector = AgentDispatcher(
            registry=self.registry,
            adapter=self.adapter,
            default_agent=self.config.agents.default_agent,
        )

        self.engine = WorkflowEngine(
            self.dispatcher,
            functions=functions,
            workflows=builtin_workflows(),
            resolver=self._selector.resolve,
        )
        if self.config.workflows_file is not None:
            for workflow in load_workflows(self.config.workflows_file):
                self.engine.register(workflow)

        logger.info(
            "Orchestrator initialized successfully",
            extra={"agents": self.registry.names(), "workflows": len(self.engine.definitions())},
        )

    def _agent_descriptors(self) -> list[AgentDescriptor]:
        descriptors = {d.name: d for d in builtin_descriptors(self.config.agents)}
        path = self.config.agents.definitions_file
        if path is not None:
            for descriptor in load_descriptors(path):
                descriptors[descriptor.name] = descriptor
        return list(descriptors.values())

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        if self.config.monitor.enabled:
            self.monitor.start()

    def stop(self) -> None:
        self.monitor.stop()

    # -- operations ----------------------------------------------------------

    async def orchestrate(
        self,
        prompt: str,
        preferences: Preferences | None = None,
    ) -> dict[str, Any]:
        """Run a prompt through the preferred or a heuristically chosen workflow."""

        prefs = preferences or Preferences()
        workflow = prefs.workflow or choose_workflow(prompt)
        agent = prefs.agent or self._selector.resolve(AUTO, DispatchOptions(role=prefs.role))

        logger.info("Orchestrating request", extra={"workflow": workflow, "agent": agent})
        execution = await self.engine.execute(
            workflow,
            prompt,
            overrides=WorkflowOverrides(agent=agent, timeout=prefs.timeout),
        )

        last = execution.steps[-1] if execution.steps else None
        return {
            "success": execution.status is ExecutionStatus.COMPLETED,
            "result": execution.last_output,
            "agent": last.agent if last is not None else agent,
            "workflow": workflow,
            "execution_id": execution.id,
            "error": execution.error,
        }

    async def orchestrate_workflow(
        self,
        name: str,
        input: Any,
        context: Mapping[str, Any] | None = None,
        overrides: WorkflowOverrides | None = None,
    ) -> dict[str, Any]:
        execution = await self.engine.execute(name, input, context, overrides)
        return {
            "execution": execution.model_dump(mode="json"),
            "duration": execution.duration,
        }

    async def orchestrate_parallel(
        self,
        prompt: str,
        agents: Sequence[str],
        mode: DispatchMode = "all",
        role: str | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        result = await self.dispatcher.dispatch(
            prompt,
            list(agents),
            DispatchOptions(role=role, mode=mode, timeout=timeout),
        )
        payload: Any
        if isinstance(result, list):
            payload = [o.to_json() for o in result]
            success = any(o.ok for o in result)
        elif isinstance(result, AgentOutcome):
            payload = result.to_json()
            success = result.ok
        else:
            payload = result
            success = True
        return {"success": success, "mode": mode, "agents": list(agents), "result": payload}

    def list_workflows(self) -> list[dict[str, object]]:
        return [w.summary() for w in self.engine.definitions()]

    def list_agents(self) -> list[dict[str, object]]:
        return [
            {
                "name": d.name,
                "description": d.description,
                "command": d.command,
                "input_method": d.input_method,
                "capabilities": d.capabilities.model_dump(),
                "context_window": d.context_window,
                "languages": list(d.languages),
            }
            for d in self.registry
        ]

    def get_capabilities(
        self,
        task: str,
        requirements: Requirements | None = None,
    ) -> list[dict[str, object]]:
        return [r.to_json() for r in self.registry.rank(task, requirements)]

    def get_process_stats(self) -> dict[str, Any]:
        return self.monitor.stats()

    def get_metrics(self) -> dict[str, Any]:
        stats = self.metrics.stats()
        stats["cache"] = self.cache.stats() if self.cache is not None else None
        return stats

    async def check_health(self) -> dict[str, Any]:
        """Report which agent binaries answer `--version`."""

        descriptors = list(self.registry)
        results = await asyncio.gather(*(check_available(d.command) for d in descriptors))
        agents = {d.name: ok for d, ok in zip(descriptors, results, strict=True)}
        return {
            "healthy": any(agents.values()),
            "agents": agents,
            "monitoring_active": self.monitor.monitoring_active,
        }

"""Single-agent and multi-agent dispatch.

Dispatchers compose rather than inherit:

    MultiAgentDispatcher(RetryingDispatcher(AgentDispatcher(...)))

`build_dispatcher` picks the composition from configuration.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Sequence

from cli_agent_orchestrator.agents.descriptor import AgentDescriptor, Requirements
from cli_agent_orchestrator.agents.prompts import prepare_prompt
from cli_agent_orchestrator.agents.registry import AgentRegistry
from cli_agent_orchestrator.cache.response_cache import ResponseCache, make_key
from cli_agent_orchestrator.dispatch.base import (
    AUTO,
    AgentOutcome,
    DispatchOptions,
    DispatchResult,
    Dispatcher,
    Target,
)
from cli_agent_orchestrator.dispatch.retry import RetryingDispatcher, RetryPolicy
from cli_agent_orchestrator.errors import ConfigurationError, ExecutionError
from cli_agent_orchestrator.orchestrator.metrics import Metrics
from cli_agent_orchestrator.process.adapter import ProcessAdapter

logger = logging.getLogger(__name__)


class AgentDispatcher:
    """Send a prompt to exactly one agent, going through the response cache."""

    def __init__(
        self,
        *,
        registry: AgentRegistry,
        adapter: ProcessAdapter,
        cache: ResponseCache | None = None,
        metrics: Metrics | None = None,
        default_timeout: float = 300.0,
        default_agent: str | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.registry = registry
        self.adapter = adapter
        self.cache = cache
        self.metrics = metrics
        self.default_timeout = default_timeout
        self.default_agent = default_agent
        self.max_concurrency = max_concurrency
        # Bounds agent processes across parallel branches and concurrent requests.
        self._slots = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    def resolve(self, target: str, options: DispatchOptions) -> str:
        """Map a target to a registered agent name ("auto" goes through selection)."""

        if target != AUTO:
            self.registry.require(target)
            return target

        requirements = options.requirements or Requirements()
        if options.role and not requirements.role:
            requirements = requirements.model_copy(update={"role": options.role})

        default = self.default_agent
        if requirements.is_empty() and default is not None and default in self.registry:
            return default
        return self.registry.select_best(requirements)

    async def dispatch(
        self,
        prompt: str,
        target: Target,
        options: DispatchOptions | None = None,
    ) -> str:
        if not isinstance(target, str):
            raise TypeError("AgentDispatcher handles one agent; use MultiAgentDispatcher for lists")

        options = options or DispatchOptions()
        name = self.resolve(target, options)
        descriptor = self.registry.require(name)

        key = make_key(name, options.role, prompt)
        if self.cache is not None and options.use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Serving cached response", extra={"agent": name, "role": options.role})
                return str(cached)

        timeout = options.timeout or self.default_timeout
        logger.info(
            "Dispatching to agent",
            extra={"agent": name, "role": options.role, "timeout_seconds": timeout},
        )

        if self._slots is None:
            return await self._invoke(name, descriptor, prompt, key, timeout, options)
        if self._slots.locked():
            logger.info(
                "Waiting for a free agent slot",
                extra={"agent": name, "max_concurrency": self.max_concurrency},
            )
        async with self._slots:
            return await self._invoke(name, descriptor, prompt, key, timeout, options)

    async def _invoke(
        self,
        name: str,
        descriptor: AgentDescriptor,
        prompt: str,
        key: str,
        timeout: float,
        options: DispatchOptions,
    ) -> str:
        started = time.monotonic()
        try:
            output = await self.adapter.invoke(
                descriptor.argv(),
                prepare_prompt(prompt, options.role, name),
                timeout=timeout,
                input_method=descriptor.input_method,
                name=name,
                env_remove=descriptor.env_remove,
                sentinel=descriptor.sentinel,
                detect_completion=descriptor.detect_completion,
            )
        except ExecutionError as e:
            if self.metrics is not None:
                self.metrics.record_request(
                    time.monotonic() - started, False, agent=name, role=options.role, error=str(e)
                )
            logger.error("Agent call failed", extra={"agent": name, "error": str(e)})
            raise

        if self.metrics is not None:
            self.metrics.record_request(
                time.monotonic() - started, True, agent=name, role=options.role
            )
        if self.cache is not None and options.use_cache:
            self.cache.set(key, output)
        return output


class MultiAgentDispatcher:
    """Fan a prompt out to several agents concurrently and aggregate the results.

    Single targets pass straight through to the wrapped dispatcher.
    """

    def __init__(self, inner: Dispatcher, registry: AgentRegistry) -> None:
        self.inner = inner
        self.registry = registry

    async def dispatch(
        self,
        prompt: str,
        target: Target,
        options: DispatchOptions | None = None,
    ) -> DispatchResult:
        options = options or DispatchOptions()
        if isinstance(target, str):
            return await self.inner.dispatch(prompt, target, options)

        names = list(target)
        if not names:
            raise ConfigurationError("Parallel dispatch needs at least one agent")
        for name in names:
            if name != AUTO:
                self.registry.require(name)

        logger.info(
            "Executing in parallel",
            extra={"agents": names, "mode": options.mode, "role": options.role},
        )

        if options.mode == "race":
            return await self._race(prompt, names, options)
        if options.mode == "vote":
            settled = await self._settle(prompt, names, options)
            return majority(settled)
        return await asyncio.gather(*(self._one(prompt, name, options) for name in names))

    async def _one(self, prompt: str, name: str, options: DispatchOptions) -> AgentOutcome:
        try:
            result = await self.inner.dispatch(prompt, name, options)
        except Exception as e:
            logger.warning("Parallel branch failed", extra={"agent": name, "error": str(e)})
            return AgentOutcome(agent=name, error=str(e) or type(e).__name__)
        return AgentOutcome(agent=name, output=result if isinstance(result, str) else str(result))

    async def _settle(
        self, prompt: str, names: Sequence[str], options: DispatchOptions
    ) -> list[AgentOutcome]:
        """Run every branch and return outcomes in the order they settled."""

        settled: list[AgentOutcome] = []
        for next_done in asyncio.as_completed([self._one(prompt, n, options) for n in names]):
            settled.append(await next_done)
        return settled

    async def _race(
        self, prompt: str, names: Sequence[str], options: DispatchOptions
    ) -> str | AgentOutcome:
        """First successful output, or the first settled failure if none succeeded."""

        tasks = [asyncio.create_task(self._one(prompt, name, options)) for name in names]
        first_failure: AgentOutcome | None = None
        try:
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                if outcome.ok and outcome.output is not None:
                    logger.info("Race won", extra={"agent": outcome.agent})
                    return outcome.output
                if first_failure is None:
                    first_failure = outcome
        finally:
            # Losing branches are cancelled; the adapter terminates their processes.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.warning("Every raced agent failed", extra={"agents": list(names)})
        return first_failure if first_failure is not None else AgentOutcome(
            agent=names[0], error="No agent produced a result"
        )


def majority(settled: Sequence[AgentOutcome]) -> str | AgentOutcome:
    """Most frequent successful output; ties go to the earliest settled.

    With no successful outcome the first settled one (a failure) is returned.
    """

    successes = [o.output for o in settled if o.ok and o.output is not None]
    if not successes:
        logger.warning("Every voting agent failed", extra={"agents": [o.agent for o in settled]})
        return settled[0]

    counts = Counter(successes)
    top = max(counts.values())
    return next(output for output in successes if counts[output] == top)


def build_dispatcher(
    *,
    registry: AgentRegistry,
    adapter: ProcessAdapter,
    cache: ResponseCache | None = None,
    metrics: Metrics | None = None,
    default_timeout: float = 300.0,
    default_agent: str | None = None,
    retry: RetryPolicy | None = None,
    max_concurrency: int | None = None,
) -> MultiAgentDispatcher:
    """Compose the dispatcher stack selected by configuration."""

    single: Dispatcher = AgentDispatcher(
        registry=registry,
        adapter=adapter,
        cache=cache,
        metrics=metrics,
        default_timeout=default_timeout,
        default_agent=default_agent,
        max_concurrency=max_concurrency,
    )
    if retry is not None and retry.attempts > 0:
        single = RetryingDispatcher(single, retry)
    return MultiAgentDispatcher(single, registry)

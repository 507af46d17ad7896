"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest

from cli_agent_orchestrator.agents.descriptor import AgentDescriptor, Capabilities
from cli_agent_orchestrator.agents.registry import AgentRegistry
from cli_agent_orchestrator.core.config import (
    AgentsConfig,
    CacheConfig,
    MonitorConfig,
    OrchestratorConfig,
    RetryConfig,
)
from cli_agent_orchestrator.core.orchestrator import Orchestrator

Reply = str | BaseException | Callable[[str], str]


@dataclass
class Call:
    name: str | None
    command: list[str]
    input_text: str
    timeout: float


@dataclass
class FakeAdapter:
    """Stands in for ProcessAdapter: replies per agent name, no subprocesses.

    A reply is a string, an exception to raise, or a callable of the prompt.
    Lists of replies are consumed one per call; the last one repeats.
    """

    replies: dict[str, Reply | list[Reply]] = field(default_factory=dict)
    delays: dict[str, float] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    async def invoke(
        self,
        command: Sequence[str],
        input_text: str,
        *,
        timeout: float,
        input_method: str = "stdin",
        name: str | None = None,
        env_remove: Sequence[str] = (),
        sentinel: str | None = None,
        detect_completion: bool = True,
    ) -> str:
        self.calls.append(Call(name=name, command=list(command), input_text=input_text, timeout=timeout))
        delay = self.delays.get(name or "", 0.0)
        if delay:
            await asyncio.sleep(delay)

        reply: Any = self.replies.get(name or "", f"{name} says: {input_text}")
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(input_text)
        return reply

    def calls_for(self, name: str) -> list[Call]:
        return [c for c in self.calls if c.name == name]


def make_descriptor(name: str, **kwargs: Any) -> AgentDescriptor:
    kwargs.setdefault("command", name)
    return AgentDescriptor(name=name, **kwargs)


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def registry() -> AgentRegistry:
    """Claude-like and Gemini-like agents, registered in that order."""
    reg = AgentRegistry()
    reg.register(
        make_descriptor(
            "claude",
            capabilities=Capabilities(planning=0.95, execution=0.85, review=0.90),
            context_window=200_000,
            languages=["python", "javascript"],
        )
    )
    reg.register(
        make_descriptor(
            "gemini",
            capabilities=Capabilities(planning=0.85, execution=0.95, review=0.80),
            context_window=1_000_000,
            languages=["python", "go"],
        )
    )
    return reg


@pytest.fixture
def orchestrator_config() -> OrchestratorConfig:
    """Provide a test orchestrator configuration."""
    return OrchestratorConfig(
        log_level="DEBUG",
        default_timeout=5.0,
        workflows_file=None,
        agents=AgentsConfig(default_agent="gemini", definitions_file=None),
        cache=CacheConfig(enabled=True, ttl_seconds=60.0, max_size=10),
        retry=RetryConfig(attempts=0),
        monitor=MonitorConfig(enabled=False),
    )


@pytest.fixture
def orchestrator(orchestrator_config: OrchestratorConfig, fake_adapter: FakeAdapter) -> Orchestrator:
    return Orchestrator(orchestrator_config, adapter=fake_adapter)  # type: ignore[arg-type]

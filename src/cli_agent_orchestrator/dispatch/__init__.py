"""Dispatch package initialization."""

from cli_agent_orchestrator.dispatch.base import (
    AUTO,
    AgentOutcome,
    DispatchOptions,
    DispatchResult,
    Dispatcher,
)
from cli_agent_orchestrator.dispatch.dispatcher import (
    AgentDispatcher,
    MultiAgentDispatcher,
    build_dispatcher,
    majority,
)
from cli_agent_orchestrator.dispatch.retry import RetryingDispatcher, RetryPolicy

__all__ = [
    "AUTO",
    "AgentDispatcher",
    "AgentOutcome",
    "DispatchOptions",
    "DispatchResult",
    "Dispatcher",
    "MultiAgentDispatcher",
    "RetryPolicy",
    "RetryingDispatcher",
    "build_dispatcher",
    "majority",
]

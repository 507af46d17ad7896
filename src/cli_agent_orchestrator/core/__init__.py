"""Core package initialization."""

from cli_agent_orchestrator.core.config import OrchestratorConfig
from cli_agent_orchestrator.core.orchestrator import Orchestrator, Preferences

__all__ = [
    "Orchestrator",
    "OrchestratorConfig",
    "Preferences",
]

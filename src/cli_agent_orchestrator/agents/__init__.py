"""Agents package initialization."""

from cli_agent_orchestrator.agents.descriptor import AgentDescriptor, Capabilities, Requirements
from cli_agent_orchestrator.agents.registry import AgentRegistry, Recommendation

__all__ = [
    "AgentDescriptor",
    "AgentRegistry",
    "Capabilities",
    "Recommendation",
    "Requirements",
]

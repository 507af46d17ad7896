"""FastAPI server adapter for cli-agent-orchestrator.

Keep orchestration logic in `cli_agent_orchestrator.core` and the packages it
composes; routing and error mapping live here.
"""

from __future__ import annotations

__all__ = ["create_app"]

from cli_agent_orchestrator.server.app import create_app

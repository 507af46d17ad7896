"""CLI Agent Orchestrator.

Delegates natural-language tasks to external command-line agents and runs
multi-step workflows (sequential, conditional, parallel, iterative) across
them.
"""

__version__ = "0.1.0"

from cli_agent_orchestrator.core.config import OrchestratorConfig

__all__ = ["__version__", "OrchestratorConfig"]

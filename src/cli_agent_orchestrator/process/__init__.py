"""Process package initialization."""

from cli_agent_orchestrator.process.adapter import ProcessAdapter, check_available, looks_complete
from cli_agent_orchestrator.process.monitor import ProcessMonitor, ProcessRecord

__all__ = [
    "ProcessAdapter",
    "ProcessMonitor",
    "ProcessRecord",
    "check_available",
    "looks_complete",
]

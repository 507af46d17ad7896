"""Console entry point; the CLI lives in `cli_agent_orchestrator.orchestrator.main`."""

from __future__ import annotations

from cli_agent_orchestrator.orchestrator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())

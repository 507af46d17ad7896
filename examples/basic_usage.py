#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the orchestrator directly:

* load settings from `.env`
* run a named workflow with per-run overrides
* print each step's outcome

The `claude` and `gemini` binaries must be on PATH (or configured via
`ORCHESTRATOR_AGENTS_CLAUDE_COMMAND` and
`ORCHESTRATOR_AGENTS_GEMINI_COMMAND`).
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Sequence

from cli_agent_orchestrator.core.orchestrator import Orchestrator
from cli_agent_orchestrator.errors import ConfigurationError
from cli_agent_orchestrator.orchestrator.workflow.models import ExecutionStatus, WorkflowOverrides


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a workflow (programmatic example).")
    parser.add_argument("prompt", help="Workflow input")
    parser.add_argument("--workflow", default="plan-execute", help="Workflow name")
    parser.add_argument("--agent", default=None, help='Agent used for "auto" steps')
    parser.add_argument("--timeout", type=float, default=None, help="Per-step timeout in seconds")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    orch = Orchestrator()
    orch.start()
    try:
        execution = await orch.engine.execute(
            args.workflow,
            args.prompt,
            overrides=WorkflowOverrides(agent=args.agent, timeout=args.timeout),
        )
    finally:
        orch.stop()

    for step in execution.steps:
        print(f"[{step.status.value}] {step.name} via {step.agent} ({step.duration:.1f}s)")
        if step.error:
            print(f"  error: {step.error}")

    print()
    print(f"Workflow {execution.workflow!r} finished: {execution.status.value}")
    output = execution.last_output
    print(output if isinstance(output, str) else json.dumps(output, indent=2))
    print()
    print(json.dumps(orch.get_metrics(), indent=2))
    return 0 if execution.status is ExecutionStatus.COMPLETED else 4


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except ConfigurationError as exc:
        print(str(exc))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

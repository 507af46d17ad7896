"""CLI entrypoint for the orchestrator.

Command results are printed to stdout as JSON; logs go to stderr.

Exit codes: 0 success, 1 unexpected failure, 2 configuration error,
4 the workflow (or dispatch) did not succeed.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from cli_agent_orchestrator import __version__
from cli_agent_orchestrator.agents.descriptor import Requirements
from cli_agent_orchestrator.core.config import OrchestratorConfig
from cli_agent_orchestrator.core.orchestrator import Orchestrator, Preferences
from cli_agent_orchestrator.errors import ConfigurationError, ExecutionError
from cli_agent_orchestrator.orchestrator.workflow.models import WorkflowOverrides

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_FAILED = 4


def _parse_agents(value: str) -> list[str]:
    agents = [p.strip() for p in value.split(",") if p.strip()]
    if not agents:
        raise argparse.ArgumentTypeError("expected a comma-separated list of agent names")
    return agents


def _parse_context(value: str) -> dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("context must be a JSON object")
    return parsed


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-orchestrator",
        description="Delegate tasks and workflows to command-line AI agents",
    )
    parser.add_argument(
        "--version", action="version", version=f"cli-agent-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    orchestrate = subparsers.add_parser(
        "orchestrate",
        help="Run a prompt through an automatically chosen workflow",
    )
    orchestrate.add_argument("prompt", help="Task description")
    orchestrate.add_argument(
        "--workflow",
        default=None,
        help="Workflow name (defaults to keyword-based selection)",
    )
    orchestrate.add_argument("--agent", default=None, help='Agent used for "auto" steps')
    orchestrate.add_argument("--role", default=None, help="Role hint: plan | execute | review")
    orchestrate.add_argument("--timeout", type=float, default=None, help="Per-step timeout in seconds")

    run_workflow = subparsers.add_parser("run-workflow", help="Run a named workflow")
    run_workflow.add_argument("workflow", help="Workflow name")
    run_workflow.add_argument("input", help="Workflow input")
    run_workflow.add_argument(
        "--context",
        type=_parse_context,
        default=None,
        help="Initial context as a JSON object",
    )
    run_workflow.add_argument("--agent", default=None, help='Replace every "auto" target')
    run_workflow.add_argument("--timeout", type=float, default=None, help="Per-step timeout in seconds")
    run_workflow.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Override the workflow's per-step iteration cap",
    )

    parallel = subparsers.add_parser("parallel", help="Send one prompt to several agents")
    parallel.add_argument("prompt", help="Task description")
    parallel.add_argument(
        "--agents",
        type=_parse_agents,
        required=True,
        help="Comma-separated agent names, e.g. 'claude,gemini'",
    )
    parallel.add_argument(
        "--mode",
        choices=["race", "all", "vote"],
        default="all",
        help="race: first success; all: every result; vote: most common output",
    )
    parallel.add_argument("--role", default=None, help="Role hint: plan | execute | review")
    parallel.add_argument("--timeout", type=float, default=None, help="Per-agent timeout in seconds")

    subparsers.add_parser("list-workflows", help="List available workflows")
    subparsers.add_parser("list-agents", help="List registered agents")

    capabilities = subparsers.add_parser(
        "capabilities",
        help="Rank agents for a task and explain the scores",
    )
    capabilities.add_argument("task", help="Task description")
    capabilities.add_argument("--role", default=None)
    capabilities.add_argument("--language", default=None)
    capabilities.add_argument("--context-size", type=int, default=None, help="Required context in tokens")
    capabilities.add_argument("--complexity", choices=["low", "medium", "high"], default=None)

    subparsers.add_parser("process-stats", help="Show tracked agent processes")
    subparsers.add_parser("health", help="Check which agent binaries are available")

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default=None, help="Bind address (defaults to server settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (defaults to server settings)")

    return parser


def _build_orchestrator(config: OrchestratorConfig) -> Orchestrator:
    return Orchestrator(config)


async def _with_monitor(orch: Orchestrator, coro: Any) -> Any:
    orch.start()
    try:
        return await coro
    finally:
        orch.stop()


def _serve(orch: Orchestrator, host: str | None, port: int | None) -> int:
    import uvicorn

    from cli_agent_orchestrator.server.app import create_app
    from cli_agent_orchestrator.server.config import ServerSettings

    settings = ServerSettings()
    app = create_app(orch, settings)
    uvicorn.run(app, host=host or settings.host, port=port or settings.port, log_config=None)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = OrchestratorConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    try:
        orch = _build_orchestrator(config)

        if args.command == "orchestrate":
            prefs = Preferences(
                workflow=args.workflow, agent=args.agent, role=args.role, timeout=args.timeout
            )
            result = asyncio.run(_with_monitor(orch, orch.orchestrate(args.prompt, prefs)))
            _print(result)
            return EXIT_OK if result["success"] else EXIT_FAILED

        if args.command == "run-workflow":
            overrides = WorkflowOverrides(
                agent=args.agent, timeout=args.timeout, max_iterations=args.max_iterations
            )
            result = asyncio.run(
                _with_monitor(
                    orch,
                    orch.orchestrate_workflow(args.workflow, args.input, args.context, overrides),
                )
            )
            _print(result)
            return EXIT_OK if result["execution"]["status"] == "completed" else EXIT_FAILED

        if args.command == "parallel":
            result = asyncio.run(
                _with_monitor(
                    orch,
                    orch.orchestrate_parallel(
                        args.prompt, args.agents, mode=args.mode, role=args.role, timeout=args.timeout
                    ),
                )
            )
            _print(result)
            return EXIT_OK if result["success"] else EXIT_FAILED

        if args.command == "list-workflows":
            _print(orch.list_workflows())
            return EXIT_OK

        if args.command == "list-agents":
            _print(orch.list_agents())
            return EXIT_OK

        if args.command == "capabilities":
            requirements = Requirements(
                role=args.role,
                language=args.language,
                context_size=args.context_size,
                complexity=args.complexity,
            )
            _print(orch.get_capabilities(args.task, requirements))
            return EXIT_OK

        if args.command == "process-stats":
            _print(orch.get_process_stats())
            return EXIT_OK

        if args.command == "health":
            report = asyncio.run(orch.check_health())
            _print(report)
            return EXIT_OK if report["healthy"] else EXIT_FAILED

        if args.command == "serve":
            return _serve(orch, args.host, args.port)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except (ConfigurationError, ValidationError, ValueError) as e:
        logger.error("Configuration error", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG

    except ExecutionError as e:
        logger.error("Execution failed", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return EXIT_FAILED

    except Exception:
        logger.exception("Command failed")
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())

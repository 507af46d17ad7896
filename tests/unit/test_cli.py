from __future__ import annotations

import json

import pytest
from conftest import FakeAdapter

from cli_agent_orchestrator.core.config import OrchestratorConfig
from cli_agent_orchestrator.core.orchestrator import Orchestrator
from cli_agent_orchestrator.errors import ProcessExitError
from cli_agent_orchestrator.orchestrator import main as cli


@pytest.fixture
def patched(
    monkeypatch: pytest.MonkeyPatch,
    orchestrator_config: OrchestratorConfig,
    fake_adapter: FakeAdapter,
) -> FakeAdapter:
    def build(_config: OrchestratorConfig) -> Orchestrator:
        return Orchestrator(orchestrator_config, adapter=fake_adapter)  # type: ignore[arg-type]

    monkeypatch.setattr(cli, "_build_orchestrator", build)
    return fake_adapter


def _json(capsys: pytest.CaptureFixture[str]) -> object:
    return json.loads(capsys.readouterr().out)


def test_orchestrate_prints_result(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["orchestrate", "What is 2 + 2?", "--agent", "claude"])

    out = _json(capsys)
    assert code == cli.EXIT_OK
    assert out["agent"] == "claude"
    assert out["workflow"] == "direct"


def test_orchestrate_failure_exit_code(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    patched.replies["gemini"] = ProcessExitError("gemini", 1, "boom")

    code = cli.main(["orchestrate", "What is 2 + 2?"])

    assert code == cli.EXIT_FAILED
    assert _json(capsys)["success"] is False


def test_run_workflow_with_context(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(
        ["run-workflow", "direct", "hello", "--context", '{"user": "sam"}', "--agent", "claude"]
    )

    execution = _json(capsys)["execution"]
    assert code == cli.EXIT_OK
    assert execution["context"]["user"] == "sam"
    assert execution["steps"][0]["agent"] == "claude"


def test_run_unknown_workflow_is_config_error(
    patched: FakeAdapter, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli.main(["run-workflow", "missing", "hello"])

    assert code == cli.EXIT_CONFIG
    assert "missing" in capsys.readouterr().err


def test_invalid_context_json_exits_via_argparse(patched: FakeAdapter) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["run-workflow", "direct", "hello", "--context", "[1, 2]"])
    assert exc.value.code == 2


def test_parallel_vote(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    patched.replies.update({"claude": "42", "gemini": "42"})

    code = cli.main(["parallel", "answer?", "--agents", "claude, gemini", "--mode", "vote"])

    out = _json(capsys)
    assert code == cli.EXIT_OK
    assert out == {"success": True, "mode": "vote", "agents": ["claude", "gemini"], "result": "42"}


def test_parallel_all_failed(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    patched.replies.update(
        {"claude": ProcessExitError("claude", 1), "gemini": ProcessExitError("gemini", 1)}
    )

    code = cli.main(["parallel", "answer?", "--agents", "claude,gemini", "--mode", "race"])

    assert code == cli.EXIT_FAILED
    assert _json(capsys)["success"] is False


def test_parallel_unknown_agent(patched: FakeAdapter) -> None:
    assert cli.main(["parallel", "answer?", "--agents", "codex"]) == cli.EXIT_CONFIG


def test_listing_commands(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["list-workflows"]) == cli.EXIT_OK
    workflows = _json(capsys)
    assert cli.main(["list-agents"]) == cli.EXIT_OK
    agents = _json(capsys)
    assert cli.main(["process-stats"]) == cli.EXIT_OK
    stats = _json(capsys)

    assert "iterative" in [w["name"] for w in workflows]
    assert [a["name"] for a in agents] == ["claude", "gemini"]
    assert stats["active_processes"] == 0


def test_capabilities(patched: FakeAdapter, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["capabilities", "Write a Go service", "--language", "go", "--role", "execute"])

    ranked = _json(capsys)
    assert code == cli.EXIT_OK
    assert ranked[0]["agent"] == "gemini"


def test_missing_subcommand_exits() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 2

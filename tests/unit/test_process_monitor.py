"""Unit tests for the background process monitor."""

from __future__ import annotations

import subprocess
import sys
import time
from collections.abc import Iterator
from types import SimpleNamespace

import psutil
import pytest

from cli_agent_orchestrator.process.monitor import ProcessMonitor


@pytest.fixture
def sleeper() -> Iterator[subprocess.Popen[bytes]]:
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    yield proc
    if proc.poll() is None:
        proc.kill()
    proc.wait()


def test_register_and_idempotent_unregister() -> None:
    monitor = ProcessMonitor()
    monitor.register(4242, "claude", owner="call-1")

    assert monitor.get(4242) is not None
    assert monitor.unregister(4242) is True
    assert monitor.unregister(4242) is False
    assert monitor.get(4242) is None


def test_register_replaces_record_for_same_pid() -> None:
    monitor = ProcessMonitor()
    monitor.register(4242, "claude")
    monitor.register(4242, "gemini")

    stats = monitor.stats()
    assert stats["active_processes"] == 1
    assert stats["processes"][0]["name"] == "gemini"


def test_sweep_terminates_registered_process_over_max_age(
    sleeper: subprocess.Popen[bytes],
) -> None:
    monitor = ProcessMonitor(max_age_seconds=60, grace_seconds=1)
    record = monitor.register(sleeper.pid, "sleeper")
    record.registered_at = time.time() - 120

    killed = monitor.sweep()

    assert sleeper.pid in killed
    assert sleeper.wait(timeout=5) is not None
    assert monitor.get(sleeper.pid) is None


def test_sweep_leaves_young_processes_alone(sleeper: subprocess.Popen[bytes]) -> None:
    monitor = ProcessMonitor(max_age_seconds=60, max_cpu_percent=100_000)
    monitor.register(sleeper.pid, "sleeper")

    assert monitor.sweep() == []
    assert sleeper.poll() is None
    assert monitor.get(sleeper.pid) is not None


def test_sweep_kills_only_watched_processes_over_cpu_threshold(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    agent = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    bystander = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    try:
        monitor = ProcessMonitor(max_cpu_percent=50, max_age_seconds=600, grace_seconds=1)
        monitor.watch("claude")
        monitor.register(agent.pid, "claude")
        busy = [
            SimpleNamespace(
                info={
                    "pid": agent.pid,
                    "name": "node",
                    "cmdline": ["node", "/usr/bin/claude"],
                    "cpu_percent": 97.0,
                }
            ),
            SimpleNamespace(
                info={
                    "pid": bystander.pid,
                    "name": "ffmpeg",
                    "cmdline": ["ffmpeg"],
                    "cpu_percent": 99.0,
                }
            ),
        ]
        monkeypatch.setattr(psutil, "process_iter", lambda attrs=None: iter(busy))

        killed = monitor.sweep()

        assert killed == [agent.pid]
        assert agent.wait(timeout=5) is not None
        assert monitor.get(agent.pid) is None
        assert bystander.poll() is None
    finally:
        for proc in (agent, bystander):
            if proc.poll() is None:
                proc.kill()
            proc.wait()


def test_terminate_unknown_pid_still_unregisters() -> None:
    monitor = ProcessMonitor()
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    monitor.register(proc.pid, "gone")

    assert monitor.terminate(proc.pid) is False
    assert monitor.get(proc.pid) is None


def test_sweep_hooks_run_and_errors_are_contained() -> None:
    monitor = ProcessMonitor(max_cpu_percent=100_000)
    calls: list[str] = []

    def broken() -> None:
        calls.append("broken")
        raise RuntimeError("hook failure")

    monitor.add_sweep_hook(broken)
    monitor.add_sweep_hook(lambda: calls.append("ok"))

    monitor.sweep()

    assert calls == ["broken", "ok"]


def test_watched_names_match_command_line() -> None:
    monitor = ProcessMonitor(watched_names=["Gemini"])
    monitor.watch("claude")

    assert monitor._is_watched("node", ["node", "/usr/lib/gemini/cli.js"]) is True
    assert monitor._is_watched("claude", None) is True
    assert monitor._is_watched("bash", ["bash", "-c", "ls"]) is False


def test_background_thread_sweeps_until_stopped() -> None:
    monitor = ProcessMonitor(interval_seconds=0.05, max_cpu_percent=100_000)
    sweeps: list[float] = []
    monitor.add_sweep_hook(lambda: sweeps.append(time.monotonic()))

    monitor.start()
    try:
        assert monitor.monitoring_active is True
        deadline = time.monotonic() + 5
        while not sweeps and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        monitor.stop()

    assert sweeps
    assert monitor.monitoring_active is False
    assert monitor.stats()["monitoring_active"] is False


def test_stats_snapshot() -> None:
    monitor = ProcessMonitor(max_cpu_percent=75, max_age_seconds=120)
    monitor.register(1111, "claude", owner="call-1")

    stats = monitor.stats()
    assert stats["active_processes"] == 1
    assert stats["thresholds"]["max_cpu_percent"] == 75
    assert stats["thresholds"]["max_age_seconds"] == 120
    assert stats["processes"][0]["pid"] == 1111
    assert stats["processes"][0]["age_seconds"] >= 0

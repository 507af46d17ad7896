"""Background safety net for runaway agent processes.

The adapter enforces its own per-call timeout. The monitor exists for the
processes that escape that: detached children, calls whose adapter crashed
before cleaning up, agents spinning a CPU after answering.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import psutil

logger = logging.getLogger(__name__)

SweepHook = Callable[[], object]


@dataclass(slots=True)
class ProcessRecord:
    pid: int
    name: str
    registered_at: float = field(default_factory=time.time)
    owner: str | None = None
    warnings: int = 0

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.registered_at


class ProcessMonitor:
    """Track in-flight agent processes and terminate the ones that misbehave.

    Registration happens on the event loop, sweeps run on a daemon thread, so
    the process table is guarded by a lock. `unregister` is idempotent: the
    owning adapter call and the sweep may both remove the same pid.
    """

    def __init__(
        self,
        *,
        max_cpu_percent: float = 50.0,
        max_age_seconds: float = 300.0,
        interval_seconds: float = 10.0,
        grace_seconds: float = 2.0,
        watched_names: Iterable[str] = (),
    ) -> None:
        self.max_cpu_percent = max_cpu_percent
        self.max_age_seconds = max_age_seconds
        self.interval_seconds = interval_seconds
        self.grace_seconds = grace_seconds
        self.watched_names: set[str] = {n.lower() for n in watched_names if n}

        self._records: dict[int, ProcessRecord] = {}
        self._lock = threading.Lock()
        self._hooks: list[SweepHook] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # -- process table -------------------------------------------------------

    def register(self, pid: int, name: str, owner: str | None = None) -> ProcessRecord:
        record = ProcessRecord(pid=pid, name=name, owner=owner)
        with self._lock:
            self._records[pid] = record
        logger.info("Process registered", extra={"pid": pid, "process_name": name})
        return record

    def unregister(self, pid: int) -> bool:
        with self._lock:
            record = self._records.pop(pid, None)
        if record is None:
            return False
        logger.info("Process unregistered", extra={"pid": pid, "process_name": record.name})
        return True

    def get(self, pid: int) -> ProcessRecord | None:
        with self._lock:
            return self._records.get(pid)

    def watch(self, name: str) -> None:
        """Add an agent command name to the set the sweep may terminate."""

        if name:
            self.watched_names.add(name.lower())

    def add_sweep_hook(self, hook: SweepHook) -> None:
        self._hooks.append(hook)

    # -- sweeping ------------------------------------------------------------

    def _is_watched(self, name: str, cmdline: list[str] | None) -> bool:
        haystack = " ".join([name, *(cmdline or [])]).lower()
        return any(watched in haystack for watched in self.watched_names)

    def sweep(self) -> list[int]:
        """Run one health check and return the pids that were terminated."""

        now = time.time()
        own_pid = os.getpid()
        with self._lock:
            records = dict(self._records)

        to_kill: dict[int, str] = {}
        for proc in psutil.process_iter(["pid", "name", "cmdline", "cpu_percent"]):
            try:
                info = proc.info
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

            pid = info.get("pid")
            if pid is None or pid == own_pid:
                continue
            name = info.get("name") or ""
            cmdline = info.get("cmdline")
            cpu = info.get("cpu_percent") or 0.0
            record = records.get(pid)
            watched = record is not None or self._is_watched(name, cmdline)

            if cpu > self.max_cpu_percent:
                logger.warning(
                    "High CPU usage detected",
                    extra={"pid": pid, "cpu_percent": cpu, "process_name": name},
                )
                if watched:
                    to_kill[pid] = "cpu"

            if record is not None and record.age(now) > self.max_age_seconds:
                record.warnings += 1
                logger.warning(
                    "Long-running agent process",
                    extra={"pid": pid, "process_name": record.name, "age_seconds": round(record.age(now))},
                )
                to_kill[pid] = "age"

        for pid, reason in to_kill.items():
            logger.error("Terminating runaway process", extra={"pid": pid, "reason": reason})
            self.terminate(pid)

        for hook in self._hooks:
            try:
                hook()
            except Exception:
                logger.exception("Sweep hook failed")

        return list(to_kill)

    def terminate(self, pid: int) -> bool:
        """Graceful terminate, then kill after the grace window; always unregisters."""

        try:
            proc = psutil.Process(pid)
            proc.terminate()
            try:
                proc.wait(timeout=self.grace_seconds)
            except psutil.TimeoutExpired:
                proc.kill()
                logger.warning("Force kill sent", extra={"pid": pid})
            return True
        except psutil.NoSuchProcess:
            logger.info("Process already exited", extra={"pid": pid})
            return False
        except psutil.AccessDenied:
            logger.error("Not allowed to terminate process", extra={"pid": pid})
            return False
        finally:
            self.unregister(pid)

    # -- background thread ---------------------------------------------------

    @property
    def monitoring_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.monitoring_active:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="process-monitor",
            daemon=True,
        )
        self._thread.start()
        logger.info("Process monitoring started", extra={"interval_seconds": self.interval_seconds})

    def stop(self) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        thread.join(timeout=self.interval_seconds + self.grace_seconds + 1)
        self._thread = None
        logger.info("Process monitoring stopped")

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.sweep()
            except Exception:
                logger.exception("Process monitoring error")

    def stats(self) -> dict[str, Any]:
        now = time.time()
        with self._lock:
            records = list(self._records.values())
        return {
            "active_processes": len(records),
            "monitoring_active": self.monitoring_active,
            "thresholds": {
                "max_cpu_percent": self.max_cpu_percent,
                "max_age_seconds": self.max_age_seconds,
                "interval_seconds": self.interval_seconds,
                "grace_seconds": self.grace_seconds,
            },
            "processes": [
                {
                    "pid": r.pid,
                    "name": r.name,
                    "owner": r.owner,
                    "age_seconds": round(r.age(now)),
                    "warnings": r.warnings,
                }
                for r in records
            ],
        }

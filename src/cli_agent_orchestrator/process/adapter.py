"""Turn a one-shot agent CLI invocation into an awaitable call.

Agents are opaque text-streaming subprocesses with no response framing, so the
adapter has to infer when an answer is finished:

1. the process exits (non-empty output is a result, even on a non-zero exit);
2. the agent prints its declared sentinel;
3. the output looks complete (see `looks_complete`) and stays quiet for a short
   quiescence window.

Rule 3 is an approximation. It can cut off an agent that pauses mid-answer, so
agents that support an explicit sentinel should declare one, and agents that
exit on their own can disable the heuristic.

A hard timeout is enforced regardless of the heuristic.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import re
import uuid
from collections.abc import Sequence
from typing import Literal

from cli_agent_orchestrator.errors import ProcessExitError, ProcessTimeout
from cli_agent_orchestrator.process.monitor import ProcessMonitor

logger = logging.getLogger(__name__)

InputMethod = Literal["stdin", "args"]

_READ_CHUNK = 4096
_SENTENCE_END = re.compile(r"[.!?]\s*$")
_CODE_TOKENS = ("def ", "function ", "class ")


def looks_complete(output: str, prompt: str = "") -> bool:
    """Best-effort guess that an agent has finished answering."""

    if len(output) <= 10 or not output.strip():
        return False

    fences = output.count("```")
    if fences:
        # An open code block is never complete, whatever else matches.
        return fences % 2 == 0

    if len(output.splitlines()) >= 2 and "..." not in prompt:
        return True
    if _SENTENCE_END.search(output):
        return True
    return any(token in output for token in _CODE_TOKENS)


class ProcessAdapter:
    """Spawn one agent process per call and return its normalised text output."""

    def __init__(
        self,
        *,
        monitor: ProcessMonitor | None = None,
        quiescence: float = 0.2,
        grace_period: float = 2.0,
    ) -> None:
        self.monitor = monitor
        self.quiescence = quiescence
        self.grace_period = grace_period

    async def invoke(
        self,
        command: Sequence[str],
        input_text: str,
        *,
        timeout: float,
        input_method: InputMethod = "stdin",
        name: str | None = None,
        env_remove: Sequence[str] = (),
        sentinel: str | None = None,
        detect_completion: bool = True,
    ) -> str:
        if not command:
            raise ValueError("command must not be empty")

        argv = list(command)
        if input_method == "args":
            argv.append(input_text)

        env = dict(os.environ)
        for key in env_remove:
            env.pop(key, None)

        label = name or os.path.basename(argv[0])
        call_id = uuid.uuid4().hex

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if input_method == "stdin" else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.error("Failed to spawn agent", extra={"process_name": label, "error": str(e)})
            raise ProcessExitError(label, None, str(e)) from e
        if self.monitor is not None:
            self.monitor.register(proc.pid, label, owner=call_id)

        # The deadline also covers feeding stdin; large prompts can fill the pipe.
        deadline = asyncio.get_running_loop().time() + timeout
        stderr_chunks: list[bytes] = []
        stderr_task = asyncio.create_task(_drain(proc.stderr, stderr_chunks))
        stdin_task: asyncio.Task[None] | None = None
        if input_method == "stdin":
            stdin_task = asyncio.create_task(_feed_stdin(proc, input_text))
        try:
            return await self._collect(
                proc,
                label=label,
                prompt=input_text,
                timeout=timeout,
                deadline=deadline,
                sentinel=sentinel,
                detect_completion=detect_completion,
                stderr_task=stderr_task,
                stderr_chunks=stderr_chunks,
            )
        finally:
            if stdin_task is not None:
                stdin_task.cancel()
            if proc.returncode is None:
                await self._terminate(proc)
            stderr_task.cancel()
            await asyncio.gather(
                *(t for t in (stderr_task, stdin_task) if t is not None),
                return_exceptions=True,
            )
            if self.monitor is not None:
                self.monitor.unregister(proc.pid)

    async def _collect(
        self,
        proc: asyncio.subprocess.Process,
        *,
        label: str,
        prompt: str,
        timeout: float,
        deadline: float,
        sentinel: str | None,
        detect_completion: bool,
        stderr_task: asyncio.Task[None],
        stderr_chunks: list[bytes],
    ) -> str:
        stdout = proc.stdout
        if stdout is None:
            raise ValueError("agent process has no stdout pipe")
        loop = asyncio.get_running_loop()
        buffer = bytearray()
        quiet_until: float | None = None

        while True:
            now = loop.time()
            if now >= deadline:
                raise ProcessTimeout(label, timeout, partial_output=_decode(buffer))

            wait = deadline - now
            if quiet_until is not None:
                wait = min(wait, max(quiet_until - now, 0.0))

            try:
                chunk = await asyncio.wait_for(stdout.read(_READ_CHUNK), timeout=wait)
            except TimeoutError:
                if quiet_until is not None and loop.time() >= quiet_until:
                    logger.info(
                        "Agent output judged complete",
                        extra={"process_name": label, "pid": proc.pid, "chars": len(buffer)},
                    )
                    return _decode(buffer)
                continue

            if not chunk:
                return await self._finish_on_exit(
                    proc,
                    label=label,
                    buffer=buffer,
                    deadline=deadline,
                    timeout=timeout,
                    stderr_task=stderr_task,
                    stderr_chunks=stderr_chunks,
                )

            buffer.extend(chunk)
            text = buffer.decode("utf-8", errors="replace")

            if sentinel and sentinel in text:
                return text.split(sentinel, 1)[0].strip()

            if detect_completion and looks_complete(text, prompt):
                quiet_until = loop.time() + self.quiescence
            else:
                quiet_until = None

    async def _finish_on_exit(
        self,
        proc: asyncio.subprocess.Process,
        *,
        label: str,
        buffer: bytearray,
        deadline: float,
        timeout: float,
        stderr_task: asyncio.Task[None],
        stderr_chunks: list[bytes],
    ) -> str:
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=remaining)
        except TimeoutError:
            raise ProcessTimeout(label, timeout, partial_output=_decode(buffer)) from None

        output = _decode(buffer)
        if output:
            if returncode != 0:
                logger.warning(
                    "Agent exited with non-zero code but produced output",
                    extra={"process_name": label, "pid": proc.pid, "returncode": returncode},
                )
            return output

        # stderr is drained concurrently; give it a moment to reach EOF.
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(asyncio.shield(stderr_task), timeout=1.0)
        stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")
        logger.error(
            "Agent produced no output",
            extra={"process_name": label, "pid": proc.pid, "returncode": returncode},
        )
        raise ProcessExitError(label, returncode, stderr)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.grace_period)
        except TimeoutError:
            logger.warning("Agent ignored terminate; killing", extra={"pid": proc.pid})
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()


async def check_available(command: str, *, timeout: float = 5.0) -> bool:
    """Return True when `<command> --version` exits cleanly within the timeout."""

    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            "--version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return False

    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout=timeout)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        return False
    return returncode == 0


async def _feed_stdin(proc: asyncio.subprocess.Process, text: str) -> None:
    stdin = proc.stdin
    if stdin is None:
        return
    try:
        stdin.write(text.encode("utf-8") + b"\n")
        await stdin.drain()
        stdin.close()
        await stdin.wait_closed()
    except (BrokenPipeError, ConnectionResetError):
        # The agent may exit before reading its input; its output decides the result.
        logger.debug("Agent closed stdin early", extra={"pid": proc.pid})


async def _drain(stream: asyncio.StreamReader | None, sink: list[bytes]) -> None:
    if stream is None:
        return
    while chunk := await stream.read(_READ_CHUNK):
        sink.append(chunk)


def _decode(buffer: bytes | bytearray) -> str:
    return bytes(buffer).decode("utf-8", errors="replace").strip()

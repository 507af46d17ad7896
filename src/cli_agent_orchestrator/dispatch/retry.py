"""Exponential backoff, shared by the retry decorator and workflow steps."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from cli_agent_orchestrator.dispatch.base import DispatchOptions, DispatchResult, Dispatcher, Target
from cli_agent_orchestrator.errors import ExecutionError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy(BaseModel):
    """Retry up to `attempts` more times, waiting `delay * backoff_factor ** (n - 1)`."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=3, ge=0)
    delay: float = Field(default=1.0, ge=0.0, description="Seconds before the first retry")
    backoff_factor: float = Field(default=2.0, ge=1.0)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""

        return self.delay * self.backoff_factor ** (attempt - 1)


class RetryingDispatcher:
    """Decorate a dispatcher with exponential-backoff retries.

    Only execution errors are retried. Configuration errors (unknown agent,
    ...) propagate immediately, and after the last attempt the final error is
    re-raised unchanged.
    """

    def __init__(
        self,
        inner: Dispatcher,
        policy: RetryPolicy,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.inner = inner
        self.policy = policy
        self._sleep = sleep

    async def dispatch(
        self,
        prompt: str,
        target: Target,
        options: DispatchOptions | None = None,
    ) -> DispatchResult:
        attempt = 0
        while True:
            try:
                return await self.inner.dispatch(prompt, target, options)
            except ExecutionError as e:
                if attempt >= self.policy.attempts:
                    if self.policy.attempts:
                        logger.error(
                            "All retry attempts failed",
                            extra={"target": str(target), "attempts": attempt + 1},
                        )
                    raise
                attempt += 1
                wait = self.policy.delay_for(attempt)
                logger.warning(
                    "Dispatch failed; retrying",
                    extra={
                        "target": str(target),
                        "attempt": attempt,
                        "delay_seconds": wait,
                        "error": str(e),
                    },
                )
                await self._sleep(wait)

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from cli_agent_orchestrator.agents.descriptor import Requirements

AUTO = "auto"

DispatchMode = Literal["race", "all", "vote"]
Target = str | Sequence[str]


@dataclass(frozen=True, slots=True)
class DispatchOptions:
    role: str | None = None
    mode: DispatchMode = "all"
    timeout: float | None = None
    requirements: Requirements | None = None
    use_cache: bool = True


@dataclass(frozen=True, slots=True)
class AgentOutcome:
    """Tagged result of one agent in a parallel dispatch."""

    agent: str
    output: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_json(self) -> dict[str, object]:
        if self.ok:
            return {"agent": self.agent, "status": "success", "output": self.output}
        return {"agent": self.agent, "status": "error", "error": self.error}


# race and vote yield a failed AgentOutcome when every branch errored.
DispatchResult = str | AgentOutcome | list[AgentOutcome]


class Dispatcher(Protocol):
    """Route a prompt to one agent, an auto-selected agent, or several agents."""

    async def dispatch(
        self,
        prompt: str,
        target: Target,
        options: DispatchOptions | None = None,
    ) -> DispatchResult: ...

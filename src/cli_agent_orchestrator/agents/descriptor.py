"""Agent descriptors: how to call an agent and what it is good at."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from cli_agent_orchestrator.core.config import AgentsConfig

logger = logging.getLogger(__name__)

Role = Literal["plan", "execute", "review"]
Complexity = Literal["low", "medium", "high"]

# Roles are requested as verbs, capabilities are scored as nouns.
ROLE_CAPABILITY: dict[str, str] = {
    "plan": "planning",
    "planning": "planning",
    "execute": "execution",
    "execution": "execution",
    "review": "review",
}


class Capabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    planning: float = Field(default=0.5, ge=0.0, le=1.0)
    execution: float = Field(default=0.5, ge=0.0, le=1.0)
    review: float = Field(default=0.5, ge=0.0, le=1.0)

    def for_role(self, role: str | None) -> float:
        attr = ROLE_CAPABILITY.get(role or "")
        return float(getattr(self, attr)) if attr else 0.0


class AgentDescriptor(BaseModel):
    """Immutable description of one external command-line agent."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    command: str = Field(min_length=1, description="Executable to spawn")
    args: list[str] = Field(default_factory=list, description="Arguments before the prompt")
    input_method: Literal["stdin", "args"] = Field(
        default="stdin",
        description="Whether the prompt is written to stdin or appended as the last argument",
    )
    env_remove: list[str] = Field(
        default_factory=list,
        description="Environment variables stripped before spawning",
    )
    capabilities: Capabilities = Field(default_factory=Capabilities)
    context_window: int = Field(default=100_000, gt=0, description="Context size in tokens")
    languages: list[str] = Field(default_factory=list)
    sentinel: str | None = Field(
        default=None,
        description="Marker the agent prints after its answer, if it supports one",
    )
    detect_completion: bool = Field(
        default=True,
        description="Use the output heuristic to decide the agent has finished",
    )
    description: str = ""

    def argv(self) -> list[str]:
        return [self.command, *self.args]


class Requirements(BaseModel):
    """What a caller needs from an agent. Every field is optional."""

    role: str | None = None
    language: str | None = None
    context_size: int | None = Field(default=None, ge=0)
    complexity: Complexity | None = None

    def is_empty(self) -> bool:
        return not any(
            (self.role, self.language, self.context_size, self.complexity),
        )


_COMMON_LANGUAGES = ["python", "javascript", "typescript", "go", "rust", "java"]


def builtin_descriptors(config: AgentsConfig) -> list[AgentDescriptor]:
    """Descriptors for the agents shipped with the orchestrator."""

    return [
        AgentDescriptor(
            name="claude",
            command=config.claude_command,
            args=list(config.claude_args),
            input_method="stdin",
            capabilities=Capabilities(planning=0.95, execution=0.85, review=0.90),
            context_window=200_000,
            languages=_COMMON_LANGUAGES,
            description="Claude CLI in print mode; strongest at planning and review.",
        ),
        AgentDescriptor(
            name="gemini",
            command=config.gemini_command,
            args=list(config.gemini_args),
            input_method="args",
            env_remove=["GOOGLE_API_KEY"],
            capabilities=Capabilities(planning=0.85, execution=0.95, review=0.80),
            context_window=1_000_000,
            languages=_COMMON_LANGUAGES,
            description="Gemini CLI; strongest at execution over large contexts.",
        ),
    ]


def load_descriptors(path: Path) -> list[AgentDescriptor]:
    """Load extra agent descriptors from a JSON list."""

    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Agent definitions file must contain a JSON list: {path}")
    descriptors = [AgentDescriptor.model_validate(item) for item in raw]
    logger.info("Loaded agent definitions", extra={"path": str(path), "count": len(descriptors)})
    return descriptors

"""Agent registry and capability-based selection."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from cli_agent_orchestrator.agents.descriptor import AgentDescriptor, Requirements
from cli_agent_orchestrator.errors import AgentAlreadyRegistered, AgentNotFound

logger = logging.getLogger(__name__)

ROLE_WEIGHT = 10.0
LANGUAGE_BONUS = 5.0
CONTEXT_BONUS = 3.0
COMPLEXITY_BONUS = 2.0

# Rough approximation: 1 token is about 4 characters.
CHARS_PER_TOKEN = 4


@dataclass(frozen=True, slots=True)
class Recommendation:
    agent: str
    score: float
    reasons: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, object]:
        return {
            "agent": self.agent,
            "score": round(self.score, 3),
            "reasons": list(self.reasons),
            "warnings": list(self.warnings),
        }


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


class AgentRegistry:
    """Named agents in registration order.

    Each name is registered exactly once, at startup; the table is read-only
    afterwards.
    """

    def __init__(self) -> None:
        self._agents: dict[str, AgentDescriptor] = {}

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[AgentDescriptor]:
        return iter(list(self._agents.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def names(self) -> list[str]:
        return list(self._agents)

    def register(self, descriptor: AgentDescriptor) -> None:
        if descriptor.name in self._agents:
            raise AgentAlreadyRegistered(descriptor.name)
        self._agents[descriptor.name] = descriptor
        logger.debug("Agent registered", extra={"agent": descriptor.name})

    def get(self, name: str) -> AgentDescriptor | None:
        return self._agents.get(name)

    def require(self, name: str) -> AgentDescriptor:
        descriptor = self._agents.get(name)
        if descriptor is None:
            raise AgentNotFound(name)
        return descriptor

    @staticmethod
    def score(descriptor: AgentDescriptor, requirements: Requirements | None) -> float:
        """Score how well an agent matches a requirement set."""

        if requirements is None or requirements.is_empty():
            return 1.0

        caps = descriptor.capabilities
        score = 0.0

        if requirements.role:
            score += caps.for_role(requirements.role) * ROLE_WEIGHT

        if requirements.language and requirements.language.lower() in (
            lang.lower() for lang in descriptor.languages
        ):
            score += LANGUAGE_BONUS

        if requirements.context_size and descriptor.context_window >= requirements.context_size:
            score += CONTEXT_BONUS

        if requirements.complexity == "high" and caps.planning > 0.9:
            score += COMPLEXITY_BONUS
        elif requirements.complexity == "low" and caps.execution > 0.9:
            score += COMPLEXITY_BONUS

        return score

    def select_best(self, requirements: Requirements | None = None) -> str:
        """Return the name of the best-scoring agent.

        Ties go to the earlier registration. Never fails while at least one
        agent is registered: with no positive score, the first agent wins.
        """

        if not self._agents:
            raise AgentNotFound("auto")

        best_name: str | None = None
        best_score = 0.0
        for name, descriptor in self._agents.items():
            score = self.score(descriptor, requirements)
            if score > best_score:
                best_name, best_score = name, score

        if best_name is None:
            best_name = next(iter(self._agents))

        logger.debug("Agent selected", extra={"agent": best_name, "score": best_score})
        return best_name

    def rank(self, task: str, requirements: Requirements | None = None) -> list[Recommendation]:
        """Rank every agent for a task, explaining each score."""

        requirements = requirements or Requirements()
        if requirements.context_size is None and task:
            requirements = requirements.model_copy(
                update={"context_size": estimate_tokens(task)}
            )

        recommendations: list[Recommendation] = []
        for descriptor in self._agents.values():
            reasons, warnings = _explain(descriptor, requirements)
            recommendations.append(
                Recommendation(
                    agent=descriptor.name,
                    score=self.score(descriptor, requirements),
                    reasons=reasons,
                    warnings=warnings,
                )
            )

        # sorted() is stable, so equal scores keep registration order.
        return sorted(recommendations, key=lambda r: r.score, reverse=True)


def _explain(descriptor: AgentDescriptor, requirements: Requirements) -> tuple[list[str], list[str]]:
    caps = descriptor.capabilities
    reasons: list[str] = []
    warnings: list[str] = []

    if requirements.role:
        level = caps.for_role(requirements.role)
        reasons.append(f"{requirements.role} capability {level:.2f}")
        if level < 0.5:
            warnings.append(f"weak {requirements.role} capability ({level:.2f})")

    if requirements.language:
        if requirements.language.lower() in (lang.lower() for lang in descriptor.languages):
            reasons.append(f"supports {requirements.language}")
        else:
            warnings.append(f"no declared support for {requirements.language}")

    if requirements.context_size:
        if descriptor.context_window >= requirements.context_size:
            reasons.append(
                f"context window {descriptor.context_window} covers {requirements.context_size} tokens"
            )
        else:
            warnings.append(
                f"insufficient context window: {descriptor.context_window} < "
                f"{requirements.context_size} tokens required"
            )

    if requirements.complexity == "high" and caps.planning > 0.9:
        reasons.append("strong planner for high-complexity tasks")
    elif requirements.complexity == "low" and caps.execution > 0.9:
        reasons.append("fast executor for low-complexity tasks")

    return reasons, warnings

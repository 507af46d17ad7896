from __future__ import annotations

import json
import logging
from pathlib import Path

from cli_agent_orchestrator.orchestrator.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)


def parse_workflows(raw: object) -> list[WorkflowDefinition]:
    """Accept either a JSON list of workflows or a mapping of name -> workflow."""

    if isinstance(raw, dict):
        items = []
        for name, body in raw.items():
            if not isinstance(body, dict):
                raise ValueError(f"Workflow {name!r} must be an object")
            items.append({"name": name, **body})
    elif isinstance(raw, list):
        items = raw
    else:
        raise ValueError("Workflow definitions must be a JSON list or object")
    return [WorkflowDefinition.model_validate(item) for item in items]


def load_workflows(path: Path) -> list[WorkflowDefinition]:
    workflows = parse_workflows(json.loads(path.read_text(encoding="utf-8")))
    logger.info("Loaded workflow definitions", extra={"path": str(path), "count": len(workflows)})
    return workflows

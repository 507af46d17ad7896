from __future__ import annotations

from cli_agent_orchestrator.orchestrator.workflow.models import (
    StepDefinition,
    WorkflowDefinition,
    WorkflowSettings,
)


def builtin_workflows() -> list[WorkflowDefinition]:
    return [
        WorkflowDefinition(
            name="direct",
            title="Direct Execution",
            description="A single step executed by an automatically selected agent.",
            steps=[
                StepDefinition(
                    name="execute",
                    description="Execute the request directly.",
                    agent="auto",
                    validator="non_empty",
                ),
            ],
        ),
        WorkflowDefinition(
            name="plan-execute",
            title="Plan and Execute",
            description="One agent writes a plan, another carries it out.",
            steps=[
                StepDefinition(
                    name="planning",
                    description="Create a step-by-step plan for the request.",
                    agent="claude",
                    role="plan",
                    stop_on_error=True,
                ),
                StepDefinition(
                    name="execution",
                    description="Execute the plan from the previous step.",
                    agent="gemini",
                    role="execute",
                    transform="with_output:planning",
                ),
            ],
        ),
        WorkflowDefinition(
            name="competitive",
            title="Competitive Execution",
            description="Both agents run the request in parallel; the first result wins.",
            steps=[
                StepDefinition(
                    name="compete",
                    agent=["claude", "gemini"],
                    role="execute",
                    mode="race",
                ),
            ],
        ),
        WorkflowDefinition(
            name="consensus",
            title="Consensus",
            description="Both agents answer; a reviewer reconciles the answers.",
            steps=[
                StepDefinition(
                    name="proposals",
                    agent=["claude", "gemini"],
                    role="execute",
                    mode="all",
                    validator="non_empty",
                    stop_on_error=True,
                ),
                StepDefinition(
                    name="synthesis",
                    agent="claude",
                    role="review",
                    transform="review:proposals",
                ),
            ],
        ),
        WorkflowDefinition(
            name="iterative",
            title="Iterative Refinement",
            description="Execute, review and refine, looping back until the iteration cap.",
            settings=WorkflowSettings(max_iterations=3),
            steps=[
                StepDefinition(
                    name="execute",
                    description="Initial execution of the task.",
                    agent="auto",
                    role="execute",
                    transform="with_output:refine",
                ),
                StepDefinition(
                    name="review",
                    agent="claude",
                    role="review",
                    transform="review:execute",
                ),
                StepDefinition(
                    name="refine",
                    description="Apply the review; loops back to execute.",
                    agent="gemini",
                    role="execute",
                    transform="with_output:review",
                    loop_to="execute",
                ),
            ],
        ),
    ]

"""Role-specific prompt templates.

Unknown (role, agent) combinations pass the prompt through unchanged.
"""

from __future__ import annotations

_TEMPLATES: dict[str, dict[str, str]] = {
    "plan": {
        "claude": "Create a detailed execution plan for: {prompt}\nProvide step-by-step tasks as JSON",
        "gemini": "{prompt}\nCreate a structured plan with clear steps",
    },
    "execute": {
        "claude": "Write code for: {prompt}\nBe concise and efficient",
        "gemini": "{prompt}",
    },
    "review": {
        "claude": "Review and improve: {prompt}\nFocus on quality and best practices",
        "gemini": "Review this: {prompt}",
    },
}


def prepare_prompt(prompt: str, role: str | None, agent: str) -> str:
    template = _TEMPLATES.get(role or "", {}).get(agent)
    if template is None:
        return prompt
    return template.format(prompt=prompt)

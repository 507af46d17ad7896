"""Named step functions.

Workflow steps reference conditions, transforms and validators by key so that
definitions stay plain data. A key is ``name`` or ``name:argument``; the
argument is passed to the function as a string.

Signatures:
- condition(context, arg) -> bool
- transform(input, context, arg) -> new input
- validator(result, arg) -> bool
"""

from __future__ import annotations

import json
import string
from collections.abc import Callable, Iterable
from typing import Any, Literal

from cli_agent_orchestrator.errors import ConfigurationError, UnknownFunctionError

FunctionKind = Literal["condition", "transform", "validator"]
Context = dict[str, Any]

ConditionFn = Callable[[Context, str | None], bool]
TransformFn = Callable[[Any, Context, str | None], Any]
ValidatorFn = Callable[[Any, str | None], bool]


def split_key(key: str) -> tuple[str, str | None]:
    name, sep, arg = key.partition(":")
    return name.strip(), (arg if sep else None)


def render(value: Any) -> str:
    """Text form of a step output, as fed into the next prompt."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(v, dict) and "agent" in v for v in value):
        parts = []
        for item in value:
            body = item.get("output") if item.get("status") == "success" else f"[error] {item.get('error')}"
            parts.append(f"## {item['agent']}\n{body}")
        return "\n\n".join(parts)
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


# Conditions


def _always(_context: Context, _arg: str | None) -> bool:
    return True


def _never(_context: Context, _arg: str | None) -> bool:
    return False


def _has(context: Context, arg: str | None) -> bool:
    return bool(arg) and context.get(arg) not in (None, "", [], {})


def _missing(context: Context, arg: str | None) -> bool:
    return not _has(context, arg)


# Transforms


def _identity(value: Any, _context: Context, _arg: str | None) -> Any:
    return value


def _with_output(value: Any, context: Context, arg: str | None) -> str:
    previous = render(context.get(arg or ""))
    if not previous:
        return render(value)
    return f"{render(value)}\n\nOutput of the {arg} step:\n{previous}"


def _review(value: Any, context: Context, arg: str | None) -> str:
    previous = render(context.get(arg or ""))
    return (
        f"Task: {render(value)}\n\n"
        f"Review the following result for correctness and completeness:\n{previous}"
    )


def _context_value(_value: Any, context: Context, arg: str | None) -> Any:
    return context.get(arg or "")


def check_template(template: str) -> list[str]:
    """Return the field names a template uses.

    Only plain names are allowed (`{input}`, `{planning}`); positional, index and
    attribute fields or unbalanced braces raise ConfigurationError.
    """

    names = []
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        raise ConfigurationError(f"Invalid template {template!r}: {e}") from e
    for _literal, field, _spec, _conversion in parsed:
        if field is None:
            continue
        if not field.isidentifier():
            raise ConfigurationError(
                f"Invalid template {template!r}: field {{{field}}} must be a plain name"
            )
        names.append(field)
    return names


def _template(value: Any, context: Context, arg: str | None) -> str:
    template = arg or "{input}"
    check_template(template)
    fields = {k: render(v) for k, v in context.items()}
    fields["input"] = render(value)
    try:
        return template.format_map(_Missing(fields))
    except ValueError as e:
        # bad format spec or conversion, e.g. {input:d}
        raise ConfigurationError(f"Invalid template {template!r}: {e}") from e


class _Missing(dict):
    def __missing__(self, key: str) -> str:
        return ""


# Validators


def _non_empty(result: Any, _arg: str | None) -> bool:
    if isinstance(result, list):
        return any(
            not isinstance(item, dict) or item.get("status", "success") == "success"
            for item in result
        )
    return bool(render(result).strip())


def _contains(result: Any, arg: str | None) -> bool:
    return (arg or "") in render(result)


def _min_length(result: Any, arg: str | None) -> bool:
    try:
        limit = int(arg or 0)
    except ValueError:
        limit = 0
    return len(render(result).strip()) >= limit


BUILTIN_CONDITIONS: dict[str, ConditionFn] = {
    "always": _always,
    "never": _never,
    "has": _has,
    "missing": _missing,
}

BUILTIN_TRANSFORMS: dict[str, TransformFn] = {
    "identity": _identity,
    "with_output": _with_output,
    "review": _review,
    "context": _context_value,
    "template": _template,
}

BUILTIN_VALIDATORS: dict[str, ValidatorFn] = {
    "non_empty": _non_empty,
    "contains": _contains,
    "min_length": _min_length,
}


class FunctionTable:
    """Registry of step functions addressed by string key."""

    def __init__(self, *, builtins: bool = True) -> None:
        self._tables: dict[FunctionKind, dict[str, Callable[..., Any]]] = {
            "condition": dict(BUILTIN_CONDITIONS) if builtins else {},
            "transform": dict(BUILTIN_TRANSFORMS) if builtins else {},
            "validator": dict(BUILTIN_VALIDATORS) if builtins else {},
        }

    def register(self, kind: FunctionKind, name: str, fn: Callable[..., Any]) -> None:
        if ":" in name:
            raise ValueError(f"Function names cannot contain ':': {name!r}")
        self._tables[kind][name] = fn

    def names(self, kind: FunctionKind) -> list[str]:
        return sorted(self._tables[kind])

    def _lookup(self, kind: FunctionKind, key: str) -> tuple[Callable[..., Any], str | None]:
        name, arg = split_key(key)
        fn = self._tables[kind].get(name)
        if fn is None:
            raise UnknownFunctionError(kind, key)
        return fn, arg

    def condition(self, key: str) -> Callable[[Context], bool]:
        fn, arg = self._lookup("condition", key)
        return lambda context: bool(fn(context, arg))

    def transform(self, key: str) -> Callable[[Any, Context], Any]:
        fn, arg = self._lookup("transform", key)
        return lambda value, context: fn(value, context, arg)

    def validator(self, key: str) -> Callable[[Any], bool]:
        fn, arg = self._lookup("validator", key)
        return lambda result: bool(fn(result, arg))

    def check(self, steps: Iterable[Any]) -> None:
        """Resolve every key a list of step definitions references."""

        for step in steps:
            if step.condition:
                self._lookup("condition", step.condition)
            if step.transform:
                fn, arg = self._lookup("transform", step.transform)
                if fn is _template and arg:
                    check_template(arg)
            if step.validator:
                self._lookup("validator", step.validator)

"""Unit tests for the step function table."""

from __future__ import annotations

import pytest

from cli_agent_orchestrator.errors import ConfigurationError, UnknownFunctionError
from cli_agent_orchestrator.orchestrator.workflow.functions import (
    FunctionTable,
    check_template,
    render,
    split_key,
)
from cli_agent_orchestrator.orchestrator.workflow.models import StepDefinition


@pytest.fixture
def table() -> FunctionTable:
    return FunctionTable()


def test_split_key() -> None:
    assert split_key("always") == ("always", None)
    assert split_key("has:planning") == ("has", "planning")
    assert split_key("template:a: {input}") == ("template", "a: {input}")


def test_conditions(table: FunctionTable) -> None:
    context = {"planning": "step 1", "empty": ""}

    assert table.condition("always")(context) is True
    assert table.condition("never")(context) is False
    assert table.condition("has:planning")(context) is True
    assert table.condition("has:empty")(context) is False
    assert table.condition("missing:review")(context) is True


def test_transforms(table: FunctionTable) -> None:
    context = {"planning": "1. do it"}

    assert table.transform("identity")("task", context) == "task"
    assert table.transform("with_output:planning")("task", context) == (
        "task\n\nOutput of the planning step:\n1. do it"
    )
    assert table.transform("with_output:absent")("task", context) == "task"
    assert "1. do it" in table.transform("review:planning")("task", context)
    assert table.transform("context:planning")("task", context) == "1. do it"


def test_validators(table: FunctionTable) -> None:
    assert table.validator("non_empty")("text") is True
    assert table.validator("non_empty")("   ") is False
    assert table.validator("contains:OK")("all OK") is True
    assert table.validator("min_length:5")("1234") is False
    assert table.validator("non_empty")(
        [{"agent": "a", "status": "error", "error": "x"}, {"agent": "b", "status": "success", "output": "y"}]
    ) is True
    assert table.validator("non_empty")([{"agent": "a", "status": "error", "error": "x"}]) is False


def test_unknown_keys_raise(table: FunctionTable) -> None:
    with pytest.raises(UnknownFunctionError):
        table.condition("sometimes")
    with pytest.raises(UnknownFunctionError):
        table.check([StepDefinition(name="s", validate="looks_good")])


def test_custom_functions(table: FunctionTable) -> None:
    table.register("validator", "is_json", lambda result, _arg: str(result).startswith("{"))
    table.register("transform", "shout", lambda value, _ctx, _arg: str(value).upper())

    assert table.validator("is_json")('{"a": 1}') is True
    assert table.transform("shout")("hey", {}) == "HEY"
    assert "is_json" in table.names("validator")
    with pytest.raises(ValueError):
        table.register("condition", "bad:name", lambda *_: True)


def test_empty_table_has_no_builtins() -> None:
    with pytest.raises(UnknownFunctionError):
        FunctionTable(builtins=False).condition("always")


def test_render_parallel_outcomes() -> None:
    text = render(
        [
            {"agent": "claude", "status": "success", "output": "A"},
            {"agent": "gemini", "status": "error", "error": "down"},
        ]
    )
    assert text == "## claude\nA\n\n## gemini\n[error] down"
    assert render(None) == ""
    assert render({"k": 1}) == '{\n  "k": 1\n}'


def test_template_fills_input_and_context(table: FunctionTable) -> None:
    render_task = table.transform("template:{input} in {lang}{unknown}")

    assert render_task("parse JSON", {"lang": "go"}) == "parse JSON in go"
    assert check_template("{input} / {planning}") == ["input", "planning"]


@pytest.mark.parametrize("template", ["{0}", "{}", "open {", "{a.b}", "{a[0]}", "close }"])
def test_malformed_templates_are_rejected_when_checked(table: FunctionTable, template: str) -> None:
    step = StepDefinition(name="frame", transform=f"template:{template}")

    with pytest.raises(ConfigurationError):
        table.check([step])


def test_bad_format_spec_is_a_configuration_error(table: FunctionTable) -> None:
    with pytest.raises(ConfigurationError):
        table.transform("template:{input:d}")("task", {})

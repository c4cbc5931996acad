import pytest

from smoke_runner.errors import EvaluationError
from smoke_runner.models import Step, StepKind
from smoke_runner.variables import resolve_step, resolve_value


def test_resolve_value_walks_paths():
    variables = {"ids": ["a", "b"], "node": {"position": {"x": 3}}}

    assert resolve_value("$ids.1", variables) == "b"
    assert resolve_value("$node.position.x", variables) == 3
    assert resolve_value(["$ids.0", {"to": "$ids.1"}], variables) == ["a", {"to": "b"}]
    assert resolve_value("price $5", variables) == "price $5"


def test_resolve_value_rejects_unknown_references():
    with pytest.raises(EvaluationError):
        resolve_value("$missing", {})
    with pytest.raises(EvaluationError):
        resolve_value("$ids.7", {"ids": ["a"]})


def test_resolve_step_updates_payload_and_expectation():
    step = Step(
        kind=StepKind.ASSERT,
        script="state => state.selectedConnectionId",
        args=["$conn"],
        expected="$conn",
    )

    resolved = resolve_step(step, {"conn": "c-1"})

    assert resolved.args == ["c-1"]
    assert resolved.expected == "c-1"
    assert resolved.has_expectation
    assert step.expected == "$conn"


def test_resolve_step_stringifies_text():
    step = Step(kind=StepKind.TYPE, text="$count")

    assert resolve_step(step, {"count": 4}).text == "4"


def test_double_dollar_escapes_literal_text():
    step = Step(kind=StepKind.TYPE, selector="textarea", text="$$HOME", args=["$$price", "$id"])

    resolved = resolve_step(step, {"id": "node-1"})

    assert resolved.text == "$HOME"
    assert resolved.args == ["$price", "node-1"]
    assert resolve_value("$$$x", {}) == "$$x"

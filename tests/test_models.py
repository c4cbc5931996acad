import pytest
from pydantic import ValidationError

from smoke_runner.models import (
    ReadinessSignal,
    ScenarioReport,
    ScenarioStatus,
    Step,
    StepKind,
    SuiteReport,
)


def test_click_requires_selector_or_coordinates():
    with pytest.raises(ValidationError):
        Step(kind=StepKind.CLICK)

    assert Step(kind=StepKind.CLICK, selector="button").selector == "button"
    assert Step(kind=StepKind.CLICK, x=10, y=20).x == 10


@pytest.mark.parametrize(
    "payload",
    [
        {"kind": "navigate"},
        {"kind": "type", "selector": "input"},
        {"kind": "key_press"},
        {"kind": "drag", "x": 1, "y": 2, "to_x": 3},
        {"kind": "assert"},
        {"kind": "store_action"},
        {"kind": "screenshot"},
        {"kind": "sleep"},
        {"kind": "click", "selector": "a", "unknown": 1},
        {"kind": "click", "selector": "a", "button": "primary"},
        {"kind": "wait_for_selector", "selector": "canvas", "state": "shown"},
    ],
)
def test_invalid_steps_are_rejected(payload):
    with pytest.raises(ValidationError):
        Step.model_validate(payload)


def test_expected_null_counts_as_expectation():
    step = Step.model_validate({"kind": "assert", "script": "() => null", "expected": None})
    assert step.has_expectation is True

    bare = Step.model_validate({"kind": "assert", "script": "() => true"})
    assert bare.has_expectation is False


def test_describe_prefers_name_then_target():
    assert Step(kind=StepKind.CLICK, selector="#go", name="press go").describe() == "press go"
    assert Step(kind=StepKind.CLICK, selector="#go").describe() == "click #go"
    assert Step(kind=StepKind.CLICK, x=5, y=6.5).describe() == "click (5, 6.5)"
    assert Step(kind=StepKind.STORE_ACTION, action="undo").describe() == "store_action undo"


def test_readiness_needs_selector_or_condition():
    with pytest.raises(ValidationError):
        ReadinessSignal(selector=None)

    signal = ReadinessSignal(selector=None, condition="() => true")
    assert signal.condition == "() => true"

    with pytest.raises(ValidationError):
        ReadinessSignal(wait_until="domready")


def test_suite_exit_code_reflects_worst_status():
    passed = ScenarioReport(name="a", url="http://x")
    failed = ScenarioReport(name="b", url="http://x", status=ScenarioStatus.FAILED)
    errored = ScenarioReport(name="c", url="http://x", status=ScenarioStatus.ERROR)

    assert SuiteReport(scenarios=[passed]).exit_code == 0
    assert SuiteReport(scenarios=[passed, failed]).exit_code == 1
    assert SuiteReport(scenarios=[failed, errored]).exit_code == 2
    assert SuiteReport(scenarios=[passed, failed]).first_failure is failed


def test_suite_report_writes_json(tmp_path):
    suite = SuiteReport(scenarios=[ScenarioReport(name="a", url="http://x")])

    path = suite.write_json(tmp_path / "out" / "report.json")

    assert '"name": "a"' in path.read_text()

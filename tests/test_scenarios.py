from pathlib import Path

import pytest

from smoke_runner.errors import ScenarioError
from smoke_runner.models import StepKind
from smoke_runner.scenarios import discover_scenarios, filter_by_tags, load_scenario

BUNDLED = Path(__file__).resolve().parents[1] / "scenarios"


def test_bundled_scenarios_load():
    scenarios = discover_scenarios([BUNDLED])

    names = {scenario.name for scenario in scenarios}
    assert {"node-count", "connection-selection", "undo-move", "toolbar-add-node"} <= names
    node_count = next(s for s in scenarios if s.name == "node-count")
    assert node_count.steps[-1].kind == StepKind.ASSERT
    assert node_count.source_file is not None


def test_name_defaults_to_file_stem(tmp_path):
    path = tmp_path / "login_flow.yaml"
    path.write_text("steps:\n  - kind: click\n    selector: '#login'\n")

    scenario = load_scenario(path)

    assert scenario.name == "login_flow"
    assert scenario.steps[0].selector == "#login"


@pytest.mark.parametrize(
    "content",
    [
        "- just a list\n",
        "steps:\n  - kind: teleport\n",
        "steps: [\n",
    ],
)
def test_invalid_scenarios_raise_scenario_error(tmp_path, content):
    path = tmp_path / "broken.yaml"
    path.write_text(content)

    with pytest.raises(ScenarioError):
        load_scenario(path)


def test_duplicate_names_are_rejected(tmp_path):
    (tmp_path / "a.yaml").write_text("name: same\n")
    (tmp_path / "b.yml").write_text("name: same\n")

    with pytest.raises(ScenarioError, match="Duplicate"):
        discover_scenarios([tmp_path])


def test_missing_path_is_reported(tmp_path):
    with pytest.raises(ScenarioError):
        discover_scenarios([tmp_path / "nope.yaml"])


def test_filter_by_tags():
    scenarios = discover_scenarios([BUNDLED])

    quick = filter_by_tags(scenarios, ["quick"])

    assert {s.name for s in quick} == {"node-count", "toolbar-add-node"}
    assert filter_by_tags(scenarios, []) == scenarios

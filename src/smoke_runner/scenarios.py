"""Loading declarative scenario files."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

import yaml
from pydantic import ValidationError

from .errors import ScenarioError
from .models import Scenario

LOGGER = logging.getLogger(__name__)

SCENARIO_SUFFIXES = (".yaml", ".yml")


def load_scenario(path: Path) -> Scenario:
    """Parse and validate a single scenario file."""

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ScenarioError(f"Cannot read scenario {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ScenarioError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ScenarioError(f"Scenario {path} must be a mapping")
    data.setdefault("name", path.stem)
    try:
        scenario = Scenario.model_validate(data)
    except ValidationError as exc:
        raise ScenarioError(f"Invalid scenario {path}:\n{exc}") from exc
    scenario.source_file = path
    return scenario


def discover_scenarios(paths: Iterable[Path]) -> list[Scenario]:
    """Load scenarios from files and directories, directories sorted by file name."""

    scenarios: list[Scenario] = []
    for path in paths:
        if path.is_dir():
            files = sorted(
                candidate
                for candidate in path.rglob("*")
                if candidate.suffix in SCENARIO_SUFFIXES and candidate.is_file()
            )
            if not files:
                LOGGER.warning("No scenario files found in %s", path)
            scenarios.extend(load_scenario(candidate) for candidate in files)
        elif path.exists():
            scenarios.append(load_scenario(path))
        else:
            raise ScenarioError(f"Scenario path does not exist: {path}")
    _check_unique_names(scenarios)
    return scenarios


def filter_by_tags(scenarios: Sequence[Scenario], tags: Sequence[str]) -> list[Scenario]:
    """Keep scenarios carrying at least one of ``tags``; no tags keeps everything."""

    if not tags:
        return list(scenarios)
    wanted = set(tags)
    return [scenario for scenario in scenarios if wanted.intersection(scenario.tags)]


def _check_unique_names(scenarios: Sequence[Scenario]) -> None:
    seen: dict[str, Path | None] = {}
    for scenario in scenarios:
        if scenario.name in seen:
            raise ScenarioError(
                f"Duplicate scenario name '{scenario.name}' in {scenario.source_file} "
                f"and {seen[scenario.name]}"
            )
        seen[scenario.name] = scenario.source_file

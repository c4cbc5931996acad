"""Command line interface for smoke-runner."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
import yaml
from pydantic import ValidationError

from .config import load_config
from .errors import HarnessError, ScenarioError
from .factory import build_reporter, build_session_factory
from .runner import ScenarioRunner
from .scenarios import discover_scenarios, filter_by_tags

app = typer.Typer(help="Run declarative browser smoke-test scenarios")

HARNESS_ERROR_EXIT = 2


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("smoke-runner"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


@app.command()
def run(
    scenario_paths: Annotated[
        list[Path],
        typer.Argument(help="Scenario files or directories of *.yaml scenarios."),
    ],
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
    env_file: Annotated[
        Optional[Path],
        typer.Option(
            "--env-file",
            help="Path to an .env file with default configuration values.",
        ),
    ] = None,
    url: Annotated[
        Optional[str],
        typer.Option("--url", help="Base URL of the application under test."),
    ] = None,
    headless: Annotated[
        Optional[bool],
        typer.Option("--headless/--headed", help="Run the browser in headless mode (or headed)."),
    ] = None,
    timeout_ms: Annotated[
        Optional[int],
        typer.Option("--timeout-ms", help="Navigation and readiness timeout in milliseconds."),
    ] = None,
    step_timeout_ms: Annotated[
        Optional[int],
        typer.Option("--step-timeout-ms", help="Default timeout for step waits in milliseconds."),
    ] = None,
    screenshot_dir: Annotated[
        Optional[Path],
        typer.Option("--screenshot-dir", help="Directory for screenshots and failure diagnostics."),
    ] = None,
    report: Annotated[
        Optional[Path],
        typer.Option("--report", help="Write a JSON report to this path."),
    ] = None,
    event_log: Annotated[
        Optional[Path],
        typer.Option("--event-log", help="Append runner events as JSON lines to this path."),
    ] = None,
    tags: Annotated[
        Optional[list[str]],
        typer.Option("--tag", "-t", help="Only run scenarios carrying this tag (repeatable)."),
    ] = None,
    capture_console: Annotated[
        bool,
        typer.Option("--capture-console", help="Record browser console output in the report."),
    ] = False,
) -> None:
    """Run scenarios; exit 0 when all pass, 1 on failures, 2 on harness errors."""

    overrides: dict[str, Any] = {}
    if url is not None:
        overrides["url"] = url
    if timeout_ms is not None:
        overrides["timeout_ms"] = timeout_ms
    if step_timeout_ms is not None:
        overrides["step_timeout_ms"] = step_timeout_ms
    if screenshot_dir is not None:
        overrides["screenshot_dir"] = str(screenshot_dir)
    if report is not None:
        overrides["report_path"] = str(report)
    if event_log is not None:
        overrides["event_log"] = str(event_log)
    if tags:
        overrides["tags"] = list(tags)
    if headless is not None or capture_console:
        overrides.setdefault("browser", {})
        if headless is not None:
            overrides["browser"]["headless"] = headless
        if capture_console:
            overrides["browser"]["capture_console"] = True

    try:
        config = load_config(config_path, env_file=env_file, **overrides)
        scenarios = filter_by_tags(discover_scenarios(scenario_paths), config.tags)
    except (ScenarioError, ValidationError, yaml.YAMLError, OSError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=HARNESS_ERROR_EXIT) from exc
    if not scenarios:
        typer.echo("Error: no scenarios selected", err=True)
        raise typer.Exit(code=HARNESS_ERROR_EXIT)
    typer.echo(f"Running {len(scenarios)} scenario(s) against {config.url}")

    try:
        reporter = build_reporter(config)
        runner = ScenarioRunner(
            config=config,
            session_factory=build_session_factory(config),
            reporter=reporter,
        )
        suite = runner.run_all(scenarios)
    except HarnessError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=HARNESS_ERROR_EXIT) from exc
    reporter.summary(suite)
    try:
        runner.write_report(suite)
    except HarnessError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=HARNESS_ERROR_EXIT) from exc
    if suite.exit_code:
        raise typer.Exit(code=suite.exit_code)
    typer.echo("All scenarios passed.")


@app.command(name="list")
def list_scenarios(
    scenario_paths: Annotated[
        list[Path],
        typer.Argument(help="Scenario files or directories of *.yaml scenarios."),
    ],
    tags: Annotated[
        Optional[list[str]],
        typer.Option("--tag", "-t", help="Only list scenarios carrying this tag (repeatable)."),
    ] = None,
) -> None:
    """List scenarios with their tags and step counts."""

    try:
        scenarios = filter_by_tags(discover_scenarios(scenario_paths), tags or [])
    except ScenarioError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=HARNESS_ERROR_EXIT) from exc
    for scenario in scenarios:
        tag_list = ", ".join(scenario.tags) or "-"
        typer.echo(f"{scenario.name}  [{tag_list}]  {len(scenario.steps)} steps")
        if scenario.description:
            typer.echo(f"    {scenario.description}")


if __name__ == "__main__":
    app()

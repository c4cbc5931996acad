"""Scenario runner that drives sessions through declarative step lists."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin

from .browser.display import VirtualDisplay
from .config import RunnerConfig
from .errors import ArtifactIOError, HarnessError, LaunchError, SessionClosed, SessionNotReady
from .factory import SessionFactory
from .models import (
    EventLevel,
    FailureDetail,
    Observation,
    ObservationKind,
    RunEvent,
    Scenario,
    ScenarioReport,
    ScenarioStatus,
    StepKind,
    SuiteReport,
)
from .reporting import Reporter

LOGGER = logging.getLogger(__name__)

_HARNESS_FAILURES = (LaunchError, SessionClosed, SessionNotReady)


class ScenarioRunner:
    """Runs scenarios one after another, each in its own browser session."""

    def __init__(
        self,
        config: RunnerConfig,
        session_factory: SessionFactory,
        reporter: Reporter,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._reporter = reporter

    def run_all(self, scenarios: Sequence[Scenario]) -> SuiteReport:
        """Run every scenario, each in a fresh session."""

        suite = SuiteReport()
        browser = self._config.browser
        display = VirtualDisplay(
            enabled=browser.virtual_display and not browser.headless,
            viewport=browser.viewport,
        )
        with display:
            for scenario in scenarios:
                suite.scenarios.append(self.run(scenario))
        return suite

    def write_report(self, suite: SuiteReport) -> Optional[Path]:
        """Write the JSON report to the configured path, if any."""

        if not self._config.report_path:
            return None
        try:
            path = suite.write_json(self._config.report_path)
        except OSError as exc:
            raise ArtifactIOError(
                f"Cannot write report to {self._config.report_path}: {exc}"
            ) from exc
        LOGGER.info("Wrote report to %s", path)
        return path

    def run(self, scenario: Scenario) -> ScenarioReport:
        """Run one scenario; the session is always closed before returning."""

        url = scenario_url(self._config.url, scenario.path)
        report = ScenarioReport(name=scenario.name, url=url)
        self._notify("scenario_started", f"Running {scenario.name} against {url}")
        variables: dict[str, Any] = {}
        step_index: Optional[int] = None
        session = self._session_factory(scenario)
        try:
            session.open()
            session.navigate(
                url,
                scenario.readiness or self._config.readiness,
                self._config.timeout_ms,
            )
            for step_index, step in enumerate(scenario.steps):
                observation = session.run_step(step, variables, index=step_index)
                report.record(observation)
                if step.save_as:
                    variables[step.save_as] = observation.value
                self._notify("step_passed", f"  ✓ {observation.message}")
        except HarnessError as exc:
            self._record_failure(report, scenario, step_index, exc)
        except Exception as exc:  # pragma: no cover
            LOGGER.exception("Unhandled error in scenario %s", scenario.name)
            self._record_failure(report, scenario, step_index, exc)
            report.status = ScenarioStatus.ERROR
        finally:
            session.close()
            report.console = list(session.console_messages)
            report.finished_at = datetime.now(timezone.utc)
        if report.status == ScenarioStatus.PASSED:
            self._notify(
                "scenario_passed",
                f"{scenario.name} passed ({len(report.observations)} steps)",
                EventLevel.SUCCESS,
            )
        return report

    def _record_failure(
        self,
        report: ScenarioReport,
        scenario: Scenario,
        step_index: Optional[int],
        exc: Exception,
    ) -> None:
        harness_error = step_index is None or isinstance(exc, _HARNESS_FAILURES)
        report.status = ScenarioStatus.ERROR if harness_error else ScenarioStatus.FAILED
        screenshot = exc.screenshot if isinstance(exc, HarnessError) else None
        step = scenario.steps[step_index] if step_index is not None else None
        report.failure = FailureDetail(
            step_index=step_index,
            step=step.describe() if step else None,
            error_type=type(exc).__name__,
            message=str(exc),
            screenshot=screenshot,
        )
        if step is not None:
            report.record(
                Observation(
                    step_index=step_index,
                    step_kind=step.kind,
                    kind=ObservationKind.ASSERTION if step.kind == StepKind.ASSERT else ObservationKind.LOG,
                    message=str(exc),
                    passed=False,
                    artifact=screenshot,
                )
            )
        where = f"step {step_index} ({step.describe()})" if step else "setup"
        self._notify(
            "scenario_failed",
            f"{scenario.name} failed at {where}: {type(exc).__name__}: {exc}",
            EventLevel.ERROR,
            {"screenshot": str(screenshot)} if screenshot else {},
        )

    def _notify(
        self,
        event_type: str,
        message: str,
        level: EventLevel = EventLevel.INFO,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        self._reporter.notify(
            RunEvent(type=event_type, message=message, level=level, data=data or {})
        )


def scenario_url(base_url: str, path: str) -> str:
    return urljoin(base_url, path) if path else base_url

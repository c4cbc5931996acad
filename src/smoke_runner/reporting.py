"""Reporters that surface scenario progress to users."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console

from .errors import ArtifactIOError
from .models import EventLevel, RunEvent, ScenarioStatus, SuiteReport

_STYLES = {
    "info": "cyan",
    "warning": "yellow",
    "error": "red",
    "success": "green",
}


class Reporter(ABC):
    """Interface for receiving runner events."""

    @abstractmethod
    def notify(self, event: RunEvent) -> None:
        """Handle a runner event."""

    def summary(self, report: SuiteReport) -> None:
        """Present the finished suite; reporters without a summary ignore it."""


class ConsoleReporter(Reporter):
    """Print runner events to the console using Rich."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console()

    def notify(self, event: RunEvent) -> None:
        style = _STYLES.get(event.level.value, "white")
        self._console.print(f"[{event.level.value.upper()}] {event.message}", style=style, markup=False)
        if event.data and event.level in (EventLevel.ERROR, EventLevel.WARNING):
            self._console.print(event.data, style="dim")

    def summary(self, report: SuiteReport) -> None:
        """Print totals and the first failing step with its diagnostic."""

        total = len(report.scenarios)
        failed = total - report.passed
        style = "green" if failed == 0 else "red"
        self._console.print(f"{report.passed}/{total} scenarios passed", style=style)
        first = report.first_failure
        if first is None or first.failure is None:
            return
        failure = first.failure
        location = f"step {failure.step_index} ({failure.step})" if failure.step else "setup"
        self._console.print(
            f"First failure: {first.name} at {location}: {failure.error_type}: {failure.message}",
            style="red",
            markup=False,
        )
        if failure.screenshot:
            self._console.print(f"Diagnostic screenshot: {failure.screenshot}", style="dim", markup=False)
        if first.status == ScenarioStatus.ERROR:
            self._console.print("Harness error: the scenario could not be executed", style="dim")



class EventLogReporter(Reporter):
    """Append runner events to a JSON-lines file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("", encoding="utf-8")
        except OSError as exc:
            raise ArtifactIOError(f"Cannot write event log to {path}: {exc}") from exc

    def notify(self, event: RunEvent) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(event.model_dump_json() + "\n")


class CompositeReporter(Reporter):
    """Fan-out reporter that propagates events to multiple reporters."""

    def __init__(self, reporters: Iterable[Reporter]) -> None:
        self._reporters = list(reporters)

    def notify(self, event: RunEvent) -> None:
        for reporter in self._reporters:
            reporter.notify(event)

    def summary(self, report: SuiteReport) -> None:
        for reporter in self._reporters:
            reporter.summary(report)

from pathlib import Path

import pytest
from rich.console import Console

from smoke_runner.browser.display import VirtualDisplay
from smoke_runner.config import RunnerConfig
from smoke_runner.errors import ArtifactIOError, LaunchError
from smoke_runner.factory import build_reporter
from smoke_runner.models import (
    EventLevel,
    FailureDetail,
    RunEvent,
    ScenarioReport,
    ScenarioStatus,
    SuiteReport,
)
from smoke_runner.reporting import CompositeReporter, ConsoleReporter, EventLogReporter, Reporter


def _reporter() -> tuple[ConsoleReporter, Console]:
    console = Console(record=True, width=200)
    return ConsoleReporter(console), console


def test_notify_prints_message_without_markup():
    reporter, console = _reporter()

    reporter.notify(RunEvent(type="step_passed", message="click [title=Undo]"))
    reporter.notify(
        RunEvent(
            type="scenario_failed",
            message="undo-move failed",
            level=EventLevel.ERROR,
            data={"screenshot": "artifacts/undo-move-failure.png"},
        )
    )

    output = console.export_text()
    assert "[INFO] click [title=Undo]" in output
    assert "[ERROR] undo-move failed" in output
    assert "undo-move-failure.png" in output


def test_summary_reports_first_failure_and_screenshot():
    reporter, console = _reporter()
    suite = SuiteReport(
        scenarios=[
            ScenarioReport(name="node-count", url="http://x", status=ScenarioStatus.PASSED),
            ScenarioReport(
                name="undo-move",
                url="http://x",
                status=ScenarioStatus.FAILED,
                failure=FailureDetail(
                    step_index=6,
                    step="assert",
                    error_type="AssertionFailed",
                    message="expected {'x': 140} but got {'x': 330}",
                    screenshot=Path("artifacts/undo-move-failure.png"),
                ),
            ),
            ScenarioReport(name="later", url="http://x", status=ScenarioStatus.FAILED),
        ]
    )

    reporter.summary(suite)

    output = console.export_text()
    assert "1/3 scenarios passed" in output
    assert "First failure: undo-move at step 6 (assert): AssertionFailed" in output
    assert "Diagnostic screenshot: artifacts/undo-move-failure.png" in output


def test_summary_marks_harness_errors():
    reporter, console = _reporter()
    suite = SuiteReport(
        scenarios=[
            ScenarioReport(
                name="node-count",
                url="http://x",
                status=ScenarioStatus.ERROR,
                failure=FailureDetail(error_type="LaunchError", message="no chromium"),
            )
        ]
    )

    reporter.summary(suite)

    output = console.export_text()
    assert "0/1 scenarios passed" in output
    assert "node-count at setup: LaunchError: no chromium" in output
    assert "Harness error" in output


def test_disabled_virtual_display_is_a_no_op():
    display = VirtualDisplay(enabled=False)

    with display as value:
        assert value is None
        assert not display.active


def test_virtual_display_without_xvfb_falls_back(monkeypatch, caplog):
    monkeypatch.setattr("smoke_runner.browser.display.shutil.which", lambda _: None)
    display = VirtualDisplay(enabled=True)

    assert display.start() is None
    assert display.enabled is False
    assert "Xvfb not found" in caplog.text


class FakeDisplay:
    instances: list["FakeDisplay"] = []

    def __init__(self, visible, size) -> None:
        self.size = size
        self.started = False
        self.stopped = False
        FakeDisplay.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True


def test_virtual_display_without_display_variable_is_stopped(monkeypatch):
    monkeypatch.setattr("smoke_runner.browser.display.shutil.which", lambda _: "/usr/bin/Xvfb")
    monkeypatch.setattr("smoke_runner.browser.display.Display", FakeDisplay)
    monkeypatch.delenv("DISPLAY", raising=False)
    display = VirtualDisplay(enabled=True)

    with pytest.raises(LaunchError):
        display.start()

    assert FakeDisplay.instances[-1].started
    assert FakeDisplay.instances[-1].stopped
    assert not display.active


class RecordingReporter(Reporter):
    def __init__(self) -> None:
        self.events: list[RunEvent] = []
        self.summaries: list[SuiteReport] = []

    def notify(self, event: RunEvent) -> None:
        self.events.append(event)

    def summary(self, report: SuiteReport) -> None:
        self.summaries.append(report)


class EventsOnlyReporter(Reporter):
    def __init__(self) -> None:
        self.events: list[RunEvent] = []

    def notify(self, event: RunEvent) -> None:
        self.events.append(event)


def test_composite_reporter_fans_out_events_and_summaries():
    first, second = RecordingReporter(), EventsOnlyReporter()
    composite = CompositeReporter([first, second])
    event = RunEvent(type="scenario_started", message="Running node-count")
    suite = SuiteReport()

    composite.notify(event)
    composite.summary(suite)

    assert first.events == [event]
    assert second.events == [event]
    assert first.summaries == [suite]


def test_event_log_reporter_writes_json_lines(tmp_path):
    path = tmp_path / "logs" / "events.jsonl"
    reporter = EventLogReporter(path)

    reporter.notify(RunEvent(type="scenario_started", message="Running node-count"))
    reporter.notify(RunEvent(type="scenario_failed", message="boom", level=EventLevel.ERROR))

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    assert RunEvent.model_validate_json(lines[1]).level == EventLevel.ERROR


def test_event_log_reporter_rejects_unwritable_path(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("occupied")

    with pytest.raises(ArtifactIOError):
        EventLogReporter(blocker / "events.jsonl")


def test_build_reporter_adds_event_log_when_configured(tmp_path):
    path = tmp_path / "events.jsonl"
    reporter = build_reporter(RunnerConfig.model_validate({"event_log": str(path)}))

    reporter.notify(RunEvent(type="step_passed", message="click canvas"))

    assert isinstance(reporter, CompositeReporter)
    assert "click canvas" in path.read_text()

"""Factories for constructing components from configuration."""

from __future__ import annotations

import re
from typing import Any, Callable

from .browser.base import BrowserSession
from .browser.playwright_session import PlaywrightBrowserSession
from .config import BrowserConfig, RunnerConfig
from .models import Scenario
from .reporting import CompositeReporter, ConsoleReporter, EventLogReporter, Reporter

SessionFactory = Callable[[Scenario], BrowserSession]


def open_session(config: BrowserConfig | None = None, **options: Any) -> PlaywrightBrowserSession:
    """Launch a browser with one open page; raises ``LaunchError`` on failure."""

    session = PlaywrightBrowserSession(config, **options)
    session.open()
    return session


def build_session_factory(config: RunnerConfig) -> SessionFactory:
    def _factory(scenario: Scenario) -> BrowserSession:
        return PlaywrightBrowserSession(
            config.browser,
            store=scenario.store or config.store,
            default_timeout_ms=config.step_timeout_ms,
            artifact_dir=config.screenshot_dir,
            failure_dir=config.screenshot_dir if config.capture_on_failure else None,
            label=slugify(scenario.name),
        )

    return _factory


def build_reporter(config: RunnerConfig) -> CompositeReporter:
    reporters: list[Reporter] = [ConsoleReporter()]
    if config.event_log:
        reporters.append(EventLogReporter(config.event_log))
    return CompositeReporter(reporters)


def slugify(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", name).strip("-").lower() or "scenario"

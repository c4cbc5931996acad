"""Playwright-powered browser session implementation."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin

from playwright.sync_api import Error, Locator, Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import BrowserConfig
from ..errors import (
    AssertionFailed,
    EvaluationError,
    LaunchError,
    NavigationError,
    NavigationTimeout,
    SessionClosed,
    StepError,
    TargetAmbiguous,
    TargetNotFound,
    WaitTimeout,
)
from ..models import (
    ConsoleMessage,
    EvaluationSource,
    Observation,
    ObservationKind,
    ReadinessSignal,
    Step,
    StepKind,
    StoreConfig,
)
from .base import BrowserSession, elapsed_ms

LOGGER = logging.getLogger(__name__)

_SCRIPT_KINDS = {
    StepKind.WAIT_FOR_CONDITION,
    StepKind.EVALUATE,
    StepKind.STORE_ACTION,
    StepKind.ASSERT,
}

_STORE_ACTION_JS = """([name, args]) => {{
  const action = ({get_action})(name);
  if (typeof action !== "function") {{
    throw new Error(`Unknown store action: ${{name}}`);
  }}
  return action(...args);
}}"""


class PlaywrightBrowserSession(BrowserSession):
    """Browser session backed by Playwright."""

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        *,
        store: Optional[StoreConfig] = None,
        default_timeout_ms: int = 5_000,
        artifact_dir: Optional[Path] = None,
        failure_dir: Optional[Path] = None,
        label: str = "session",
    ) -> None:
        super().__init__(artifact_dir=artifact_dir, failure_dir=failure_dir, label=label)
        self._config = config or BrowserConfig()
        self._store = store
        self._default_timeout_ms = default_timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None
        self._page: Optional[Page] = None
        self._readiness: Optional[ReadinessSignal] = None
        self._navigation_timeout_ms: Optional[int] = None

    @property
    def browser_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def _launch(self) -> None:
        engine = self._config.engine
        LOGGER.debug("Starting Playwright %s browser", engine)
        try:
            self._playwright = sync_playwright().start()
            browser_type = getattr(self._playwright, engine, None)
            if browser_type is None:
                raise LaunchError(f"Unsupported browser engine: {engine}")
            self._browser = browser_type.launch(
                headless=self._config.headless,
                args=list(self._config.launch_args),
            )
        except Error as exc:
            raise LaunchError(f"Could not launch {engine}: {exc}") from exc

    def _open_page(self) -> None:
        try:
            self._context = self._browser.new_context(viewport=self._config.viewport.model_dump())
            self._page = self._context.new_page()
        except Error as exc:
            raise LaunchError(f"Could not open a page: {exc}") from exc
        self._page.set_default_timeout(self._default_timeout_ms)
        if self._config.capture_console:
            self._page.on("console", self._on_console)
            self._page.on("pageerror", self._on_page_error)

    def _navigate(self, url: str, readiness: ReadinessSignal, timeout_ms: int) -> None:
        page = self._live_page()
        self._readiness = readiness
        self._navigation_timeout_ms = timeout_ms
        deadline = time.monotonic() + timeout_ms / 1000
        LOGGER.info("Navigating to %s", url)
        try:
            response = page.goto(url, wait_until=readiness.wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(f"{url} did not load within {timeout_ms}ms") from exc
        except Error as exc:
            raise NavigationError(f"Could not load {url}: {exc}") from exc
        if response is not None and response.status >= 400:
            raise NavigationError(f"{url} responded with HTTP {response.status}")
        try:
            if readiness.selector:
                page.wait_for_selector(
                    readiness.selector,
                    state="attached",
                    timeout=_remaining(deadline, url, timeout_ms),
                )
            if readiness.condition:
                page.wait_for_function(
                    readiness.condition,
                    timeout=_remaining(deadline, url, timeout_ms),
                )
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(
                f"Readiness signal for {url} did not resolve within {timeout_ms}ms"
            ) from exc
        except Error as exc:
            raise NavigationError(f"Readiness check for {url} failed: {exc}") from exc
        LOGGER.debug("Page %s is ready", url)

    def _execute(self, step: Step, variables: Mapping[str, Any], index: int) -> Observation:
        page = self._live_page()
        timeout = step.timeout_ms or self._default_timeout_ms
        started = time.monotonic()
        kind = ObservationKind.LOG
        value: Any = None
        artifact: Optional[Path] = None
        message = step.describe()
        LOGGER.info("Step %s: %s", index, message)
        try:
            if step.kind == StepKind.NAVIGATE:
                url = urljoin(page.url, step.url)
                self._navigate(
                    url,
                    self._readiness or ReadinessSignal(),
                    self._navigation_timeout_ms or timeout,
                )
                message = f"Navigated to {url}"
            elif step.kind == StepKind.WAIT_FOR_SELECTOR:
                try:
                    page.wait_for_selector(step.selector, state=step.state, timeout=timeout)
                except PlaywrightTimeoutError as exc:
                    raise WaitTimeout(
                        f"'{step.selector}' did not become {step.state} within {timeout}ms"
                    ) from exc
            elif step.kind == StepKind.WAIT_FOR_CONDITION:
                expression, arg = self._script_call(step, variables)
                try:
                    page.wait_for_function(expression, arg=arg, timeout=timeout)
                except PlaywrightTimeoutError as exc:
                    raise WaitTimeout(f"Condition not met within {timeout}ms: {step.script}") from exc
            elif step.kind == StepKind.CLICK:
                if step.selector:
                    self._locate(step, timeout).click(
                        position=_position(step),
                        click_count=step.click_count,
                        button=step.button,
                        modifiers=step.modifiers or None,
                        timeout=timeout,
                    )
                else:
                    with self._held(step.modifiers):
                        page.mouse.click(
                            step.x,
                            step.y,
                            click_count=step.click_count,
                            button=step.button,
                        )
            elif step.kind == StepKind.TYPE:
                if step.selector:
                    self._locate(step, timeout).fill(step.text, timeout=timeout)
                else:
                    page.keyboard.type(step.text)
            elif step.kind == StepKind.KEY_PRESS:
                if step.selector:
                    self._locate(step, timeout).press(step.keys, timeout=timeout)
                else:
                    page.keyboard.press(step.keys)
            elif step.kind == StepKind.HOVER:
                if step.selector:
                    self._locate(step, timeout).hover(position=_position(step), timeout=timeout)
                else:
                    page.mouse.move(step.x, step.y)
            elif step.kind == StepKind.DRAG:
                origin_x, origin_y = self._origin(step, timeout)
                with self._held(step.modifiers):
                    page.mouse.move(origin_x + step.x, origin_y + step.y)
                    page.mouse.down(button=step.button)
                    page.mouse.move(origin_x + step.to_x, origin_y + step.to_y, steps=step.steps)
                    page.mouse.up(button=step.button)
            elif step.kind == StepKind.SCROLL:
                if step.selector:
                    self._locate(step, timeout).hover(timeout=timeout)
                elif step.x is not None and step.y is not None:
                    page.mouse.move(step.x, step.y)
                page.mouse.wheel(step.delta_x, step.delta_y)
            elif step.kind == StepKind.EVALUATE:
                expression, arg = self._script_call(step, variables)
                value = page.evaluate(expression, arg)
                kind = ObservationKind.VALUE
                message = f"{message} -> {value!r}"
            elif step.kind == StepKind.STORE_ACTION:
                store = self._require_store()
                value = page.evaluate(
                    _STORE_ACTION_JS.format(get_action=store.get_action),
                    [step.action, step.args],
                )
                kind = ObservationKind.VALUE
                message = f"Store action {step.action}({', '.join(map(repr, step.args))})"
            elif step.kind == StepKind.ASSERT:
                expression, arg = self._script_call(step, variables)
                value = page.evaluate(expression, arg)
                _check_expectation(step, value)
                kind = ObservationKind.ASSERTION
                message = f"{message}: {value!r}"
            elif step.kind == StepKind.SCREENSHOT:
                artifact = self._write_screenshot(step.path, step.full_page)
                kind = ObservationKind.ARTIFACT
                message = f"Screenshot saved to {artifact}"
            elif step.kind == StepKind.SLEEP:
                LOGGER.warning(
                    "Fixed sleep of %sms in '%s'; prefer a condition wait",
                    step.duration_ms,
                    step.describe(),
                )
                page.wait_for_timeout(step.duration_ms)
            else:
                raise StepError(f"Unsupported step kind: {step.kind}")
        except PlaywrightTimeoutError as exc:
            raise WaitTimeout(f"{step.describe()} timed out after {timeout}ms: {exc}") from exc
        except Error as exc:
            if step.kind in _SCRIPT_KINDS:
                raise EvaluationError(f"{step.describe()} raised in the page: {exc}") from exc
            raise StepError(f"{step.describe()} failed: {exc}") from exc
        return Observation(
            step_index=index,
            step_kind=step.kind,
            kind=kind,
            message=message,
            value=value,
            artifact=artifact,
            duration_ms=elapsed_ms(started),
        )

    def _render_screenshot(self, full_page: bool) -> bytes:
        try:
            return self._live_page().screenshot(full_page=full_page)
        except Error as exc:
            raise StepError(f"Could not render screenshot: {exc}") from exc

    def _evaluate(self, script: str, arg: Any) -> Any:
        try:
            return self._live_page().evaluate(script, arg)
        except Error as exc:
            raise EvaluationError(f"Evaluation raised in the page: {exc}") from exc

    def _shutdown(self) -> None:
        LOGGER.debug("Stopping Playwright browser session")
        try:
            if self._context:
                _quietly(self._context.close, "browser context")
        finally:
            try:
                if self._browser:
                    _quietly(self._browser.close, "browser")
            finally:
                if self._playwright:
                    _quietly(self._playwright.stop, "playwright driver")
        self._context = None
        self._browser = None
        self._playwright = None
        self._page = None

    def _live_page(self) -> Page:
        if self._page is None:
            raise SessionClosed("Browser page is not available")
        return self._page

    def _locate(self, step: Step, timeout: float) -> Locator:
        """Resolve ``step.selector`` to exactly one element."""

        locator = self._live_page().locator(step.selector)
        try:
            locator.first.wait_for(state="attached", timeout=timeout)
        except PlaywrightTimeoutError as exc:
            raise TargetNotFound(
                f"No element matches '{step.selector}' within {timeout}ms"
            ) from exc
        count = locator.count()
        if step.index is not None:
            if step.index >= count:
                raise TargetNotFound(
                    f"'{step.selector}' matched {count} element(s); index {step.index} is out of range"
                )
            return locator.nth(step.index)
        if count > 1:
            raise TargetAmbiguous(
                f"'{step.selector}' matched {count} elements; give an index or a more specific selector"
            )
        return locator

    def _origin(self, step: Step, timeout: float) -> tuple[float, float]:
        if not step.selector:
            return 0.0, 0.0
        box = self._locate(step, timeout).bounding_box(timeout=timeout)
        if box is None:
            raise TargetNotFound(f"'{step.selector}' is not rendered")
        return box["x"], box["y"]

    def _script_call(self, step: Step, variables: Mapping[str, Any]) -> tuple[str, list[Any]]:
        if step.source == EvaluationSource.STORE:
            store = self._require_store()
            expression = f"([vars, args]) => ({step.script})(({store.get_state})(), vars, ...args)"
        else:
            expression = f"([vars, args]) => ({step.script})(vars, ...args)"
        return expression, [dict(variables), step.args]

    def _require_store(self) -> StoreConfig:
        if self._store is None:
            raise EvaluationError("Step needs a store binding but none is configured")
        return self._store

    @contextmanager
    def _held(self, modifiers: list[str]) -> Iterator[None]:
        keyboard = self._live_page().keyboard
        for key in modifiers:
            keyboard.down(key)
        try:
            yield
        finally:
            for key in reversed(modifiers):
                keyboard.up(key)

    def _on_console(self, message) -> None:
        LOGGER.debug("browser console [%s] %s", message.type, message.text)
        self.console_messages.append(ConsoleMessage(type=message.type, text=message.text))

    def _on_page_error(self, error) -> None:
        LOGGER.debug("browser page error: %s", error)
        self.console_messages.append(ConsoleMessage(type="pageerror", text=str(error)))


def _position(step: Step) -> Optional[dict[str, float]]:
    if step.x is None or step.y is None:
        return None
    return {"x": step.x, "y": step.y}


def _check_expectation(step: Step, value: Any) -> None:
    if step.has_expectation:
        if value != step.expected:
            raise AssertionFailed(
                f"{step.describe()}: expected {step.expected!r}, got {value!r}"
            )
    elif not value:
        raise AssertionFailed(f"{step.describe()}: got falsy value {value!r}")


def _remaining(deadline: float, url: str, timeout_ms: int) -> float:
    remaining = (deadline - time.monotonic()) * 1000
    if remaining <= 0:
        raise NavigationTimeout(f"Readiness signal for {url} did not resolve within {timeout_ms}ms")
    return max(remaining, 1.0)


def _quietly(close, what: str) -> None:
    try:
        close()
    except Error as exc:
        LOGGER.warning("Error while closing %s: %s", what, exc)

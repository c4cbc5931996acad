"""Browser session abstractions."""

from __future__ import annotations

import enum
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..errors import ArtifactIOError, HarnessError, SessionClosed, SessionNotReady
from ..models import ConsoleMessage, Observation, ReadinessSignal, Step
from ..variables import resolve_step

LOGGER = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """Lifecycle of a session; failures jump straight to ``CLOSED``."""

    CREATED = "created"
    LAUNCHED = "launched"
    PAGE_OPEN = "page_open"
    READY = "ready"
    RUNNING = "running"
    CLOSED = "closed"


class BrowserSession(ABC):
    """One browser process and one page under exclusive control.

    Public operations enforce the lifecycle and guarantee cleanup: when any of
    them fails, a diagnostic screenshot is taken (if ``failure_dir`` is set),
    the browser is shut down and the original error is re-raised with the
    screenshot path attached.
    """

    def __init__(
        self,
        *,
        artifact_dir: Optional[Path] = None,
        failure_dir: Optional[Path] = None,
        label: str = "session",
    ) -> None:
        self._state = SessionState.CREATED
        self._artifact_dir = artifact_dir
        self._failure_dir = failure_dir
        self._label = label
        self.console_messages: list[ConsoleMessage] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state == SessionState.CLOSED

    def __enter__(self) -> "BrowserSession":
        if self._state == SessionState.CREATED:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Launch the browser and open the session's page."""

        self._require_not_closed()
        if self._state != SessionState.CREATED:
            raise HarnessError(f"Session already opened (state: {self._state.value})")
        try:
            self._launch()
            self._state = SessionState.LAUNCHED
            self._open_page()
            self._state = SessionState.PAGE_OPEN
        except BaseException:
            self.close()
            raise

    def navigate(self, url: str, readiness: ReadinessSignal, timeout_ms: int) -> None:
        """Load ``url`` and block until ``readiness`` resolves or the timeout expires."""

        self._require_not_closed()
        if self._state == SessionState.CREATED:
            raise SessionNotReady("Session has not been opened")
        with self._guard(f"navigate {url}"):
            self._navigate(url, readiness, timeout_ms)
            self._state = SessionState.READY

    def run_step(
        self,
        step: Step,
        variables: Optional[Mapping[str, Any]] = None,
        *,
        index: int = 0,
    ) -> Observation:
        """Execute one step against the ready page."""

        self._require_not_closed()
        if self._state != SessionState.READY:
            raise SessionNotReady(
                f"Cannot run '{step.describe()}' before the readiness signal resolved "
                f"(state: {self._state.value})"
            )
        variables = variables or {}
        self._state = SessionState.RUNNING
        with self._guard(step.describe()):
            observation = self._execute(resolve_step(step, variables), variables, index)
            self._state = SessionState.READY
            return observation

    def capture_screenshot(self, path: Path, full_page: bool = True) -> Path:
        """Write a screenshot of the page to ``path``."""

        self._require_page()
        with self._guard(f"screenshot {path}"):
            return self._write_screenshot(path, full_page)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a read-only JavaScript function in the page and return its value."""

        self._require_page()
        with self._guard("evaluate"):
            return self._evaluate(script, arg)

    def close(self) -> None:
        """Terminate the browser. Calling it again is a no-op."""

        if self._state == SessionState.CLOSED:
            return
        try:
            self._shutdown()
        finally:
            self._state = SessionState.CLOSED

    def resolve_artifact_path(self, path: Path) -> Path:
        if path.is_absolute() or self._artifact_dir is None:
            return path
        return self._artifact_dir / path

    @abstractmethod
    def _launch(self) -> None:
        """Start the browser process."""

    @abstractmethod
    def _open_page(self) -> None:
        """Open the single page owned by the session."""

    @abstractmethod
    def _navigate(self, url: str, readiness: ReadinessSignal, timeout_ms: int) -> None:
        """Load ``url`` and wait for the readiness signal."""

    @abstractmethod
    def _execute(self, step: Step, variables: Mapping[str, Any], index: int) -> Observation:
        """Execute a step whose variable references are already resolved."""

    @abstractmethod
    def _render_screenshot(self, full_page: bool) -> bytes:
        """Return the current page as PNG bytes."""

    @abstractmethod
    def _evaluate(self, script: str, arg: Any) -> Any:
        """Evaluate ``script`` in the page."""

    @abstractmethod
    def _shutdown(self) -> None:
        """Release the page, the browser process and the driver."""

    def _write_screenshot(self, path: Path, full_page: bool) -> Path:
        target = self.resolve_artifact_path(path)
        data = self._render_screenshot(full_page)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise ArtifactIOError(f"Cannot write screenshot to {target}: {exc}") from exc
        LOGGER.info("Saved screenshot %s", target)
        return target

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except HarnessError as exc:
            LOGGER.error("%s failed: %s", operation, exc)
            if exc.screenshot is None:
                exc.screenshot = self._failure_screenshot()
            self.close()
            raise
        except BaseException:
            LOGGER.exception("%s aborted", operation)
            self.close()
            raise

    def _failure_screenshot(self) -> Optional[Path]:
        if self._failure_dir is None or self._state in (
            SessionState.CREATED,
            SessionState.LAUNCHED,
            SessionState.CLOSED,
        ):
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        path = self._failure_dir / f"{self._label}-failure-{stamp}.png"
        try:
            return self._write_screenshot(path, full_page=True)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Could not capture failure screenshot: %s", exc)
            return None

    def _require_not_closed(self) -> None:
        if self._state == SessionState.CLOSED:
            raise SessionClosed("Session is closed")

    def _require_page(self) -> None:
        self._require_not_closed()
        if self._state in (SessionState.CREATED, SessionState.LAUNCHED):
            raise SessionNotReady("Session has no open page")


def elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000

"""Error taxonomy raised by the smoke runner."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class HarnessError(Exception):
    """Base class for every error the harness reports."""

    screenshot: Optional[Path] = None


class LaunchError(HarnessError):
    """Raised when the browser process or its display cannot be started."""


class NavigationError(HarnessError):
    """Raised when the target page cannot be loaded."""


class NavigationTimeout(NavigationError):
    """Raised when the page or its readiness signal did not appear in time."""


class SessionClosed(HarnessError):
    """Raised when an operation is issued against a closed session."""


class SessionNotReady(HarnessError):
    """Raised when steps are issued before the readiness signal resolved."""


class ScenarioError(HarnessError):
    """Raised when a scenario file cannot be loaded or validated."""


class StepError(HarnessError):
    """Base class for failures of an individual step."""


class TargetNotFound(StepError):
    """Raised when a selector resolves to zero elements."""


class TargetAmbiguous(StepError):
    """Raised when a selector matches several elements and no index was given."""


class AssertionFailed(StepError):
    """Raised when an assert step observes an unexpected value."""


class EvaluationError(StepError):
    """Raised when an in-page script or store action throws."""


class WaitTimeout(StepError):
    """Raised when a condition wait expires."""


class ArtifactIOError(HarnessError, OSError):
    """Raised when an artifact such as a screenshot cannot be written."""

"""Virtual X display for headed runs on hosts without a screen."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Optional

from pyvirtualdisplay import Display

from ..config import Viewport
from ..errors import LaunchError

LOGGER = logging.getLogger(__name__)


class VirtualDisplay:
    """Manage an Xvfb display for the lifetime of a suite run."""

    def __init__(self, enabled: bool = True, viewport: Optional[Viewport] = None) -> None:
        self.enabled = enabled
        self._viewport = viewport or Viewport()
        self._display: Optional[Display] = None

    def __enter__(self) -> Optional[str]:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> Optional[str]:
        """Start the display and return its ``DISPLAY`` value, or ``None`` when skipped."""

        if not self.enabled:
            return None
        if shutil.which("Xvfb") is None:
            LOGGER.warning("Xvfb not found; running headed browsers on the current display")
            self.enabled = False
            return None
        LOGGER.debug("Starting virtual display %sx%s", self._viewport.width, self._viewport.height)
        self._display = Display(visible=False, size=(self._viewport.width, self._viewport.height))
        self._display.start()
        display_var = os.environ.get("DISPLAY")
        if not display_var:
            self.stop()
            raise LaunchError("DISPLAY environment variable missing after starting virtual display")
        return display_var

    def stop(self) -> None:
        if self._display:
            LOGGER.debug("Stopping virtual display")
            self._display.stop()
        self._display = None

    @property
    def active(self) -> bool:
        return self._display is not None

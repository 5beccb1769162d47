"""Clicking and typing with human-like timing."""
from __future__ import annotations

from autopilot.log import get_logger
from autopilot.surfaces.base import Element, Surface
from autopilot.timing import Delay, NoDelay

log = get_logger(__name__)


class Actuator:
    def __init__(self, delay: Delay | None = None) -> None:
        self.delay = delay or NoDelay()

    def click(self, element: Element, pause: tuple[float, float] = (0.5, 1.5)) -> bool:
        """Click, then wait a random ``pause``. Returns False if the click failed."""
        try:
            element.click()
        except Exception as e:
            log.warning("Click on %s failed: %s", element.describe(), e)
            return False
        self.delay.pause(*pause)
        return True

    def human_type(self, surface: Surface, element: Element, text: str) -> None:
        """Focus ``element`` and type ``text`` one key at a time.

        Works for contenteditable regions, where setting a value does nothing.
        """
        element.focus()
        self.delay.pause(0.3, 0.8)
        for ch in text:
            surface.type_char(ch)
            self.delay.keystroke(ch)

    def fill(self, surface: Surface, element: Element, value: str) -> None:
        element.fill("")
        self.human_type(surface, element, value)

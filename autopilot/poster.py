"""Publish a post through the feed's share box."""
from __future__ import annotations

from pathlib import Path

from autopilot.actuator import Actuator
from autopilot.diagnostics import capture
from autopilot.log import get_logger
from autopilot.resolver import Resolver, Target
from autopilot.session import FEED_URL
from autopilot.surfaces.base import Surface

log = get_logger(__name__)


class Poster:
    def __init__(
        self,
        surface: Surface,
        resolver: Resolver,
        targets: dict[str, Target],
        actuator: Actuator,
        *,
        screenshots: Path | None = None,
    ) -> None:
        self.surface = surface
        self.resolver = resolver
        self.targets = targets
        self.actuator = actuator
        self.screenshots = screenshots

    def create_post(self, content: str, image_path: str | None = None) -> tuple[bool, str]:
        """Returns ``(ok, message)``."""
        delay = self.actuator.delay
        log.info("Creating LinkedIn post (%d chars)", len(content))
        if "/feed" not in self.surface.url:
            self.surface.goto(FEED_URL, timeout=60)
            delay.pause(3, 5)

        start = self.resolver.resolve(self.surface, self.targets["start_post"])
        if not start or not self.actuator.click(start.element, pause=(2, 4)):
            return self._fail('Could not find "Start a post" button')

        if image_path:
            self._attach_image(image_path)

        editor = self.resolver.resolve(self.surface, self.targets["post_editor"])
        if not editor:
            return self._fail("Could not find post editor")
        self.actuator.click(editor.element, pause=(1, 2))
        self.actuator.human_type(editor.surface, editor.element, content)
        delay.pause(2, 4)
        self._capture("pre-post")

        button = self.resolver.resolve(self.surface, self.targets["post_button"])
        if not button or not self.actuator.click(button.element, pause=(3, 5)):
            return self._fail("Could not find or click Post button")

        self._capture("post-success")
        log.info("Post published")
        return True, "Posted"

    def _attach_image(self, image_path: str) -> None:
        """Best effort: a post without its image still goes out."""
        if not Path(image_path).exists():
            log.warning("Image %s not found, posting text only", image_path)
            return
        log.info("Uploading image %s", Path(image_path).name)
        photo = self.resolver.resolve(self.surface, self.targets["add_photo"])
        if not photo or not self.actuator.click(photo.element, pause=(1, 2)):
            log.warning("Photo button not found, posting text only")
            return
        file_input = self.resolver.resolve(self.surface, self.targets["image_input"], timeout=3)
        if not file_input:
            log.warning("Image file input not found, posting text only")
            return
        file_input.element.set_input_files(image_path)
        self.actuator.delay.pause(3, 5)

    def _fail(self, reason: str) -> tuple[bool, str]:
        log.error("Post failed: %s", reason)
        self._capture("post-error")
        return False, reason

    def _capture(self, name: str) -> None:
        if self.screenshots is not None:
            capture(self.surface, self.screenshots, name)

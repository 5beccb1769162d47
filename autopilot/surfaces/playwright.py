"""Live browser surface over a Playwright ``Frame``."""
from __future__ import annotations

from pathlib import Path

from playwright.sync_api import ElementHandle, Frame
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from autopilot.log import get_logger
from autopilot.surfaces.base import Element, Surface

log = get_logger(__name__)

_LABEL_JS = """(e) => {
  let l = e.closest('label');
  if (!l && e.id) l = document.querySelector(`label[for="${CSS.escape(e.id)}"]`);
  if (!l) l = e.previousElementSibling;
  const t = l ? (l.innerText || '').trim() : '';
  return t || e.getAttribute('placeholder') || e.getAttribute('aria-label') || e.getAttribute('name') || '';
}"""

_SCROLL_JS = """([sel, top]) => {
  const el = document.querySelector(sel);
  if (!el) return false;
  el.scrollTop = top ? 0 : el.scrollHeight;
  return true;
}"""


class PlaywrightElement(Element):
    def __init__(self, handle: ElementHandle) -> None:
        self.handle = handle

    @property
    def tag(self) -> str:
        return self.handle.evaluate("e => e.tagName.toLowerCase()")

    def text(self) -> str:
        return " ".join((self.handle.inner_text() or "").split())

    def attr(self, name: str) -> str | None:
        return self.handle.get_attribute(name)

    def is_visible(self) -> bool:
        return self.handle.is_visible()

    def is_disabled(self) -> bool:
        return self.handle.is_disabled() or self.attr("aria-disabled") == "true"

    def is_checked(self) -> bool:
        try:
            return self.handle.is_checked()
        except PlaywrightError:
            return False

    def click(self) -> None:
        self.handle.click(timeout=5000)

    def focus(self) -> None:
        self.handle.focus()

    def fill(self, value: str) -> None:
        self.handle.fill(value)

    def value(self) -> str:
        if self.attr("contenteditable") == "true":
            return self.handle.inner_text()
        return self.handle.input_value()

    def query_all(self, css: str) -> list[Element]:
        return [PlaywrightElement(h) for h in self.handle.query_selector_all(css)]

    def closest(self, css: str) -> Element | None:
        found = self.handle.evaluate_handle("(e, s) => e.closest(s)", css).as_element()
        return PlaywrightElement(found) if found is not None else None

    def label(self) -> str:
        return self.handle.evaluate(_LABEL_JS)

    def options(self) -> list[str]:
        return self.handle.evaluate("e => Array.from(e.options || []).map(o => o.text.trim())")

    def select_option(self, label: str) -> bool:
        wanted = label.strip().lower()
        choice = next((o for o in self.options() if o.lower() == wanted), None)
        if choice is None:
            choice = next((o for o in self.options() if wanted in o.lower()), None)
        if choice is None:
            return False
        try:
            self.handle.select_option(label=choice)
            return True
        except PlaywrightError as e:
            log.debug("select_option(%r) failed: %s", choice, e)
            return False

    def set_input_files(self, path: str) -> None:
        self.handle.set_input_files(path)


class PlaywrightSurface(Surface):
    def __init__(self, frame: Frame) -> None:
        self.frame = frame

    @property
    def url(self) -> str:
        return self.frame.url

    def goto(self, url: str, *, timeout: float = 30.0) -> bool:
        try:
            self.frame.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
            return True
        except PlaywrightTimeoutError:
            log.warning("Navigation to %s timed out after %.0fs", url, timeout)
            return False

    def query_all(self, css: str) -> list[Element]:
        return [PlaywrightElement(h) for h in self.frame.query_selector_all(css)]

    def frames(self) -> list[Surface]:
        return [PlaywrightSurface(f) for f in self.frame.child_frames]

    def text(self, css: str | None = None) -> str:
        try:
            if css:
                el = self.frame.query_selector(css)
                return el.inner_text() if el else ""
            return self.frame.inner_text("body", timeout=5000)
        except PlaywrightError as e:
            log.debug("text(%r) failed: %s", css, e)
            return ""

    def focused(self) -> Element | None:
        handle = self.frame.evaluate_handle("() => document.activeElement").as_element()
        return PlaywrightElement(handle) if handle is not None else None

    def press(self, key: str) -> None:
        self.frame.page.keyboard.press(key)

    def type_char(self, char: str) -> None:
        # plain Enter submits the messaging form
        if char == "\n":
            self.frame.page.keyboard.press("Shift+Enter")
        else:
            self.frame.page.keyboard.type(char)

    def scroll(self, css: str, *, to_top: bool = False) -> bool:
        return bool(self.frame.evaluate(_SCROLL_JS, [css, to_top]))

    def html(self) -> str:
        return self.frame.content()

    def screenshot(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.frame.page.screenshot(path=str(path), full_page=True)
        return path

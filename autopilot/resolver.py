"""Selector fallback resolution.

A ``Target`` is an ordered list of finder strategies for one semantic
element ("Next button", "message input"). ``Resolver.resolve`` tries them
against the page and its frames until one hits or the time budget runs out.
Not finding something is a normal result (``NotFound``), not an exception.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Iterable, Union

from autopilot.log import get_logger
from autopilot.surfaces.base import Element, Surface
from autopilot.timing import Clock, SystemClock

log = get_logger(__name__)

DEFAULT_TAGS: tuple[str, ...] = ("button", "a", '[role="button"]')


class Finder(ABC):
    """One way of locating an element on a surface."""

    tags: tuple[str, ...] = DEFAULT_TAGS

    @abstractmethod
    def candidates(self, surface: Surface) -> list[Element]: ...

    def accepts(self, element: Element) -> bool:
        return True

    def find(
        self, surface: Surface, *, enabled_only: bool = False, visible_only: bool = True
    ) -> Element | None:
        for el in self.candidates(surface):
            if visible_only and not el.is_visible():
                continue
            if enabled_only and el.is_disabled():
                continue
            if self.accepts(el):
                return el
        return None

    def _tagged(self, surface: Surface) -> list[Element]:
        return surface.query_all(", ".join(self.tags))


@dataclass(frozen=True)
class CssFinder(Finder):
    selector: str

    def candidates(self, surface: Surface) -> list[Element]:
        return surface.query_all(self.selector)

    def __str__(self) -> str:
        return f"css={self.selector}"


@dataclass(frozen=True)
class AttributeFinder(Finder):
    attribute: str
    contains: str
    tags: tuple[str, ...] = DEFAULT_TAGS

    def candidates(self, surface: Surface) -> list[Element]:
        return self._tagged(surface)

    def accepts(self, element: Element) -> bool:
        return self.contains.lower() in (element.attr(self.attribute) or "").lower()

    def __str__(self) -> str:
        return f"attr[{self.attribute}~{self.contains!r}]"


@dataclass(frozen=True)
class TextFinder(Finder):
    text: str
    tags: tuple[str, ...] = DEFAULT_TAGS
    exact: bool = False

    def candidates(self, surface: Surface) -> list[Element]:
        return self._tagged(surface)

    def accepts(self, element: Element) -> bool:
        got = element.text().strip().lower()
        want = self.text.lower()
        return got == want if self.exact else want in got

    def __str__(self) -> str:
        return f"text={self.text!r}"


@dataclass(frozen=True)
class LabelFinder(Finder):
    """Accessible name from ``aria-label`` or ``title``."""

    label: str
    tags: tuple[str, ...] = DEFAULT_TAGS

    def candidates(self, surface: Surface) -> list[Element]:
        return self._tagged(surface)

    def accepts(self, element: Element) -> bool:
        want = self.label.lower()
        return any(want in (element.attr(a) or "").lower() for a in ("aria-label", "title"))

    def __str__(self) -> str:
        return f"label={self.label!r}"


@dataclass(frozen=True)
class Target:
    name: str
    finders: tuple[Finder, ...]
    enabled_only: bool = False
    search_frames: bool = True
    visible_only: bool = True


@dataclass
class Found:
    element: Element
    finder: Finder
    surface: Surface

    @property
    def frame_url(self) -> str:
        return self.surface.url

    def __bool__(self) -> bool:
        return True


@dataclass
class NotFound:
    target: str
    attempts: int = 0
    elapsed: float = 0.0
    tried: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return False


Resolution = Union[Found, NotFound]


class Resolver:
    def __init__(
        self,
        clock: Clock | None = None,
        timeout: float = 5.0,
        poll_interval: float = 0.5,
    ) -> None:
        self.clock = clock or SystemClock()
        self.timeout = timeout
        self.poll_interval = poll_interval

    def resolve(self, surface: Surface, target: Target, timeout: float | None = None) -> Resolution:
        """Poll ``target``'s finders until one matches or ``timeout`` seconds pass.

        Each pass tries every finder, in order, on the top document and then on
        each child frame. The wait between passes is clipped to the remaining
        budget, so the call returns no later than ``timeout`` after it started.
        """
        budget = self.timeout if timeout is None else timeout
        start = self.clock.monotonic()
        attempts = 0
        while True:
            found, tried = self._pass(surface, target)
            attempts += len(tried)
            if found is not None:
                log.info("Resolved %s via %s", target.name, found.finder)
                return found
            elapsed = self.clock.monotonic() - start
            remaining = budget - elapsed
            if remaining <= 0:
                log.info("Could not resolve %s after %d attempts (%.1fs)", target.name, attempts, elapsed)
                return NotFound(target.name, attempts, elapsed, tried)
            self.clock.sleep(min(self.poll_interval, remaining))

    def probe(self, surface: Surface, target: Target) -> Resolution:
        """Single pass, no waiting."""
        return self.resolve(surface, target, timeout=0)

    def _pass(self, surface: Surface, target: Target) -> tuple[Found | None, list[str]]:
        contexts = [surface]
        if target.search_frames:
            try:
                contexts.extend(surface.frames())
            except Exception as e:
                log.debug("Listing frames failed: %s", e)
        tried: list[str] = []
        for finder in target.finders:
            for ctx in contexts:
                tried.append(str(finder))
                try:
                    el = finder.find(
                        ctx, enabled_only=target.enabled_only, visible_only=target.visible_only
                    )
                except Exception as e:
                    log.debug("%s: %s raised %s", target.name, finder, e)
                    continue
                if el is not None:
                    return Found(el, finder, ctx), tried
                log.debug("%s: %s missed on %s", target.name, finder, ctx.url)
        return None, tried


def tab_traverse(
    surface: Surface,
    predicate: Callable[[Element], bool],
    *,
    name: str = "tab traversal",
    max_presses: int = 12,
) -> Resolution:
    """Press Tab until the focused element satisfies ``predicate``."""
    for i in range(1, max_presses + 1):
        surface.press("Tab")
        el = surface.focused()
        if el is None:
            continue
        try:
            hit = predicate(el)
        except Exception as e:
            log.debug("Tab %d: predicate raised %s", i, e)
            continue
        log.debug("Tab %d: focused %s %r", i, el.describe(), el.text()[:40])
        if hit:
            log.info("Tab traversal found %s after %d presses", el.describe(), i)
            return Found(el, CssFinder(":focus"), surface)
    return NotFound(name, max_presses, 0.0)


def first_match(element: Element | Surface, selectors: Iterable[str]) -> Element | None:
    """First element under ``element`` matching any selector, in selector order."""
    for sel in selectors:
        try:
            found = element.query(sel)
        except Exception as e:
            log.debug("first_match %s: %s", sel, e)
            continue
        if found is not None:
            return found
    return None


def first_text(element: Element | Surface, selectors: Iterable[str], default: str = "") -> str:
    found = first_match(element, selectors)
    if found is None:
        return default
    return found.text().strip() or default

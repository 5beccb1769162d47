from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class Element(ABC):
    """One node of a rendered document."""

    @property
    @abstractmethod
    def tag(self) -> str: ...

    @abstractmethod
    def text(self) -> str: ...

    @abstractmethod
    def attr(self, name: str) -> str | None: ...

    @abstractmethod
    def is_visible(self) -> bool: ...

    @abstractmethod
    def is_disabled(self) -> bool: ...

    @abstractmethod
    def is_checked(self) -> bool: ...

    @abstractmethod
    def click(self) -> None: ...

    @abstractmethod
    def focus(self) -> None: ...

    @abstractmethod
    def fill(self, value: str) -> None: ...

    @abstractmethod
    def value(self) -> str: ...

    @abstractmethod
    def query_all(self, css: str) -> list[Element]: ...

    @abstractmethod
    def closest(self, css: str) -> Element | None: ...

    @abstractmethod
    def label(self) -> str:
        """Text of the label describing a form control."""

    @abstractmethod
    def options(self) -> list[str]: ...

    @abstractmethod
    def select_option(self, label: str) -> bool: ...

    @abstractmethod
    def set_input_files(self, path: str) -> None: ...

    def query(self, css: str) -> Element | None:
        found = self.query_all(css)
        return found[0] if found else None

    def has_class(self, name: str) -> bool:
        return name in (self.attr("class") or "").split()

    def describe(self) -> str:
        ident = self.attr("id")
        aria = self.attr("aria-label")
        bits = [self.tag]
        if ident:
            bits.append(f"#{ident}")
        if aria:
            bits.append(f"[aria-label={aria!r}]")
        return "".join(bits)


class Surface(ABC):
    """A document (or frame) the resolver can search and the actuator can drive."""

    @property
    @abstractmethod
    def url(self) -> str: ...

    @abstractmethod
    def goto(self, url: str, *, timeout: float = 30.0) -> bool:
        """Navigate; returns False when the navigation timed out."""

    @abstractmethod
    def query_all(self, css: str) -> list[Element]: ...

    @abstractmethod
    def frames(self) -> list[Surface]:
        """Child frame contexts (same-origin iframes)."""

    @abstractmethod
    def text(self, css: str | None = None) -> str:
        """Visible text of the first element matching ``css``, or of the body."""

    @abstractmethod
    def focused(self) -> Element | None: ...

    @abstractmethod
    def press(self, key: str) -> None: ...

    @abstractmethod
    def type_char(self, char: str) -> None: ...

    @abstractmethod
    def scroll(self, css: str, *, to_top: bool = False) -> bool: ...

    @abstractmethod
    def html(self) -> str: ...

    @abstractmethod
    def screenshot(self, path: Path) -> Path: ...

    def query(self, css: str) -> Element | None:
        found = self.query_all(css)
        return found[0] if found else None

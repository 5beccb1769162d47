"""Static HTML snapshot surface (BeautifulSoup).

Used to replay selector tables against pages saved with ``debug-selectors``
and as the synthetic page in tests. It imitates just enough browser behaviour
for the resolver and actuator: visibility, iframes given by ``srcdoc``, Tab
focus order, Enter-to-click, typing, radio/select state.
"""
from __future__ import annotations

from pathlib import Path
from typing import Callable

from bs4 import BeautifulSoup, NavigableString, Tag

from autopilot.surfaces.base import Element, Surface

_FOCUSABLE_TAGS = {"button", "input", "select", "textarea"}
_INVISIBLE_TAGS = {"script", "style", "template", "head", "title", "noscript"}

ClickHook = Callable[["HtmlSurface", "HtmlElement"], None]


def _is_hidden(tag: Tag) -> bool:
    if tag.name == "input" and (tag.get("type") or "").lower() == "hidden":
        return True
    node: Tag | None = tag
    while node is not None and node.name != "[document]":
        if node.name in _INVISIBLE_TAGS or node.has_attr("hidden"):
            return True
        style = (node.get("style") or "").replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            return True
        node = node.parent
    return False


def _visible_text(tag: Tag) -> str:
    parts: list[str] = []
    for s in tag.find_all(string=True):
        if isinstance(s, NavigableString) and s.parent is not None and not _is_hidden(s.parent):
            parts.append(str(s))
    return " ".join(" ".join(parts).split())


class HtmlElement(Element):
    def __init__(self, surface: HtmlSurface, tag: Tag) -> None:
        self.surface = surface
        self._tag = tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HtmlElement) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    def __repr__(self) -> str:
        return f"<HtmlElement {self.describe()}>"

    @property
    def tag(self) -> str:
        return self._tag.name

    def text(self) -> str:
        return _visible_text(self._tag)

    def attr(self, name: str) -> str | None:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def is_visible(self) -> bool:
        return not _is_hidden(self._tag)

    def is_disabled(self) -> bool:
        return self._tag.has_attr("disabled") or self._tag.get("aria-disabled") == "true"

    def is_checked(self) -> bool:
        return self._tag.has_attr("checked")

    def click(self) -> None:
        tag = self._tag
        kind = (tag.get("type") or "").lower()
        if tag.name == "input" and kind == "radio":
            name = tag.get("name")
            if name:
                for other in self.surface.soup.find_all("input", attrs={"type": "radio", "name": name}):
                    if other.has_attr("checked"):
                        del other["checked"]
            tag["checked"] = ""
        elif tag.name == "input" and kind == "checkbox":
            if tag.has_attr("checked"):
                del tag["checked"]
            else:
                tag["checked"] = ""
        elif tag.name == "label" and tag.get("for"):
            target = self.surface.soup.find(id=tag["for"])
            if isinstance(target, Tag):
                HtmlElement(self.surface, target).click()
                return
        self.surface._focused = tag
        self.surface.clicks.append(self)
        if self.surface.on_click is not None:
            self.surface.on_click(self.surface, self)

    def focus(self) -> None:
        self.surface._focused = self._tag

    def fill(self, value: str) -> None:
        if self._tag.get("contenteditable") == "true":
            self._tag.clear()
            if value:
                self._tag.append(value)
        else:
            self._tag["value"] = value

    def value(self) -> str:
        if self._tag.get("contenteditable") == "true":
            return self._tag.get_text()
        if self._tag.name == "textarea" and not self._tag.has_attr("value"):
            return self._tag.get_text()
        return self._tag.get("value") or ""

    def query_all(self, css: str) -> list[Element]:
        return [HtmlElement(self.surface, t) for t in self._tag.select(css)]

    def closest(self, css: str) -> Element | None:
        found = self._tag.css.closest(css)
        return HtmlElement(self.surface, found) if found is not None else None

    def label(self) -> str:
        tag = self._tag
        lab = tag.find_parent("label")
        if lab is None and tag.get("id"):
            lab = self.surface.soup.find("label", attrs={"for": tag["id"]})
        if lab is None:
            lab = tag.find_previous_sibling()
        if lab is not None:
            text = _visible_text(lab)
            if text:
                return text
        return tag.get("placeholder") or tag.get("aria-label") or tag.get("name") or ""

    def options(self) -> list[str]:
        return [_visible_text(o) for o in self._tag.find_all("option")]

    def select_option(self, label: str) -> bool:
        wanted = label.strip().lower()
        options = self._tag.find_all("option")
        match = next((o for o in options if _visible_text(o).lower() == wanted), None)
        if match is None:
            match = next((o for o in options if wanted in _visible_text(o).lower()), None)
        if match is None:
            return False
        for o in options:
            if o.has_attr("selected"):
                del o["selected"]
        match["selected"] = ""
        return True

    def selected(self) -> str:
        chosen = self._tag.find("option", selected=True)
        return _visible_text(chosen) if chosen is not None else ""

    def set_input_files(self, path: str) -> None:
        self._tag["data-files"] = path
        self.surface.uploads.append(path)

    def type_char(self, char: str) -> None:
        if self._tag.get("contenteditable") == "true":
            # one text node, so visible text isn't split per character
            self.fill(self._tag.get_text() + char)
        else:
            self._tag["value"] = self.value() + char


class HtmlSurface(Surface):
    def __init__(
        self,
        html: str = "",
        url: str = "about:blank",
        *,
        pages: dict[str, str] | None = None,
        on_click: ClickHook | None = None,
    ) -> None:
        self._url = url
        self.pages = dict(pages or {})
        self.on_click = on_click
        self.clicks: list[HtmlElement] = []
        self.keys: list[str] = []
        self.visited: list[str] = []
        self.uploads: list[str] = []
        self.load(html)

    @classmethod
    def from_file(cls, path: Path, url: str | None = None) -> HtmlSurface:
        return cls(path.read_text(encoding="utf-8", errors="ignore"), url=url or path.as_uri())

    def load(self, html: str, url: str | None = None) -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self._focused: Tag | None = None
        self._frames: dict[int, HtmlSurface] = {}
        if url is not None:
            self._url = url

    @property
    def url(self) -> str:
        return self._url

    def goto(self, url: str, *, timeout: float = 30.0) -> bool:
        self.visited.append(url)
        self._url = url
        if url in self.pages:
            self.load(self.pages[url])
        return True

    def query_all(self, css: str) -> list[Element]:
        return [HtmlElement(self, t) for t in self.soup.select(css)]

    def frames(self) -> list[Surface]:
        children: list[Surface] = []
        for iframe in self.soup.select("iframe[srcdoc]"):
            key = id(iframe)
            if key not in self._frames:
                src = iframe.get("src") or f"{self._url}#frame{len(self._frames)}"
                self._frames[key] = HtmlSurface(iframe["srcdoc"], url=src, on_click=self.on_click)
            children.append(self._frames[key])
        return children

    def text(self, css: str | None = None) -> str:
        root = self.soup.select_one(css) if css else (self.soup.body or self.soup)
        return _visible_text(root) if root is not None else ""

    def focused(self) -> Element | None:
        return HtmlElement(self, self._focused) if self._focused is not None else None

    def _focus_order(self) -> list[Tag]:
        order: list[Tag] = []
        for t in self.soup.find_all(True):
            focusable = (
                t.name in _FOCUSABLE_TAGS
                or (t.name == "a" and t.has_attr("href"))
                or (t.has_attr("tabindex") and t.get("tabindex") != "-1")
                or t.get("contenteditable") == "true"
            )
            if focusable and not _is_hidden(t) and not t.has_attr("disabled"):
                order.append(t)
        return order

    def press(self, key: str) -> None:
        self.keys.append(key)
        if key == "Tab":
            order = self._focus_order()
            if not order:
                return
            current = next((i for i, t in enumerate(order) if t is self._focused), -1)
            self._focused = order[(current + 1) % len(order)]
        elif key == "Enter" and self._focused is not None:
            HtmlElement(self, self._focused).click()

    def type_char(self, char: str) -> None:
        if self._focused is not None:
            HtmlElement(self, self._focused).type_char(char)

    def scroll(self, css: str, *, to_top: bool = False) -> bool:
        return self.soup.select_one(css) is not None

    def html(self) -> str:
        return str(self.soup)

    def screenshot(self, path: Path) -> Path:
        out = path.with_suffix(".html")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(self.html(), encoding="utf-8")
        return out

from autopilot.surfaces.base import Element, Surface
from autopilot.surfaces.html import HtmlElement, HtmlSurface

__all__ = ["Element", "Surface", "HtmlElement", "HtmlSurface"]

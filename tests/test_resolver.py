from __future__ import annotations

import pytest

from autopilot.resolver import (
    CssFinder,
    Found,
    NotFound,
    Resolver,
    Target,
    TextFinder,
    first_text,
    tab_traverse,
)
from autopilot.surfaces.html import HtmlSurface

from conftest import FakeClock

# Each variant renders the "Next" control a different way; the element the
# resolver must land on carries id="hit".
NEXT_VARIANTS = {
    "plain button": '<div role="dialog"><button id="hit">Next</button></div>',
    "continue wording": '<button id="hit">Continue</button>',
    "aria label only": '<button id="hit" aria-label="Continue to next step"><span class="icon"></span></button>',
    "anchor styled as button": '<a role="button" id="hit" aria-label="Continue to next step"></a>',
    "review step": '<button id="hit">Review</button>',
    "disabled then enabled": '<button disabled>Next</button><button id="hit">Next</button>',
    "hidden then visible": '<button style="display: none">Next</button><button id="hit">Next</button>',
    "inside iframe": '<p>Apply</p><iframe src="https://www.linkedin.com/apply" srcdoc="<button id=hit>Next</button>"></iframe>',
}


@pytest.mark.parametrize("variant", sorted(NEXT_VARIANTS))
def test_next_button_variants(variant, resolver, targets):
    surface = HtmlSurface(NEXT_VARIANTS[variant])
    found = resolver.resolve(surface, targets["next_button"])
    assert isinstance(found, Found)
    assert found.element.attr("id") == "hit"


def test_found_in_frame_reports_frame(resolver, targets):
    surface = HtmlSurface(NEXT_VARIANTS["inside iframe"], url="https://www.linkedin.com/jobs/view/1")
    found = resolver.resolve(surface, targets["next_button"])
    assert found.surface is not surface
    assert found.frame_url == "https://www.linkedin.com/apply"


def test_finder_order_beats_document_order(resolver):
    # "Next" is the first finder, so it wins even though it lives in a frame
    surface = HtmlSurface('<button id="top">Continue</button><iframe srcdoc="<button id=inner>Next</button>"></iframe>')
    target = Target("next", (TextFinder("Next", ("button",)), TextFinder("Continue", ("button",))))
    found = resolver.resolve(surface, target)
    assert found.element.attr("id") == "inner"


def test_frames_can_be_excluded(resolver):
    surface = HtmlSurface('<iframe srcdoc="<button>Next</button>"></iframe>')
    target = Target("next", (TextFinder("Next", ("button",)),), search_frames=False)
    assert not resolver.probe(surface, target)


def test_not_found_within_budget():
    clock = FakeClock()
    resolver = Resolver(clock, timeout=5.0, poll_interval=0.25)
    surface = HtmlSurface("<button>Cancel</button>")
    target = Target("next", (CssFinder("button.next"), TextFinder("Next", ("button",))))

    result = resolver.resolve(surface, target)

    assert isinstance(result, NotFound)
    assert not result
    assert result.target == "next"
    assert result.elapsed <= 5.0 + 1e-9
    assert clock.now <= 5.0 + 1e-9
    assert result.attempts > 2
    assert result.tried == ["css=button.next", "text='Next'"]


def test_probe_does_not_wait(clock, resolver):
    surface = HtmlSurface("<p>nothing here</p>")
    result = resolver.probe(surface, Target("x", (CssFinder("button"),)))
    assert isinstance(result, NotFound)
    assert result.attempts == 1
    assert clock.sleeps == []


def test_resolves_once_element_appears():
    surface = HtmlSurface("<p>loading</p>")
    target = Target("x", (CssFinder("button.ready"),))

    class AppearingClock(FakeClock):
        def sleep(self, seconds: float) -> None:
            super().sleep(seconds)
            if self.now >= 1.0:
                surface.load('<button class="ready">Go</button>')

    resolver = Resolver(AppearingClock(), timeout=5.0, poll_interval=0.5)
    found = resolver.resolve(surface, target)
    assert found
    assert found.element.text() == "Go"


def test_tab_traverse_finds_focused_element():
    surface = HtmlSurface('<input type="text"><button>Back</button><button>Next</button>')
    found = tab_traverse(surface, lambda el: el.text() == "Next")
    assert found
    assert surface.keys == ["Tab", "Tab", "Tab"]


def test_tab_traverse_gives_up():
    surface = HtmlSurface("<button>Back</button>")
    result = tab_traverse(surface, lambda el: False, max_presses=4)
    assert not result
    assert result.attempts == 4


def test_first_text_uses_selector_order():
    surface = HtmlSurface('<div><span class="b">second</span><span class="a">first</span></div>')
    assert first_text(surface, (".a", ".b")) == "first"
    assert first_text(surface, (".missing",), default="none") == "none"

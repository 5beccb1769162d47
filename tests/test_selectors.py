from __future__ import annotations

import textwrap

from autopilot.resolver import AttributeFinder, CssFinder, TextFinder
from autopilot.selectors import DEFAULT_TARGETS, build_target, check_targets, load_targets
from autopilot.surfaces.html import HtmlSurface


def write(tmp_path, text: str):
    path = tmp_path / "selectors.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


def test_defaults_cover_every_table_entry(targets):
    assert set(targets) == set(DEFAULT_TARGETS)
    assert targets["next_button"].enabled_only
    assert not targets["resume_input"].visible_only


def test_mapping_override_keeps_flags(tmp_path):
    targets = load_targets(write(tmp_path, """\
        next_button:
          finders:
            - text: Weiter
            - attr: aria-label
              contains: next step
    """))
    target = targets["next_button"]
    assert target.finders == (
        TextFinder("Weiter"),
        AttributeFinder("aria-label", "next step"),
    )
    assert target.enabled_only


def test_list_override(tmp_path):
    targets = load_targets(write(tmp_path, """\
        post_button:
          - css: button.share-actions__primary-action
    """))
    assert targets["post_button"].finders == (CssFinder("button.share-actions__primary-action"),)


def test_bad_override_falls_back_to_default(tmp_path):
    targets = load_targets(write(tmp_path, """\
        start_post:
          - xpath: //button
        apply_modal: 42
        next_button:
          - Next
        submit_button:
          finders:
        post_button:
          finders: Post
    """))
    for name in ("start_post", "apply_modal", "next_button", "submit_button", "post_button"):
        assert targets[name] == build_target(name, DEFAULT_TARGETS[name])


def test_new_target_from_overrides(tmp_path):
    targets = load_targets(write(tmp_path, """\
        dismiss_banner:
          - text: Dismiss
    """))
    assert targets["dismiss_banner"].finders == (TextFinder("Dismiss"),)


def test_check_targets_reports_hits_and_frames(targets, resolver):
    surface = HtmlSurface(
        '<button aria-label="Start a post">Start a post</button>'
        '<iframe src="https://example.test/apply" srcdoc=\'<div role="dialog">x</div>\'></iframe>'
    )
    rows = {name: (finder, where) for name, finder, where in check_targets(surface, targets, resolver)}
    assert rows["start_post"] == ('css=button[aria-label="Start a post"]', "top")
    assert rows["apply_modal"] == ('css=[role="dialog"]', "frame https://example.test/apply")
    assert rows["submit_button"] == ("-", "not found")

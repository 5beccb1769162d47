"""Selector tables for every element the bots touch.

LinkedIn changes its markup often, so the fallbacks live here as data rather
than in control flow. ``config/selectors.yaml`` can replace the finder list of
any target, e.g.::

    next_button:
      enabled_only: true
      finders:
        - text: Next
        - attr: aria-label
          contains: next step
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

from autopilot.config import SELECTORS_PATH, load_yaml
from autopilot.log import get_logger
from autopilot.resolver import (
    DEFAULT_TAGS,
    AttributeFinder,
    CssFinder,
    Finder,
    LabelFinder,
    Resolver,
    Target,
    TextFinder,
)
from autopilot.surfaces.base import Surface

log = get_logger(__name__)

DEFAULT_TARGETS: dict[str, dict[str, Any]] = {
    # login
    "username": {"finders": [{"css": "#username"}, {"css": 'input[name="session_key"]'}]},
    "password": {"finders": [{"css": "#password"}, {"css": 'input[name="session_password"]'}]},
    "login_submit": {"finders": [
        {"css": 'button[type="submit"]'},
        {"text": "Sign in", "tags": ["button"]},
    ]},
    "feed_marker": {"finders": [
        {"css": '[data-control-name="share_with_network"]'},
        {"css": 'button[aria-label*="Start a post"]'},
    ]},
    "verification_input": {"finders": [
        {"css": 'input[name="pin"]'},
        {"css": "#input__email_verification_pin"},
        {"css": 'input[type="text"]'},
    ]},
    "verification_submit": {"finders": [
        {"css": "#email-pin-submit-button"},
        {"css": 'button[type="submit"]'},
    ]},

    # posting
    "start_post": {"finders": [
        {"css": 'button[aria-label="Start a post"]'},
        {"css": 'button[aria-label*="Start a post"]'},
        {"css": ".share-box-feed-entry__trigger"},
        {"css": "button.share-box-feed-entry__trigger"},
        {"css": '[data-control-name="share_with_network"]'},
        {"css": ".share-box__button"},
        {"text": "Start a post"},
    ]},
    "add_photo": {"finders": [
        {"css": 'button[aria-label="Add a photo"]'},
        {"attr": "aria-label", "contains": "photo"},
        {"attr": "aria-label", "contains": "media"},
        {"css": "[data-test-share-box-media-icon]"},
        {"css": "button.share-box-footer__media-icon"},
        {"css": 'button[data-control-name="share.photos"]'},
    ]},
    "image_input": {"finders": [
        {"css": 'input[type="file"][accept*="image"]'},
        {"css": 'input[type="file"]'},
        {"css": 'input[accept*="image"]'},
    ], "visible_only": False},
    "post_editor": {"finders": [
        {"css": '.ql-editor[data-placeholder="What do you want to talk about?"]'},
        {"css": ".ql-editor"},
        {"css": '[contenteditable="true"]'},
    ]},
    "post_button": {"enabled_only": True, "finders": [
        {"css": 'button[data-control-name="share.post"]'},
        {"css": "button.share-actions__primary-action"},
        {"css": 'button[aria-label*="Post"]'},
        {"text": "Post", "exact": True, "tags": ["button"]},
    ]},

    # job search and Easy Apply
    "results_list": {"finders": [
        {"css": ".jobs-search-results-list"},
        {"css": ".jobs-search__results-list"},
        {"css": "div[data-job-id]"},
    ]},
    "job_description": {"finders": [
        {"css": ".jobs-description__content"},
        {"css": ".jobs-description"},
        {"css": ".description__text"},
    ]},
    "easy_apply_button": {"finders": [
        {"css": 'a[data-view-name="job-apply-button"]'},
        {"css": 'a[aria-label*="Easy Apply"]'},
        {"css": 'a[href*="/apply/?openSDUIApplyFlow"]'},
        {"css": "button.jobs-apply-button"},
        {"css": 'button[aria-label*="Easy Apply"]'},
        {"css": ".jobs-apply-button--top-card button"},
        {"css": ".jobs-apply-button--top-card a"},
        {"text": "Easy Apply"},
    ]},
    "apply_modal": {"finders": [
        {"css": ".jobs-easy-apply-modal"},
        {"css": '[role="dialog"]'},
    ]},
    "next_button": {"enabled_only": True, "finders": [
        {"text": "Next", "tags": ["button"]},
        {"text": "Continue", "tags": ["button"]},
        {"text": "Review", "tags": ["button"]},
        {"label": "next step"},
        {"label": "Review your application"},
    ]},
    "submit_button": {"enabled_only": True, "finders": [
        {"css": 'button[aria-label="Submit application"]'},
        {"css": 'button[aria-label*="Submit"]'},
        {"css": '.jobs-easy-apply-modal footer button[type="submit"]'},
        {"text": "Submit application"},
    ]},
    "resume_input": {"finders": [
        {"css": '.jobs-easy-apply-modal input[type="file"]'},
        {"css": 'input[type="file"]'},
    ], "visible_only": False},

    # messaging
    "inbox_list": {"finders": [
        {"css": ".msg-conversations-container__conversations-list"},
        {"css": ".msg-overlay-list-bubble"},
        {"css": '[class*="messaging"]'},
        {"css": ".scaffold-layout__main"},
    ]},
    "notifications_list": {"finders": [
        {"css": ".nt-card-list"},
        {"css": '[class*="notification-card"]'},
        {"css": ".scaffold-layout__main"},
    ]},
    "message_input": {"finders": [
        {"css": ".msg-form__contenteditable"},
        {"css": '[role="textbox"][contenteditable="true"]'},
        {"css": ".msg-form__message-texteditor"},
        {"css": 'div[data-placeholder="Write a message…"]'},
    ]},
    "send_button": {"enabled_only": True, "finders": [
        {"css": 'button[type="submit"].msg-form__send-button'},
        {"css": 'button[aria-label*="Send"]'},
        {"css": ".msg-form__send-button"},
        {"css": "button.msg-form__send-btn"},
        {"text": "Send", "exact": True, "tags": ["button"]},
    ]},
    "post_page": {"finders": [
        {"css": ".feed-shared-update-v2"},
        {"css": '[data-urn*="activity"]'},
        {"css": ".social-details-social-counts"},
    ]},
    "comment_input": {"finders": [
        {"css": ".comments-comment-box__form .ql-editor"},
        {"css": '.comments-comment-texteditor [contenteditable="true"]'},
        {"css": '[data-placeholder*="Add a reply"]'},
        {"css": ".ql-editor[data-placeholder]"},
    ]},
    "comment_submit": {"enabled_only": True, "finders": [
        {"css": 'button[class*="comments-comment-box__submit"]'},
        {"css": 'button[type="submit"][class*="comment"]'},
        {"css": 'button[aria-label*="Post"]'},
        {"text": "Reply", "exact": True, "tags": ["button"]},
    ]},
}

# Scoped lists used when scraping repeated cards (first match wins).
JOB_CARDS = ("div[data-job-id]", "div.job-card-container", "li.jobs-search-results__list-item")
JOB_TITLE_LINK = ('a[href*="/jobs/view/"]', "a.job-card-list__title")
JOB_COMPANY = ('[class*="company-name"]', ".job-card-container__primary-description", "h4")
JOB_LOCATION = ('[class*="metadata"] li', '[class*="location"]')

CONVERSATION_CARDS = (
    ".msg-conversation-listitem",
    ".msg-conversation-card",
    '[class*="conversation-list-item"]',
)
UNREAD_BADGE = (
    ".msg-conversation-card__unread-count",
    '[class*="notification-badge"]',
    ".artdeco-notification-badge",
)
PARTICIPANT_NAME = (
    ".msg-conversation-listitem__participant-names",
    ".msg-conversation-card__participant-names",
    '[class*="participant-names"]',
    "h3",
    "h4",
    '[class*="participant"]',
)
MESSAGE_PREVIEW = (".msg-conversation-card__message-snippet", '[class*="message-snippet"]')
CONVERSATION_LINK = ('a[href*="messaging"]',)
THREAD_LINKS = 'a[href*="/messaging/thread/"]'

MESSAGE_LIST = ".msg-s-message-list"
MESSAGE_EVENTS = (
    ".msg-s-message-list__event",
    ".msg-s-event-listitem",
    '[class*="message-list-item"]',
)
MESSAGE_BODY = (".msg-s-event-listitem__body", '[class*="message-body"]', ".msg-s-message-list-content")
MESSAGE_SENDER = (".msg-s-message-group__name", '[class*="sender-name"]', ".msg-s-event-listitem__link")
MESSAGE_TIME = (".msg-s-message-group__timestamp", "time", '[class*="timestamp"]')
OUTBOUND_CLASS = "msg-s-message-list__event--outbound"
OUTBOUND_MARKER = '[class*="outbound"]'

NOTIFICATION_CARDS = (".nt-card", '[class*="notification-card"]', ".notification-card")
NOTIFICATION_TEXT = (".nt-card__text", '[class*="notification-text"]')
NOTIFICATION_ACTOR = (".nt-card__actor-name", '[class*="actor-name"]', "strong")
NOTIFICATION_POST_LINK = ('a[href*="activity"]', 'a[href*="feed/update"]')

COMMENTS_EXPAND = ('button[aria-label*="comment"]', ".social-details-social-counts__comments", '[class*="show-comments"]')
COMMENTS = (
    ".comments-comment-item",
    '[class*="comment-item"]',
    ".feed-shared-update-v2__comments-container article",
)
COMMENT_AUTHOR = (".comments-post-meta__name-text", '[class*="commenter-name"]', ".feed-shared-actor__name")
COMMENT_BODY = (".comments-comment-item__main-content", '[class*="comment-text"]', ".feed-shared-text")
COMMENT_REPLY_BUTTON = ('button[aria-label*="Reply"]', '[class*="reply-button"]', 'button[class*="reply"]')
COMMENT_HAS_REPLY = ".comments-comment-item--reply"


def _finder(entry: Any) -> Finder:
    if not isinstance(entry, dict):
        raise ValueError(f"Finder must be a mapping such as {{text: Next}}, got {entry!r}")
    tags = tuple(entry.get("tags") or DEFAULT_TAGS)
    if "css" in entry:
        return CssFinder(entry["css"])
    if "attr" in entry:
        return AttributeFinder(entry["attr"], entry.get("contains", ""), tags)
    if "text" in entry:
        return TextFinder(entry["text"], tags, bool(entry.get("exact", False)))
    if "label" in entry:
        return LabelFinder(entry["label"], tags)
    raise ValueError(f"Unknown finder entry: {entry!r}")


def build_target(name: str, entry: dict[str, Any]) -> Target:
    raw = entry.get("finders") or []
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"Target {name!r} finders must be a list, got {raw!r}")
    finders = tuple(_finder(f) for f in raw)
    if not finders:
        raise ValueError(f"Target {name!r} has no finders")
    return Target(
        name=name,
        finders=finders,
        enabled_only=bool(entry.get("enabled_only", False)),
        search_frames=bool(entry.get("frames", True)),
        visible_only=bool(entry.get("visible_only", True)),
    )


def load_targets(path: Path | None = None) -> dict[str, Target]:
    """Default targets, with any overrides from ``selectors.yaml`` applied."""
    table = {name: dict(entry) for name, entry in DEFAULT_TARGETS.items()}
    overrides = load_yaml(path or SELECTORS_PATH)
    for name, entry in overrides.items():
        if isinstance(entry, list):
            entry = {"finders": entry}
        if not isinstance(entry, dict):
            log.warning("Ignoring selector override %r: expected a list or mapping", name)
            continue
        if name not in table:
            log.info("Adding selector target %r from overrides", name)
        table[name] = {**table.get(name, {}), **entry}

    targets: dict[str, Target] = {}
    for name, entry in table.items():
        try:
            targets[name] = build_target(name, entry)
        except ValueError as e:
            log.warning("Skipping selector target %r: %s", name, e)
            if name in DEFAULT_TARGETS:
                targets[name] = build_target(name, DEFAULT_TARGETS[name])
    return targets


def check_targets(
    surface: Surface, targets: dict[str, Target], resolver: Resolver | None = None
) -> list[tuple[str, str, str]]:
    """``(target, matching finder or "-", where)`` for every target, no waiting.

    Replays the tables against a live page or a saved snapshot to see which
    fallbacks still hit after a markup change.
    """
    resolver = resolver or Resolver(timeout=0)
    rows: list[tuple[str, str, str]] = []
    for name, target in sorted(targets.items()):
        found = resolver.probe(surface, target)
        if found:
            where = "top" if found.surface is surface else f"frame {found.frame_url}"
            rows.append((name, str(found.finder), where))
        else:
            rows.append((name, "-", "not found"))
    return rows

from __future__ import annotations

import pytest

from autopilot.actuator import Actuator
from autopilot.inbox import (
    MESSAGING_URL,
    NOTIFICATIONS_URL,
    InboxBot,
    ReplyLog,
    detect_sales_pitch,
    thread_id_from_href,
    thread_url,
)
from autopilot.surfaces.html import HtmlSurface
from autopilot.timing import NoDelay

INBOX = """
<ul class="msg-conversations-container__conversations-list">
  <li class="msg-conversation-listitem" data-conversation-id="t1">
    <h3 class="msg-conversation-listitem__participant-names">Ana Lopez</h3>
    <p class="msg-conversation-card__message-snippet">Coffee next week?</p>
    <span class="msg-conversation-card__unread-count">2</span>
  </li>
  <li class="msg-conversation-listitem">
    <a href="/messaging/thread/t2/"><h3 class="msg-conversation-listitem__participant-names">Sam Seller</h3></a>
    <span class="msg-conversation-card__unread-count"></span>
  </li>
  <li class="msg-conversation-listitem" data-conversation-id="t3">
    <h3 class="msg-conversation-listitem__participant-names">Already Read</h3>
  </li>
</ul>
"""

COMPOSER = """
<form>
  <div class="msg-form__contenteditable" contenteditable="true"></div>
  <button type="submit" class="msg-form__send-button">Send</button>
</form>
"""


def thread(*events: tuple[str, str, bool]) -> str:
    rows = []
    for sender, body, outgoing in events:
        cls = "msg-s-message-list__event"
        if outgoing:
            cls += " msg-s-message-list__event--outbound"
        rows.append(
            f'<li class="{cls}"><span class="msg-s-message-group__name">{sender}</span>'
            f'<time datetime="2026-03-10T10:00">10:00</time>'
            f'<p class="msg-s-event-listitem__body">{body}</p></li>'
        )
    return f'<ul class="msg-s-message-list">{"".join(rows)}</ul>{COMPOSER}'


THREADS = {
    "t1": thread(("Ana Lopez", "Hi!", False), ("You", "Hey Ana", True), ("Ana Lopez", "Coffee next week?", False)),
    "t2": thread(("Sam Seller", "Book a demo of our platform today", False)),
    "t3": thread(("Already Read", "Thanks", False), ("You", "Anytime", True)),
}


def _click(surface, element):
    ident = element.attr("data-conversation-id") or thread_id_from_href(element.attr("href") or "")
    if ident:
        surface.goto(thread_url(ident))


@pytest.fixture
def surface() -> HtmlSurface:
    pages = {MESSAGING_URL: INBOX, **{thread_url(k): v for k, v in THREADS.items()}}
    return HtmlSurface(pages=pages, on_click=_click)


@pytest.fixture
def bot(surface, resolver, targets, paths) -> InboxBot:
    return InboxBot(surface, resolver, targets, Actuator(NoDelay()), screenshots=paths.screenshots)


class FakeReplies:
    def __init__(self, text: str = "Sounds good, how about Tuesday?") -> None:
        self.text = text
        self.calls: list[tuple[str, int, str]] = []

    def __call__(self, incoming, history, sender):
        self.calls.append((incoming, len(history), sender))
        return self.text


def test_thread_ids():
    assert thread_id_from_href("/messaging/thread/2-abc==/?x=1") == "2-abc=="
    assert thread_id_from_href("/in/someone/") is None
    assert thread_url("t9") == "https://www.linkedin.com/messaging/thread/t9/"


@pytest.mark.parametrize("text,expected", [
    ("Would you like to BOOK A DEMO?", True),
    ("We help companies like yours scale", True),
    ("Are you free for coffee on Friday?", False),
])
def test_detect_sales_pitch(text, expected):
    assert detect_sales_pitch(text) is expected


def test_unread_conversations(bot, surface):
    surface.goto(MESSAGING_URL)
    unread = bot.get_unread_conversations()
    assert [(c.thread_id, c.author_name, c.unread_count) for c in unread] == [
        ("t1", "Ana Lopez", 2),
        ("t2", "Sam Seller", 1),
    ]
    assert unread[0].preview == "Coffee next week?"


def test_extract_history(bot, surface):
    surface.goto(thread_url("t1"))
    history = bot.extract_history()
    assert [(m.sender, m.is_outgoing) for m in history] == [
        ("Ana Lopez", False), ("You", True), ("Ana Lopez", False),
    ]
    assert history[-1].content == "Coffee next week?"
    assert history[0].timestamp == "2026-03-10T10:00"
    assert len(bot.extract_history(limit=2)) == 2


def test_process_unread_replies_and_skips_pitches(bot, surface, paths):
    replies = ReplyLog(paths)
    generate = FakeReplies()

    stats = bot.process_unread(generate, replies)

    assert stats == {"processed": 2, "replied": 1, "skipped": 1}
    assert generate.calls == [("Coffee next week?", 3, "Ana Lopez")]
    sent = replies.sent()
    assert len(sent) == 1
    assert sent[0]["threadId"] == "t1"
    assert sent[0]["sentReply"] == "Sounds good, how about Tuesday?"
    assert any(c.has_class("msg-form__send-button") for c in surface.clicks)
    # t2 was not in the list any more after opening t1, so it was opened by URL
    assert thread_url("t2") in surface.visited


def test_approval_mode_saves_instead_of_sending(bot, surface, paths):
    replies = ReplyLog(paths)
    stats = bot.process_unread(FakeReplies("Sure!"), replies, require_approval=True)

    assert stats["replied"] == 0
    assert replies.sent() == []
    pending = replies.pending()
    assert [(p["authorName"], p["generatedReply"]) for p in pending] == [("Ana Lopez", "Sure!")]
    assert not any(c.has_class("msg-form__send-button") for c in surface.clicks)


def test_sales_pitches_can_be_answered(bot, paths):
    generate = FakeReplies()
    stats = bot.process_unread(generate, ReplyLog(paths), skip_sales_pitches=False)
    assert stats["replied"] == 2
    assert len(generate.calls) == 2


def test_max_replies(bot, paths):
    stats = bot.process_unread(FakeReplies(), ReplyLog(paths), max_replies=1)
    assert stats["processed"] == 1


def test_last_message_ours_is_skipped(resolver, targets, paths):
    inbox = '<ul class="msg-conversations-container__conversations-list"><li class="msg-conversation-listitem" data-conversation-id="t3"><h3>Already Read</h3><span class="artdeco-notification-badge">1</span></li></ul>'
    surface = HtmlSurface(pages={MESSAGING_URL: inbox, thread_url("t3"): THREADS["t3"]}, on_click=_click)
    bot = InboxBot(surface, resolver, targets, Actuator(NoDelay()))
    generate = FakeReplies()
    stats = bot.process_unread(generate, ReplyLog(paths))
    assert stats == {"processed": 1, "replied": 0, "skipped": 1}
    assert generate.calls == []


def test_send_falls_back_to_enter(resolver, targets):
    surface = HtmlSurface('<div class="msg-form__contenteditable" contenteditable="true"></div>')
    bot = InboxBot(surface, resolver, targets, Actuator(NoDelay()))
    assert bot.send_message("On my way")
    assert surface.keys == ["Enter"]
    assert surface.query(".msg-form__contenteditable").text() == "On my way"


def test_send_without_input_fails(resolver, targets, paths):
    surface = HtmlSurface("<p>empty</p>")
    bot = InboxBot(surface, resolver, targets, Actuator(NoDelay()), screenshots=paths.screenshots)
    assert not bot.send_message("hello")
    assert list(paths.screenshots.glob("send-dm-error-*.html"))


NOTIFICATIONS = """
<div class="nt-card-list">
  <div class="nt-card">
    <span class="nt-card__text"><strong>Ana Lopez</strong> commented on your post</span>
    <a href="/feed/update/urn:li:activity:7/">View</a>
  </div>
  <div class="nt-card">
    <span class="nt-card__text"><strong>Sam</strong> liked your post</span>
    <a href="/feed/update/urn:li:activity:8/">View</a>
  </div>
</div>
"""

POST = """
<div class="feed-shared-update-v2">
  <article class="comments-comment-item" data-id="c1">
    <span class="comments-post-meta__name-text">Ana Lopez</span>
    <span class="comments-comment-item__main-content">Great write-up, thanks!</span>
    <button aria-label="Reply to Ana Lopez">Reply</button>
  </article>
  <article class="comments-comment-item" data-id="c2">
    <span class="comments-post-meta__name-text">Bo</span>
    <span class="comments-comment-item__main-content">Nice</span>
    <button aria-label="Reply to Bo">Reply</button>
    <article class="comments-comment-item--reply">Thanks Bo</article>
  </article>
  <form class="comments-comment-box__form">
    <div class="ql-editor" contenteditable="true" data-placeholder="Add a reply"></div>
    <button class="comments-comment-box__submit-button">Reply</button>
  </form>
</div>
"""

POST_URL = "https://www.linkedin.com/feed/update/urn:li:activity:7/"


def test_comment_notifications(resolver, targets):
    surface = HtmlSurface(NOTIFICATIONS)
    found = InboxBot(surface, resolver, targets, Actuator(NoDelay())).get_comment_notifications()
    assert [(n.author_name, n.post_url) for n in found] == [("Ana Lopez", POST_URL)]


def test_extract_comments_skips_answered(resolver, targets):
    bot = InboxBot(HtmlSurface(POST), resolver, targets, Actuator(NoDelay()))
    comments = bot.extract_comments()
    assert [(c.comment_id, c.author_name, c.can_reply) for c in comments] == [("c1", "Ana Lopez", True)]
    assert len(bot.extract_comments(include_replied=True)) == 2


def test_process_comments(resolver, targets, paths):
    surface = HtmlSurface(pages={NOTIFICATIONS_URL: NOTIFICATIONS, POST_URL: POST})
    bot = InboxBot(surface, resolver, targets, Actuator(NoDelay()))
    replies = ReplyLog(paths)

    stats = bot.process_comments(FakeReplies("Glad it helped!"), replies)

    assert stats == {"processed": 1, "replied": 1, "skipped": 0}
    assert surface.query(".ql-editor").text() == "Glad it helped!"
    assert replies.sent()[0]["threadId"] == "c1"

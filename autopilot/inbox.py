"""Direct messages and post comments: read, decide, reply."""
from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urljoin

from autopilot import selectors as sel
from autopilot.actuator import Actuator
from autopilot.config import Paths
from autopilot.diagnostics import capture
from autopilot.log import get_logger
from autopilot.models import (
    Comment,
    CommentNotification,
    ConversationSummary,
    Message,
    utcnow_iso,
)
from autopilot.resolver import Resolver, Target, first_match, first_text
from autopilot.store import JsonStore
from autopilot.surfaces.base import Element, Surface
from autopilot.timing import Delay

log = get_logger(__name__)

BASE_URL = "https://www.linkedin.com"
MESSAGING_URL = f"{BASE_URL}/messaging/"
NOTIFICATIONS_URL = f"{BASE_URL}/notifications/"

SALES_KEYWORDS: tuple[str, ...] = (
    "buy now", "limited time", "discount", "special offer",
    "schedule a call", "book a demo", "free trial",
    "increase your revenue", "grow your business",
    "exclusive opportunity", "act now", "don't miss out",
    "we help companies", "our solution", "our platform",
)

_THREAD_RE = re.compile(r"thread/([^/?#]+)")

# (incoming message, conversation so far, sender name) -> reply text
ReplyFn = Callable[[str, list[Message], str], str]


def thread_url(thread_id: str) -> str:
    return f"{MESSAGING_URL}thread/{thread_id}/"


def thread_id_from_href(href: str) -> str | None:
    m = _THREAD_RE.search(href or "")
    return m.group(1) if m else None


def detect_sales_pitch(message: str) -> bool:
    low = message.lower()
    return any(k in low for k in SALES_KEYWORDS)


def _all_of_first(scope: Element | Surface, selectors: tuple[str, ...]) -> list[Element]:
    """Elements for the first selector that matches anything.

    Taking one selector avoids counting a card twice when the page nests
    several of the classes we know about.
    """
    for css in selectors:
        found = scope.query_all(css)
        if found:
            return found
    return []


class ReplyLog:
    """Pending (approval mode) and sent replies under ``data/replies``."""

    def __init__(self, paths: Paths) -> None:
        self.pending_store = JsonStore(paths.replies / "pending-replies.json", list)
        self.sent_store = JsonStore(paths.replies / "sent-replies.json", list)

    def save_pending(self, convo: ConversationSummary, incoming: str, reply: str) -> None:
        with self.pending_store.transaction() as pending:
            pending.append({
                "threadId": convo.thread_id,
                "authorName": convo.author_name,
                "incomingMessage": incoming,
                "generatedReply": reply,
                "generatedAt": utcnow_iso(),
            })
        log.info("Reply to %s saved for approval", convo.author_name)

    def log_sent(self, convo: ConversationSummary, incoming: str, reply: str) -> None:
        with self.sent_store.transaction() as sent:
            sent.append({
                "threadId": convo.thread_id,
                "authorName": convo.author_name,
                "incomingMessage": incoming,
                "sentReply": reply,
                "sentAt": utcnow_iso(),
            })

    def pending(self) -> list[dict[str, Any]]:
        return self.pending_store.read()

    def sent(self) -> list[dict[str, Any]]:
        return self.sent_store.read()


class InboxBot:
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

    @property
    def delay(self) -> Delay:
        return self.actuator.delay

    # navigation

    def _open(self, url: str, marker: str, error_name: str) -> bool:
        if not self.surface.goto(url, timeout=30):
            log.warning("Navigation to %s timed out, checking the page anyway", url)
        self.delay.pause(3, 5)
        if self.resolver.resolve(self.surface, self.targets[marker], timeout=5):
            return True
        log.warning("%s did not load", marker)
        self._capture(error_name)
        return False

    def navigate_to_inbox(self) -> bool:
        log.info("Opening messaging inbox")
        return self._open(MESSAGING_URL, "inbox_list", "inbox-error")

    def navigate_to_notifications(self) -> bool:
        log.info("Opening notifications")
        return self._open(NOTIFICATIONS_URL, "notifications_list", "notifications-error")

    def navigate_to_post(self, post_url: str) -> bool:
        log.info("Opening post %s", post_url)
        return self._open(post_url, "post_page", "post-error")

    def open_conversation(self, thread_id: str) -> bool:
        """Click the thread in the list; navigate to its URL if it isn't there."""
        card = self.surface.query(f'[data-conversation-id="{thread_id}"], [href*="{thread_id}"]')
        if card is not None and card.is_visible() and self.actuator.click(card, pause=(2, 3)):
            return True
        log.debug("Thread %s not in the list, navigating directly", thread_id)
        try:
            self.surface.goto(thread_url(thread_id), timeout=30)
        except Exception as e:
            log.error("Could not open conversation %s: %s", thread_id, e)
            self._capture("conversation-error")
            return False
        self.delay.pause(2, 4)
        return True

    # reading

    def get_unread_conversations(self) -> list[ConversationSummary]:
        out: list[ConversationSummary] = []
        for card in _all_of_first(self.surface, sel.CONVERSATION_CARDS):
            badge = first_match(card, sel.UNREAD_BADGE)
            if badge is None:
                continue
            thread_id = card.attr("data-conversation-id")
            if not thread_id:
                link = first_match(card, sel.CONVERSATION_LINK)
                thread_id = thread_id_from_href(link.attr("href") or "") if link else None
            if not thread_id:
                log.debug("Unread card without a thread id, skipping")
                continue
            count = badge.text().strip()
            out.append(ConversationSummary(
                thread_id=thread_id,
                author_name=first_text(card, sel.PARTICIPANT_NAME, "Unknown"),
                preview=first_text(card, sel.MESSAGE_PREVIEW),
                unread_count=int(count) if count.isdigit() else 1,
            ))
        log.info("Found %d unread conversation(s)", len(out))
        return out

    def extract_history(self, limit: int = 10) -> list[Message]:
        """The last ``limit`` messages of the open conversation, oldest first."""
        messages: list[Message] = []
        for event in _all_of_first(self.surface, sel.MESSAGE_EVENTS)[-limit:]:
            body = first_match(event, sel.MESSAGE_BODY)
            if body is None:
                continue
            outgoing = event.has_class(sel.OUTBOUND_CLASS) or event.query(sel.OUTBOUND_MARKER) is not None
            time_el = first_match(event, sel.MESSAGE_TIME)
            timestamp = None
            if time_el is not None:
                timestamp = time_el.attr("datetime") or time_el.text().strip() or None
            messages.append(Message(
                sender=first_text(event, sel.MESSAGE_SENDER, "You" if outgoing else "Other"),
                content=body.text().strip(),
                timestamp=timestamp,
                is_outgoing=outgoing,
            ))
        log.debug("Extracted %d message(s)", len(messages))
        return messages

    def get_comment_notifications(self) -> list[CommentNotification]:
        out: list[CommentNotification] = []
        for card in _all_of_first(self.surface, sel.NOTIFICATION_CARDS):
            text = first_text(card, sel.NOTIFICATION_TEXT)
            low = text.lower()
            if "commented" not in low or not ("your post" in low or "your activity" in low):
                continue
            link = first_match(card, sel.NOTIFICATION_POST_LINK)
            href = link.attr("href") if link else None
            out.append(CommentNotification(
                author_name=first_text(card, sel.NOTIFICATION_ACTOR, "Someone"),
                post_url=urljoin(BASE_URL, href) if href else None,
                text=text,
            ))
        log.info("Found %d comment notification(s)", len(out))
        return out

    def extract_comments(self, include_replied: bool = False) -> list[Comment]:
        expand = first_match(self.surface, sel.COMMENTS_EXPAND)
        if expand is not None:
            self.actuator.click(expand, pause=(2, 3))
        out: list[Comment] = []
        for el in _all_of_first(self.surface, sel.COMMENTS):
            body = first_match(el, sel.COMMENT_BODY)
            if body is None:
                continue
            has_reply = el.query(sel.COMMENT_HAS_REPLY) is not None
            if has_reply and not include_replied:
                continue
            out.append(Comment(
                comment_id=el.attr("data-id") or el.attr("data-urn") or f"comment_{uuid.uuid4().hex[:9]}",
                author_name=first_text(el, sel.COMMENT_AUTHOR, "Unknown"),
                content=body.text().strip(),
                has_reply=has_reply,
                can_reply=first_match(el, sel.COMMENT_REPLY_BUTTON) is not None,
            ))
        return out

    # writing

    def _type_into(self, target: str, text: str) -> bool:
        box = self.resolver.resolve(self.surface, self.targets[target], timeout=5)
        if not box:
            return False
        self.actuator.click(box.element, pause=(0.5, 1))
        self.actuator.human_type(box.surface, box.element, text)
        self.delay.pause(1, 2)
        return True

    def send_message(self, text: str) -> bool:
        """Type into the open conversation and send. Enter is the fallback for Send."""
        try:
            if not self._type_into("message_input", text):
                log.error("Could not find message input")
                self._capture("send-dm-error")
                return False
            button = self.resolver.resolve(self.surface, self.targets["send_button"], timeout=2)
            if not button or not self.actuator.click(button.element, pause=(0.2, 0.5)):
                log.info("No enabled Send button, pressing Enter")
                self.surface.press("Enter")
            self.delay.pause(2, 3)
        except Exception as e:
            log.error("Sending message failed: %s", e)
            self._capture("send-dm-error")
            return False
        log.info("Message sent")
        return True

    def reply_to_comment(self, comment_id: str, text: str) -> bool:
        try:
            el = self.surface.query(f'[data-id="{comment_id}"], [data-urn="{comment_id}"]')
            if el is None:
                el = first_match(self.surface, sel.COMMENTS)
            button = first_match(el, sel.COMMENT_REPLY_BUTTON) if el is not None else None
            if button is None or not self.actuator.click(button, pause=(1.5, 2.5)):
                log.warning("Reply button not found for %s, using the comment box", comment_id)
            if not self._type_into("comment_input", text):
                log.error("Could not find reply input")
                self._capture("reply-comment-error")
                return False
            submit = self.resolver.resolve(self.surface, self.targets["comment_submit"], timeout=2)
            if not submit or not self.actuator.click(submit.element, pause=(0.2, 0.5)):
                log.info("No enabled reply button, pressing Control+Enter")
                self.surface.press("Control+Enter")
            self.delay.pause(2, 3)
        except Exception as e:
            log.error("Replying to comment %s failed: %s", comment_id, e)
            self._capture("reply-comment-error")
            return False
        log.info("Replied to comment %s", comment_id)
        return True

    # loops

    def process_unread(
        self,
        generate_reply: ReplyFn,
        replies: ReplyLog,
        *,
        require_approval: bool = False,
        max_replies: int = 10,
        skip_sales_pitches: bool = True,
    ) -> dict[str, int]:
        """Reply to unread conversations whose last message is theirs."""
        stats = {"processed": 0, "replied": 0, "skipped": 0}
        self.navigate_to_inbox()
        self.delay.pause(2, 3)
        unread = self.get_unread_conversations()
        if not unread:
            log.info("No unread messages")
            return stats

        for convo in unread[:max_replies]:
            stats["processed"] += 1
            log.info("Conversation with %s", convo.author_name)
            if not self.open_conversation(convo.thread_id):
                stats["skipped"] += 1
                continue
            self.delay.pause(2, 3)

            history = self.extract_history(10)
            if not history:
                log.info("  no messages found, skipping")
                stats["skipped"] += 1
                continue
            last = history[-1]
            if last.is_outgoing:
                log.info("  last message is ours, skipping")
                stats["skipped"] += 1
                continue
            if skip_sales_pitches and detect_sales_pitch(last.content):
                log.info("  looks like a sales pitch, skipping")
                stats["skipped"] += 1
                continue

            reply = generate_reply(last.content, history, convo.author_name)
            if require_approval:
                replies.save_pending(convo, last.content, reply)
            elif self.send_message(reply):
                stats["replied"] += 1
                replies.log_sent(convo, last.content, reply)
            else:
                log.warning("  reply to %s was not sent", convo.author_name)
            self.delay.pause(5, 10)

        log.info("Inbox done: %(processed)d processed, %(replied)d replied, %(skipped)d skipped", stats)
        return stats

    def process_comments(
        self,
        generate_reply: ReplyFn,
        replies: ReplyLog,
        *,
        require_approval: bool = False,
        max_replies: int = 10,
    ) -> dict[str, int]:
        """Answer new comments on our posts, found through notifications."""
        stats = {"processed": 0, "replied": 0, "skipped": 0}
        if not self.navigate_to_notifications():
            return stats
        posts = {n.post_url for n in self.get_comment_notifications() if n.post_url}
        for url in sorted(posts):
            if stats["processed"] >= max_replies or not self.navigate_to_post(url):
                continue
            for comment in self.extract_comments():
                if stats["processed"] >= max_replies:
                    break
                stats["processed"] += 1
                if not comment.can_reply or detect_sales_pitch(comment.content):
                    stats["skipped"] += 1
                    continue
                reply = generate_reply(comment.content, [], comment.author_name)
                convo = ConversationSummary(thread_id=comment.comment_id, author_name=comment.author_name)
                if require_approval:
                    replies.save_pending(convo, comment.content, reply)
                elif self.reply_to_comment(comment.comment_id, reply):
                    stats["replied"] += 1
                    replies.log_sent(convo, comment.content, reply)
                self.delay.pause(5, 10)
        log.info("Comments done: %(processed)d processed, %(replied)d replied, %(skipped)d skipped", stats)
        return stats

    def _capture(self, name: str) -> None:
        if self.screenshots is not None:
            capture(self.surface, self.screenshots, name)

"""Learn the user's messaging voice from their sent DMs and write replies in it."""
from __future__ import annotations

import json
import random
from typing import Any

from autopilot import selectors as sel
from autopilot.config import Paths
from autopilot.inbox import MESSAGING_URL, detect_sales_pitch, thread_id_from_href, thread_url
from autopilot.llm import Completer, complete_json
from autopilot.log import get_logger
from autopilot.models import Message, VoiceProfile, utcnow_iso
from autopilot.resolver import first_text
from autopilot.store import JsonStore
from autopilot.surfaces.base import Element, Surface
from autopilot.timing import Delay, NoDelay

log = get_logger(__name__)

MIN_MESSAGES = 5

GENERIC_REPLIES: tuple[str, ...] = (
    "Thanks for reaching out! Let me get back to you on this.",
    "Appreciate the message - I'll follow up soon.",
    "Got it, thanks! Will circle back shortly.",
    "Thanks for the note! Let me look into this.",
)

CATEGORY_HINTS: dict[str, str] = {
    "networking": "This is a networking/connection message. Be friendly and open to connecting.",
    "job-inquiry": "This is about a job opportunity. Be professional but interested.",
    "sales-pitch": "This is a sales/marketing message. Be polite but brief.",
    "follow-up": "This is a follow-up to a previous conversation. Reference the context.",
    "thank-you": "They are thanking you. Respond graciously.",
    "question": "They are asking a question. Answer helpfully in your style.",
}

_LIST_CONTAINERS = (
    ".msg-conversations-container__conversations-list",
    '[class*="msg-conversations"]',
    ".scaffold-layout__list",
    'ul[class*="list"]',
)
_NAME_PATTERNS = (
    "h3",
    "h4",
    '[class*="participant"]',
    '[class*="entity-name"]',
    'span[class*="truncate"]',
    ".msg-conversation-listitem__participant-names",
    ".artdeco-entity-lockup__title",
)
_ROW = "li, .msg-conversation-listitem, .msg-conversation-card"

ANALYSIS_SYSTEM = (
    "You are an expert at analyzing communication styles and creating detailed "
    "voice profiles. Return valid JSON only."
)

ANALYSIS_PROMPT = """Analyze these LinkedIn DM messages from one person and create a detailed voice profile. These are REAL messages they sent - learn their exact style.

MESSAGES:
{messages}

Cover tone and formality, message length, greeting and sign-off style, common phrases,
punctuation and emoji habits, how they structure responses, and personality traits.

Return a JSON object with this structure:
{{
  "summary": "One paragraph describing their overall communication style",
  "tone": "casual/professional/friendly/formal/mixed",
  "avgMessageLength": "short/medium/long",
  "greetingStyle": "description and examples",
  "signOffStyle": "description and examples",
  "commonPhrases": ["phrase1", "phrase2"],
  "punctuationStyle": {{
    "exclamationFrequency": "never/rare/sometimes/often",
    "emojiUsage": "never/rare/sometimes/often",
    "commonEmojis": []
  }},
  "responsePattern": "how they typically structure responses",
  "personalityTraits": ["trait1", "trait2"],
  "exampleResponses": {{
    "thankingResponse": "...",
    "agreeingResponse": "...",
    "askingQuestion": "...",
    "casualGreeting": "..."
  }}
}}"""

REPLY_PROMPT = """Write a LinkedIn DM reply that sounds EXACTLY like this person.

VOICE PROFILE:
{profile}
{context}
MESSAGE TO REPLY TO (from {sender}):
"{incoming}"

Match their tone, greeting and sign-off habits, common phrases, punctuation, emoji use
and typical length. Don't add things they wouldn't say.

Reply only with the message text, nothing else:"""

CATEGORY_PROMPT = """Write a LinkedIn DM reply in this person's voice.

VOICE PROFILE:
{profile}

CONTEXT: {hint}

MESSAGE TO REPLY TO:
"{incoming}"

Write a natural reply that sounds exactly like them:"""


def _participant_name(row: Element, link: Element) -> str:
    for css in _NAME_PATTERNS:
        el = row.query(css)
        text = el.text().strip() if el is not None else ""
        if 0 < len(text) < 100:
            return text.splitlines()[0]
    text = link.text().strip()
    if 2 < len(text) < 50 and "message" not in text and "ago" not in text:
        return text
    return "Unknown"


class VoiceLearner:
    def __init__(
        self,
        llm: Completer,
        paths: Paths,
        *,
        delay: Delay | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.llm = llm
        self.delay = delay or NoDelay()
        self.rng = rng or random.Random()
        self.scraped_store = JsonStore(paths.replies / "scraped-messages.json", list)
        self.profile_store = JsonStore(paths.replies / "voice-profile.json", dict)
        self.manual_path = paths.replies / "manual-messages.json"
        self.scraped_messages: list[Message] = []
        self.profile: VoiceProfile | None = None

    @property
    def enabled(self) -> bool:
        return self.profile is not None

    def load(self) -> VoiceLearner:
        self.scraped_messages = [Message.from_dict(m) for m in self.scraped_store.read() if isinstance(m, dict)]
        data = self.profile_store.read()
        self.profile = None
        if data:
            try:
                self.profile = VoiceProfile.from_dict(data)
            except (TypeError, ValueError) as e:
                log.warning("Ignoring voice profile: %s", e)
        if self.profile:
            log.info("Voice profile loaded (%d messages analyzed)", self.profile.message_count)
        else:
            log.info("No voice profile; replies use generic text")
        return self

    # scraping

    def get_conversation_list(self, surface: Surface, limit: int = 20) -> list[tuple[str, str]]:
        """``(thread_id, participant)`` pairs from the messaging sidebar."""
        self.delay.pause(3, 5)
        for _ in range(3):
            if not any(surface.scroll(css) for css in _LIST_CONTAINERS):
                break
            self.delay.pause(1, 2)

        seen: set[str] = set()
        out: list[tuple[str, str]] = []
        for link in surface.query_all(sel.THREAD_LINKS):
            if len(out) >= limit:
                break
            thread_id = thread_id_from_href(link.attr("href") or "")
            if not thread_id or thread_id in seen:
                continue
            seen.add(thread_id)
            row = link.closest(_ROW) or link
            out.append((thread_id, _participant_name(row, link)))
        log.info("Found %d conversations", len(out))
        return out

    def scrape_conversation(self, surface: Surface, thread_id: str) -> list[Message]:
        surface.goto(thread_url(thread_id), timeout=30)
        self.delay.pause(2, 4)
        for _ in range(5):
            surface.scroll(sel.MESSAGE_LIST, to_top=True)
            self.delay.pause(0.5, 1)
        self.delay.pause(2, 3)

        messages: list[Message] = []
        for group in surface.query_all(sel.MESSAGE_EVENTS[0]):
            outgoing = group.has_class(sel.OUTBOUND_CLASS) or group.query(f".{sel.OUTBOUND_CLASS}") is not None
            sender = first_text(group, sel.MESSAGE_SENDER[:1], "You" if outgoing else "Other")
            time_el = group.query(".msg-s-message-group__timestamp, time")
            timestamp = (time_el.attr("datetime") or time_el.text().strip()) if time_el is not None else None
            for body in group.query_all(sel.MESSAGE_BODY[0]):
                content = body.text().strip()
                if content:
                    messages.append(Message(sender, content, timestamp, outgoing))
        return messages

    def scrape_all_conversations(self, surface: Surface, max_conversations: int = 15) -> list[Message]:
        """Collect the user's own messages from recent conversations and save them."""
        log.info("Scraping up to %d conversations for voice learning", max_conversations)
        surface.goto(MESSAGING_URL, timeout=30)
        self.delay.pause(3, 5)

        collected: list[Message] = []
        for thread_id, participant in self.get_conversation_list(surface, max_conversations):
            try:
                messages = self.scrape_conversation(surface, thread_id)
            except Exception as e:
                log.warning("Could not scrape conversation with %s: %s", participant, e)
                continue
            mine = [m for m in messages if m.is_outgoing]
            for m in mine:
                m.participant = participant
            collected.extend(mine)
            log.info("  %s: %d of your messages", participant, len(mine))
            self.delay.pause(2, 4)

        self.scraped_messages = collected
        self.scraped_store.save([m.to_dict() for m in collected])
        log.info("Scraped %d of your messages", len(collected))
        return collected

    # analysis

    def analyze_voice(self, messages: list[Message] | None = None) -> VoiceProfile | None:
        """Build a profile from scraped messages. None keeps the existing profile."""
        messages = self.scraped_messages if messages is None else messages
        if len(messages) < MIN_MESSAGES:
            log.warning("Need at least %d messages to learn a voice, have %d", MIN_MESSAGES, len(messages))
            return None
        samples = [m.content for m in messages if 10 < len(m.content) < 500][:50]
        return self._analyze(samples, len(messages))

    def analyze_manual_messages(self) -> VoiceProfile | None:
        """Build a profile from ``manual-messages.json`` (strings or ``{"content": ...}``)."""
        if not self.manual_path.exists():
            log.error("%s not found", self.manual_path)
            return None
        try:
            with open(self.manual_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            log.error("%s is not valid JSON: %s", self.manual_path.name, e)
            return None
        texts = [m.get("content", "") if isinstance(m, dict) else str(m) for m in raw or []]
        if len(texts) < MIN_MESSAGES:
            log.warning("Need at least %d manual messages, have %d", MIN_MESSAGES, len(texts))
            return None
        samples = [t for t in texts if t and len(t) > 5]
        return self._analyze(samples, len(samples))

    def _analyze(self, samples: list[str], count: int) -> VoiceProfile | None:
        log.info("Analyzing voice from %d sample messages", len(samples))
        listing = "\n".join(f'{i}. "{m}"' for i, m in enumerate(samples, 1))
        try:
            data = complete_json(self.llm, ANALYSIS_SYSTEM, ANALYSIS_PROMPT.format(messages=listing),
                                 temperature=0.3, max_tokens=2000)
            profile = VoiceProfile.from_dict(data)
        except Exception as e:
            log.error("Voice analysis failed (%s); keeping the existing profile", e)
            return None
        profile.analyzed_at = utcnow_iso()
        profile.message_count = count
        self.profile = profile
        self.profile_store.save(profile.to_dict())
        log.info("Voice profile saved: %s", profile.summary[:120])
        return profile

    # replies

    def generic_reply(self) -> str:
        return self.rng.choice(GENERIC_REPLIES)

    @staticmethod
    def _profile_json(profile: VoiceProfile) -> str:
        return json.dumps(profile.to_dict(), indent=2, ensure_ascii=False)

    def generate_reply(
        self, incoming: str, context: list[Message] | None = None, sender_name: str = "them"
    ) -> str:
        if self.profile is None:
            return self.generic_reply()
        context_str = ""
        if context:
            lines = [f"{'You' if m.is_outgoing else sender_name}: {m.content}" for m in context[-5:]]
            context_str = "\nRECENT CONVERSATION:\n" + "\n".join(lines) + "\n"
        system = (
            f"You are ghostwriting as someone with this communication style: {self.profile.summary}. "
            "Write EXACTLY how they would write - same tone, same length, same phrases."
        )
        prompt = REPLY_PROMPT.format(
            profile=self._profile_json(self.profile), context=context_str,
            sender=sender_name, incoming=incoming,
        )
        return self._reply(system, prompt, sender_name)

    def compose_reply(
        self, incoming: str, context: list[Message] | None = None, sender_name: str = "them"
    ) -> str:
        """Reply in the learned voice; sales pitches get the brief, polite treatment."""
        if detect_sales_pitch(incoming):
            return self.generate_categorized_reply(incoming, "sales-pitch", context, sender_name)
        return self.generate_reply(incoming, context, sender_name)

    def generate_categorized_reply(
        self,
        incoming: str,
        category: str,
        context: list[Message] | None = None,
        sender_name: str = "them",
    ) -> str:
        if self.profile is None:
            return self.generic_reply()
        system = f"Ghostwrite as someone with this style: {self.profile.summary}. Match their voice exactly."
        prompt = CATEGORY_PROMPT.format(
            profile=self._profile_json(self.profile), hint=CATEGORY_HINTS.get(category, ""), incoming=incoming
        )
        return self._reply(system, prompt, sender_name)

    def _reply(self, system: str, prompt: str, sender_name: str) -> str:
        log.info("Generating reply to %s in your voice", sender_name)
        try:
            reply = self.llm.complete(system, prompt, temperature=0.7, max_tokens=300).strip()
        except Exception as e:
            log.warning("Reply generation failed (%s), using a generic reply", e)
            return self.generic_reply()
        return reply or self.generic_reply()

    def summary(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict() if self.profile else None,
            "scraped_messages": len(self.scraped_messages),
        }

"""
Relay: the core of friendline.
Takes an inbound event, keeps the conversation's state up to date, asks the
fallback chain for a reply, humanizes it and delivers it with pacing.

Text messages run entirely under the conversation's lock:
    touch → profile/mood → history → think → fallback chain → history → deliver
so two messages from the same chat never interleave. Different chats run
concurrently.

Media (voice/sticker/photo/video) never reaches the fallback chain; it gets a
canned reaction after a fixed delay. Commands other than /start are ignored.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

from friendline.backends.router import FallbackRouter
from friendline.delivery import DeliveryScheduler
from friendline.extractor import classify_mood, update_interests
from friendline.humanizer import casualize, split_for_pacing
from friendline.persona import build_extra_context
from friendline.session import Message, SessionStore
from friendline.transport.base import BaseTransport, InboundEvent

logger = logging.getLogger(__name__)

LONG_GAP_SECONDS = 3600

# Sent when the whole fallback chain fails or something breaks mid-reply.
FILLERS = ["my bad i zoned out", "wait what", "huh?", "hold on", "sorry what"]

GREETING_PAUSE = 0.8


@dataclass(frozen=True)
class MediaReply:
    typing: bool
    delay: float
    replies: tuple[str, ...]


MEDIA_REPLIES: dict[str, MediaReply] = {
    "voice": MediaReply(True, 0.5, ("cant listen rn", "voice notes rn? 😅", "yo just type it")),
    "sticker": MediaReply(False, 0.3, ("😂", "lmao", "💀", "haha", "fr")),
    "photo": MediaReply(True, 1.0, ("yoo nice", "thats sick", "damn", "fireee 🔥", "yo thats dope")),
    "video": MediaReply(True, 2.0, ("lmaooo", "bro 💀", "nah thats funny", "haha wtf")),
}


class Relay:
    """Glues session state, the fallback chain and paced delivery together."""

    def __init__(
        self,
        sessions: SessionStore,
        router: FallbackRouter,
        scheduler: DeliveryScheduler,
        transport: BaseTransport,
        long_gap_seconds: float = LONG_GAP_SECONDS,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.sessions = sessions
        self.router = router
        self.scheduler = scheduler
        self.transport = transport
        self.long_gap_seconds = long_gap_seconds
        self.rng = rng or random.Random()
        self._sleep = sleep

    async def handle(self, event: InboundEvent):
        """Entry point for every inbound event."""
        if event.text:
            if event.is_command:
                if event.command == "start":
                    await self.handle_start(event)
                return
            await self.handle_text(event)
        elif event.media_kind:
            await self.handle_media(event)

    async def handle_start(self, event: InboundEvent):
        """/start: wipe the conversation and say hi."""
        cid = event.conversation_id
        async with self.sessions.lock(cid):
            self.sessions.reset(cid, event.display_name)
            await self.transport.send(cid, f"yo what's up {event.display_name}")
            await self._sleep(GREETING_PAUSE)
            await self.transport.send(cid, "just chillin, hbu?")

    async def handle_media(self, event: InboundEvent):
        media = MEDIA_REPLIES.get(event.media_kind)
        if media is None:
            return
        cid = event.conversation_id
        if media.typing:
            await self.transport.send_typing(cid)
        await self._sleep(media.delay)
        await self.transport.send(cid, self.rng.choice(media.replies))

    async def handle_text(self, event: InboundEvent) -> str | None:
        """
        Answer one text message. Returns the humanized reply that went into
        history, or None if a filler was sent instead.
        """
        cid = event.conversation_id
        async with self.sessions.lock(cid):
            logger.info("%s: %s", event.display_name, event.text)
            try:
                return await self._reply(event)
            except Exception:
                logger.exception("Reply to %s failed", cid)
                await self._send_filler(cid)
                return None

    async def _reply(self, event: InboundEvent) -> str | None:
        cid, name, text = event.conversation_id, event.display_name, event.text

        history, profile = self.sessions.get_or_create(cid, name)
        gap = self.sessions.touch(cid)
        # No previous activity counts as a long gap.
        long_gap = gap is None or gap > self.long_gap_seconds

        await self.transport.send_typing(cid)

        update_interests(text, profile)
        mood = classify_mood(text)
        if mood:
            self.sessions.set_mood(cid, mood)
        extra_context = build_extra_context(mood, long_gap)

        self.sessions.append_turn(cid, Message("user", text))

        await self.scheduler.think(text)

        reply = await self.router.complete_with_fallback(history, name, extra_context, profile)
        if not reply:
            logger.error("No reply for %s, all models failed", cid)
            await self._send_filler(cid)
            return None

        casual = casualize(reply)
        self.sessions.append_turn(cid, Message("assistant", casual))

        await self.scheduler.react(cid, casual, self.transport)
        await self.scheduler.deliver(cid, split_for_pacing(casual), self.transport)

        logger.info("Bot: %s", casual)
        return casual

    async def _send_filler(self, conversation_id: str):
        await self.transport.send(conversation_id, self.rng.choice(FILLERS))

"""
Delivery scheduler — paces outbound messages like a person typing.

  think()    pause before replying; longer for longer inbound messages
  react()    sometimes fire off a quick "lol" before the real reply
  deliver()  send chunks in order with a short random gap between them

The random source and the sleep function are injectable so tests can pin
every delay and coin flip.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

from friendline.transport.base import BaseTransport

logger = logging.getLogger(__name__)

REACTIONS = ["lol", "haha", "damn", "yo", "😂", "bruh"]


class DeliveryScheduler:
    """Human-ish timing for outbound messages."""

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
        chunk_gap: tuple[float, float] = (0.6, 1.4),
        short_think: tuple[float, float] = (0.5, 1.5),
        long_think: tuple[float, float] = (1.0, 3.0),
        short_text_len: int = 20,
        reaction_probability: float = 0.3,
        reaction_min_length: int = 30,
        reaction_pause: float = 0.5,
        reactions: list[str] | None = None,
    ):
        self.rng = rng or random.Random()
        self._sleep = sleep
        self.chunk_gap = chunk_gap
        self.short_think = short_think
        self.long_think = long_think
        self.short_text_len = short_text_len
        self.reaction_probability = reaction_probability
        self.reaction_min_length = reaction_min_length
        self.reaction_pause = reaction_pause
        self.reactions = reactions or REACTIONS

    @classmethod
    def from_config(cls, cfg: dict, rng: random.Random | None = None) -> "DeliveryScheduler":
        p_cfg = cfg.get("pacing", {})
        return cls(
            rng=rng,
            chunk_gap=tuple(p_cfg.get("chunk_gap", (0.6, 1.4))),
            short_think=tuple(p_cfg.get("short_think", (0.5, 1.5))),
            long_think=tuple(p_cfg.get("long_think", (1.0, 3.0))),
            short_text_len=p_cfg.get("short_text_len", 20),
            reaction_probability=p_cfg.get("reaction_probability", 0.3),
            reaction_min_length=p_cfg.get("reaction_min_length", 30),
            reaction_pause=p_cfg.get("reaction_pause", 0.5),
            reactions=p_cfg.get("reactions"),
        )

    def thinking_delay(self, inbound_text: str) -> float:
        low, high = self.short_think if len(inbound_text) < self.short_text_len else self.long_think
        return self.rng.uniform(low, high)

    async def think(self, inbound_text: str) -> float:
        """Pause before answering. Returns the delay used."""
        delay = self.thinking_delay(inbound_text)
        await self._sleep(delay)
        return delay

    async def react(self, conversation_id: str, reply: str, transport: BaseTransport) -> str | None:
        """
        Maybe send a one-word reaction ahead of a longer reply.
        Returns the reaction sent, or None.
        """
        if len(reply) <= self.reaction_min_length:
            return None
        if self.rng.random() >= self.reaction_probability:
            return None

        reaction = self.rng.choice(self.reactions)
        if not await transport.send(conversation_id, reaction):
            logger.warning("Reaction to %s not delivered", conversation_id)
        await self._sleep(self.reaction_pause)
        return reaction

    async def deliver(self, conversation_id: str, chunks: list[str], transport: BaseTransport) -> int:
        """
        Send chunks in order with a random gap before each one after the first.
        A failed send is logged and delivery carries on; nothing is replayed.
        Returns the number of chunks delivered.
        """
        delivered = 0
        for i, chunk in enumerate(chunks):
            if i > 0:
                await self._sleep(self.rng.uniform(*self.chunk_gap))
            if await transport.send(conversation_id, chunk):
                delivered += 1
            else:
                logger.warning(
                    "Chunk %d/%d to %s not delivered", i + 1, len(chunks), conversation_id,
                )
        return delivered

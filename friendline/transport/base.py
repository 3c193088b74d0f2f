"""
Transport abstraction.

A transport delivers inbound events to the relay and carries replies back.
Sends are fire-and-forget: they report success as a bool and never raise.
"""

from __future__ import annotations

import abc
import time
from dataclasses import dataclass, field

MEDIA_KINDS = ("voice", "sticker", "photo", "video")


@dataclass
class InboundEvent:
    """One inbound message, normalized away from the platform's format."""
    conversation_id: str
    display_name: str
    text: str | None = None
    media_kind: str | None = None
    arrival_time: float = field(default_factory=time.time)

    @property
    def is_command(self) -> bool:
        return bool(self.text) and self.text.startswith("/")

    @property
    def command(self) -> str:
        """'/start@SomeBot now' → 'start'."""
        if not self.is_command:
            return ""
        parts = self.text[1:].split(maxsplit=1)
        if not parts:
            return ""
        return parts[0].split("@", 1)[0].lower()


class BaseTransport(abc.ABC):
    """Outbound side of a messaging platform."""

    @abc.abstractmethod
    async def send(self, conversation_id: str, text: str) -> bool:
        """Send a text message. Returns False on failure."""
        ...

    @abc.abstractmethod
    async def send_typing(self, conversation_id: str) -> bool:
        """Show a typing indicator. Returns False on failure."""
        ...

"""
Session store — per-conversation state for the lifetime of the process.

Each conversation id owns a bounded history, a profile, the latest detected
mood and a last-activity stamp. Nothing is persisted; a restart forgets
everyone.

Callers serialize work on one conversation with lock(conversation_id). Locks
are sharded per conversation so unrelated chats never wait on each other.

Optional eviction (both off by default):
  - max_conversations: LRU cap on the number of tracked conversations
  - evict_idle(): drop conversations idle for longer than a threshold
A conversation whose lock is currently held is never evicted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

HISTORY_CAP = 40


@dataclass
class Message:
    """One turn of a conversation."""
    role: str  # "user" | "assistant"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class Profile:
    """What we know about the person on the other end."""
    display_name: str
    interests: list[str] = field(default_factory=list)
    last_topics: list[str] = field(default_factory=list)  # reserved


@dataclass
class Session:
    """All state for one conversation."""
    conversation_id: str
    profile: Profile
    history: list[Message] = field(default_factory=list)
    mood: str | None = None
    last_activity: float | None = None


class SessionStore:
    """In-memory, per-conversation state keyed by conversation id."""

    def __init__(
        self,
        history_cap: int = HISTORY_CAP,
        max_conversations: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.history_cap = history_cap
        self.max_conversations = max_conversations
        self._clock = clock
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(cls, cfg: dict) -> "SessionStore":
        s_cfg = cfg.get("session", {})
        return cls(
            history_cap=s_cfg.get("history_cap", HISTORY_CAP),
            max_conversations=s_cfg.get("max_conversations", 0),
        )

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock(self, conversation_id: str) -> asyncio.Lock:
        """Return the lock guarding one conversation, creating it on demand."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def _is_busy(self, conversation_id: str) -> bool:
        lock = self._locks.get(conversation_id)
        return lock is not None and lock.locked()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get(self, conversation_id: str) -> Session | None:
        return self._sessions.get(conversation_id)

    def _ensure(self, conversation_id: str, display_name: str) -> Session:
        session = self._sessions.get(conversation_id)
        if session is None:
            session = Session(
                conversation_id=conversation_id,
                profile=Profile(display_name=display_name),
            )
            self._sessions[conversation_id] = session
            logger.debug("New conversation %s (%s)", conversation_id, display_name)
            self._evict_overflow(keep=conversation_id)
        else:
            self._sessions.move_to_end(conversation_id)
            if display_name and not session.profile.display_name:
                session.profile.display_name = display_name
        return session

    def get_or_create(self, conversation_id: str, display_name: str) -> tuple[list[Message], Profile]:
        """Return (history, profile), creating empty state on first contact."""
        session = self._ensure(conversation_id, display_name)
        return session.history, session.profile

    def reset(self, conversation_id: str, display_name: str) -> Session:
        """Start the conversation over: empty history, fresh profile, activity now."""
        session = Session(
            conversation_id=conversation_id,
            profile=Profile(display_name=display_name),
            last_activity=self._clock(),
        )
        self._sessions[conversation_id] = session
        self._sessions.move_to_end(conversation_id)
        self._evict_overflow(keep=conversation_id)
        return session

    def append_turn(self, conversation_id: str, message: Message):
        """
        Append a message. When the history outgrows the cap the two oldest
        entries go together so user/assistant pairs stay aligned.
        """
        history = self._sessions[conversation_id].history
        history.append(message)
        if len(history) > self.history_cap:
            del history[:2]

    def touch(self, conversation_id: str) -> float | None:
        """
        Mark inbound activity now. Returns seconds since the previous
        activity, or None if there was none.
        """
        now = self._clock()
        session = self._sessions.get(conversation_id)
        if session is None:
            # Activity can arrive before the profile is known; stamp a placeholder.
            session = self._ensure(conversation_id, "")
        previous = session.last_activity
        session.last_activity = now
        if previous is None:
            return None
        return now - previous

    def set_mood(self, conversation_id: str, mood: str | None):
        self._sessions[conversation_id].mood = mood

    def mood(self, conversation_id: str) -> str | None:
        session = self._sessions.get(conversation_id)
        return session.mood if session else None

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def _evict_overflow(self, keep: str):
        if not self.max_conversations:
            return
        overflow = len(self._sessions) - self.max_conversations
        if overflow <= 0:
            return
        for conv_id in list(self._sessions):
            if overflow <= 0:
                break
            if conv_id == keep or self._is_busy(conv_id):
                continue
            self._drop(conv_id)
            overflow -= 1

    def evict_idle(self, max_idle_seconds: float) -> int:
        """Remove conversations idle for longer than max_idle_seconds."""
        cutoff = self._clock() - max_idle_seconds
        stale = [
            conv_id for conv_id, s in self._sessions.items()
            if s.last_activity is not None
            and s.last_activity < cutoff
            and not self._is_busy(conv_id)
        ]
        for conv_id in stale:
            self._drop(conv_id)
        if stale:
            logger.debug("Session store evicted %d idle conversations", len(stale))
        return len(stale)

    def _drop(self, conversation_id: str):
        self._sessions.pop(conversation_id, None)
        self._locks.pop(conversation_id, None)

    @property
    def count(self) -> int:
        return len(self._sessions)

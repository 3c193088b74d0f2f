"""
Tests for the in-memory session store.
Run with: pytest tests/test_session.py
"""

import asyncio

import pytest

from friendline.session import Message, Profile, SessionStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


# ---------------------------------------------------------------------------
# get_or_create
# ---------------------------------------------------------------------------

def test_get_or_create_initializes(store):
    history, profile = store.get_or_create("c1", "Sam")
    assert history == []
    assert profile == Profile(display_name="Sam", interests=[], last_topics=[])


def test_get_or_create_idempotent(store):
    history, profile = store.get_or_create("c1", "Sam")
    profile.interests.append("music")
    history2, profile2 = store.get_or_create("c1", "Someone Else")
    assert history2 is history
    assert profile2 is profile
    assert profile2.display_name == "Sam"


def test_conversations_are_isolated(store):
    store.get_or_create("c1", "Sam")
    store.get_or_create("c2", "Alex")
    store.append_turn("c1", Message("user", "hi"))
    assert store.get("c2").history == []
    assert store.count == 2


# ---------------------------------------------------------------------------
# append_turn
# ---------------------------------------------------------------------------

def test_history_never_exceeds_cap(store):
    store.get_or_create("c1", "Sam")
    for i in range(101):
        store.append_turn("c1", Message("user" if i % 2 == 0 else "assistant", str(i)))
        assert len(store.get("c1").history) <= 40


def test_history_evicts_two_oldest(store):
    store.get_or_create("c1", "Sam")
    for i in range(40):
        store.append_turn("c1", Message("user" if i % 2 == 0 else "assistant", str(i)))
    assert len(store.get("c1").history) == 40

    store.append_turn("c1", Message("user", "40"))
    contents = [m.content for m in store.get("c1").history]
    assert len(contents) == 39
    assert contents == [str(i) for i in range(2, 41)]
    assert store.get("c1").history[0].role == "user"


def test_custom_history_cap(clock):
    store = SessionStore(history_cap=4, clock=clock)
    store.get_or_create("c1", "Sam")
    for i in range(5):
        store.append_turn("c1", Message("user", str(i)))
    assert [m.content for m in store.get("c1").history] == ["2", "3", "4"]


# ---------------------------------------------------------------------------
# touch / mood / reset
# ---------------------------------------------------------------------------

def test_touch_first_contact_returns_none(store):
    store.get_or_create("c1", "Sam")
    assert store.touch("c1") is None


def test_touch_returns_elapsed_and_resets(store, clock):
    store.get_or_create("c1", "Sam")
    store.touch("c1")
    clock.now += 5000
    assert store.touch("c1") == 5000
    clock.now += 2
    assert store.touch("c1") == 2


def test_touch_unknown_conversation_creates_it(store):
    assert store.touch("new") is None
    _, profile = store.get_or_create("new", "Kim")
    assert profile.display_name == "Kim"


def test_mood_keeps_latest(store):
    store.get_or_create("c1", "Sam")
    assert store.mood("c1") is None
    store.set_mood("c1", "happy")
    store.set_mood("c1", "sad")
    assert store.mood("c1") == "sad"
    assert store.mood("missing") is None


def test_reset_clears_state(store, clock):
    history, profile = store.get_or_create("c1", "Sam")
    store.append_turn("c1", Message("user", "hi"))
    profile.interests.append("anime")

    session = store.reset("c1", "Sam")
    assert session.history == []
    assert session.profile.interests == []
    assert session.last_activity == clock.now
    clock.now += 10
    assert store.touch("c1") == 10


# ---------------------------------------------------------------------------
# Eviction
# ---------------------------------------------------------------------------

def test_lru_cap_evicts_least_recent(clock):
    store = SessionStore(max_conversations=2, clock=clock)
    store.get_or_create("a", "A")
    store.get_or_create("b", "B")
    store.get_or_create("a", "A")  # a is now most recent
    store.get_or_create("c", "C")
    assert store.get("b") is None
    assert store.get("a") is not None
    assert store.get("c") is not None


@pytest.mark.asyncio
async def test_lru_cap_skips_busy_conversations(clock):
    store = SessionStore(max_conversations=1, clock=clock)
    store.get_or_create("a", "A")
    async with store.lock("a"):
        store.get_or_create("b", "B")
        assert store.get("a") is not None
    assert store.count == 2


def test_evict_idle(store, clock):
    store.get_or_create("old", "O")
    store.touch("old")
    clock.now += 7200
    store.get_or_create("fresh", "F")
    store.touch("fresh")

    assert store.evict_idle(3600) == 1
    assert store.get("old") is None
    assert store.get("fresh") is not None


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------

def test_lock_is_per_conversation(store):
    assert store.lock("a") is store.lock("a")
    assert store.lock("a") is not store.lock("b")


@pytest.mark.asyncio
async def test_lock_serializes_same_conversation(store):
    order = []

    async def work(tag, delay):
        async with store.lock("c1"):
            order.append(f"{tag}-start")
            await asyncio.sleep(delay)
            order.append(f"{tag}-end")

    await asyncio.gather(work("first", 0.02), work("second", 0))
    assert order == ["first-start", "first-end", "second-start", "second-end"]


@pytest.mark.asyncio
async def test_different_conversations_run_concurrently(store):
    order = []

    async def work(cid, delay):
        async with store.lock(cid):
            order.append(f"{cid}-start")
            await asyncio.sleep(delay)
            order.append(f"{cid}-end")

    await asyncio.gather(work("a", 0.02), work("b", 0))
    assert order.index("b-start") < order.index("a-end")

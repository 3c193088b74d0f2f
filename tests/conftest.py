"""Shared fakes for the relay pipeline tests."""

import pytest

from friendline.transport.base import BaseTransport


class FakeRandom:
    """
    Deterministic stand-in for random.Random.
    uniform() returns the lower bound, choice() the first item, and random()
    walks through the values it was given.
    """

    def __init__(self, randoms=(0.99,)):
        self._randoms = list(randoms)
        self.uniform_calls = []

    def random(self):
        value = self._randoms[0]
        if len(self._randoms) > 1:
            self._randoms.pop(0)
        return value

    def uniform(self, low, high):
        self.uniform_calls.append((low, high))
        return low

    def choice(self, seq):
        return seq[0]


class FakeTransport(BaseTransport):
    """Records everything sent; can be told to fail specific sends."""

    def __init__(self, fail_on=()):
        self.sent: list[tuple[str, str]] = []
        self.typing: list[str] = []
        self.fail_on = set(fail_on)

    async def send(self, conversation_id, text):
        if text in self.fail_on:
            return False
        self.sent.append((conversation_id, text))
        return True

    async def send_typing(self, conversation_id):
        self.typing.append(conversation_id)
        return True

    def texts(self, conversation_id=None):
        return [t for c, t in self.sent if conversation_id is None or c == conversation_id]


class SleepRecorder:
    """Async sleep replacement that records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleeper():
    return SleepRecorder()

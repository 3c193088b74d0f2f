"""
Mood & interest extraction.

Cheap keyword heuristics run on every inbound message. The detected mood is
advisory context for the next completion; interests accumulate on the profile
for the lifetime of the process.
"""

from __future__ import annotations

import re

from friendline.session import Profile

HAPPY = "happy"
SAD = "sad"
STRESSED = "stressed"
EXCITED = "excited"

# Tested in this order; the first hit wins.
MOOD_PATTERNS: list[tuple[str, re.Pattern]] = [
    (HAPPY, re.compile(
        r"\b(?:haha|lol|lmao|happy|great|awesome|amazing|excited)\b|😂|🤣",
        re.IGNORECASE,
    )),
    (SAD, re.compile(
        r"\b(?:sad|upset|crying|depressed|down|bad day)\b|😢|😭",
        re.IGNORECASE,
    )),
    (STRESSED, re.compile(
        r"\b(?:stressed|tired|exhausted|overwhelmed|busy|exam|deadline)\b",
        re.IGNORECASE,
    )),
    (EXCITED, re.compile(
        r"!{2,}|🔥|😍|\b(?:omg|wow|sick|dope)\b",
        re.IGNORECASE,
    )),
]

INTEREST_KEYWORDS = [
    "coding", "programming", "dev", "anime", "gaming", "music",
    "sports", "gym", "movies", "food", "travel", "art", "reading",
    "crypto", "nft", "startup", "college", "school",
]


def classify_mood(text) -> str | None:
    """Return the first mood whose pattern matches, or None."""
    if not isinstance(text, str) or not text:
        return None
    for mood, pattern in MOOD_PATTERNS:
        if pattern.search(text):
            return mood
    return None


def update_interests(text, profile: Profile) -> list[str]:
    """
    Append every interest keyword found in text to profile.interests.
    Plain substring match, so "dev" also hits "devops". Returns the newly
    added keywords.
    """
    if not isinstance(text, str) or not text:
        return []
    lower = text.lower()
    added = []
    for interest in INTEREST_KEYWORDS:
        if interest in lower and interest not in profile.interests:
            profile.interests.append(interest)
            added.append(interest)
    return added

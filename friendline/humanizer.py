"""
Humanizer — make a provider reply read like a text from a friend.

casualize() swaps stiff phrasing for casual phrasing; split_for_pacing()
breaks long replies into several shorter messages so delivery can space
them out.
"""

from __future__ import annotations

import re

# Applied in order, case-insensitive.
SUBSTITUTIONS: list[tuple[re.Pattern, str]] = [
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in [
        (r"However,", "but like"),
        (r"Therefore,", "so"),
        (r"Additionally,", "also"),
        (r"Furthermore,", "and"),
        (r"going to", "gonna"),
        (r"want to", "wanna"),
        (r"kind of", "kinda"),
        (r"sort of", "sorta"),
        (r"have to", "gotta"),
        (r"got to", "gotta"),
    ]
]

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"([.!?]+\s+)")

SPLIT_THRESHOLD = 300
MAX_CHUNK = 250


def _casualize_once(text: str) -> str:
    text = _WHITESPACE.sub(" ", text)
    for pattern, replacement in SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return _WHITESPACE.sub(" ", text).strip()


def casualize(text) -> str:
    """
    Rewrite formal connectives and verb phrases into casual ones, collapse
    whitespace and trim. Repeats until the text stops changing, so the
    result is a fixed point: casualize(casualize(x)) == casualize(x).
    """
    if not isinstance(text, str):
        return text
    # Every pass either shortens the text or removes a comma, so this ends.
    while True:
        result = _casualize_once(text)
        if result == text:
            return result
        text = result


def _sentences(text: str) -> list[str]:
    """Split into sentences, each keeping its trailing punctuation and space."""
    parts = _SENTENCE_END.split(text)
    sentences = []
    for i in range(0, len(parts), 2):
        sentence = parts[i] + (parts[i + 1] if i + 1 < len(parts) else "")
        if sentence:
            sentences.append(sentence)
    return sentences


def split_for_pacing(
    text: str,
    threshold: int = SPLIT_THRESHOLD,
    max_chunk: int = MAX_CHUNK,
) -> list[str]:
    """
    Break a long reply into chunks of whole sentences, each at most max_chunk
    characters. Texts shorter than threshold come back as a single chunk,
    untouched. A sentence longer than max_chunk is sent on its own, unsplit.
    """
    if not isinstance(text, str):
        return [text]
    if len(text) < threshold:
        return [text]

    chunks: list[str] = []
    current = ""
    for sentence in _sentences(text):
        if len(current + sentence) > max_chunk:
            if current.strip():
                chunks.append(current.strip())
            current = sentence
        else:
            current += sentence

    if current.strip():
        chunks.append(current.strip())

    return chunks or [text]

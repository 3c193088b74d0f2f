"""
persona.py — the system instructions sent ahead of every conversation.

Two system messages lead each completion request:
  1. the persona prompt (how to talk)
  2. a context line about this person (name, mood/long-gap framing, interests)

The persona defaults to PERSONA_PROMPT. It can be replaced with a text file,
hot-reloaded on every request via mtime check — no restart needed:
    persona:
        path: ./persona.md
"""

from __future__ import annotations

import logging
from pathlib import Path

from friendline.session import Message, Profile

logger = logging.getLogger(__name__)

PERSONA_PROMPT = """you're just a regular person chatting with your friend. don't act like an ai or assistant AT ALL.

core rules:
- text casually like you're on your phone
- keep it SHORT most of the time (1-2 sentences usually)
- use lowercase a lot, bad grammar sometimes
- real slang: "nah", "yea", "lmao", "bruh", "fr", "ngl", "lowkey", "tho"
- be lazy with punctuation sometimes
- use "haha" "lol" "😂" naturally
- react like a real person - surprised, excited, confused
- sometimes just reply "bet" or "facts" or "damn"
- dont always have something smart to say
- be sarcastic, joke around
- share random thoughts
- sometimes ask short questions back
- remember stuff they told you and bring it up later naturally

what NOT to do:
- NO "as an ai" EVER
- NO formal language
- NO perfect grammar always
- NO long explanations unless asked
- NO therapist talk
- NO listing things with bullets
- NO trying to be helpful all the time
- dont overthink responses

just chat normally like you would with a friend on telegram. keep it real, keep it short, keep it human."""

LONG_GAP_CONTEXT = "you havent talked in a while, acknowledge that naturally if it feels right. "

# Hot-reload state
_persona_text: str = ""
_persona_mtime: float = 0.0
_persona_path: Path | None = None


def get_persona(cfg: dict) -> str:
    """
    Return the persona prompt, hot-reloading the configured file if it changed.
    Falls back to PERSONA_PROMPT when no file is configured or it is missing/empty.
    """
    global _persona_text, _persona_mtime, _persona_path

    raw = (cfg.get("persona") or {}).get("path")
    if not raw:
        return PERSONA_PROMPT
    path = Path(raw)

    if _persona_path != path:
        _persona_path = path
        _persona_mtime = 0.0
        _persona_text = ""

    if not path.exists():
        return PERSONA_PROMPT

    try:
        mtime = path.stat().st_mtime
    except OSError:
        return _persona_text or PERSONA_PROMPT

    if mtime != _persona_mtime:
        try:
            text = path.read_text(encoding="utf-8").strip()
            if text != _persona_text:
                logger.info("Persona reloaded from %s (%d chars)", path, len(text))
            _persona_text = text
            _persona_mtime = mtime
        except Exception as e:
            logger.warning("Failed to reload persona from %s: %s", path, e)

    return _persona_text or PERSONA_PROMPT


def build_extra_context(mood: str | None, long_gap: bool) -> str:
    """Framing for this turn: long-gap acknowledgement first, then mood."""
    extra = ""
    if long_gap:
        extra = LONG_GAP_CONTEXT
    if mood:
        extra += f"they seem {mood} rn. "
    return extra


def build_context_instruction(display_name: str, extra_context: str, profile: Profile) -> str:
    interests = ", ".join(profile.interests) or "nothing yet"
    return f"their name is {display_name}. {extra_context}stuff they like: {interests}"


def build_messages(
    persona: str,
    history: list[Message],
    display_name: str,
    extra_context: str,
    profile: Profile,
) -> list[dict]:
    """System instructions followed by the full bounded history."""
    return [
        {"role": "system", "content": persona},
        {"role": "system", "content": build_context_instruction(display_name, extra_context, profile)},
        *(m.to_dict() for m in history),
    ]

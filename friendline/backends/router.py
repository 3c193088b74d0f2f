"""
Fallback router — fixed-order fail-over across completion providers.

The chain is tried top to bottom on every request until one provider returns
a non-empty completion:
  - HTTP 429 (rate limited): skip to the next provider immediately
  - anything else (timeout, non-2xx, malformed payload): wait backoff_seconds,
    then try the next provider
  - empty completion: skip to the next provider immediately

If the whole chain fails the router returns None and the caller decides what
to say. The order never changes at runtime; last_success_index is recorded for
stats only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from friendline.backends.base import BaseBackend
from friendline.backends.openai_compat import OpenAICompatibleBackend
from friendline.backends.openrouter import OpenRouterBackend, OPENROUTER_URL
from friendline.persona import PERSONA_PROMPT, build_messages, get_persona
from friendline.session import Message, Profile

logger = logging.getLogger(__name__)

BACKOFF_SECONDS = 1.0

# Provider name → backend class
PROVIDERS: dict[str, type[BaseBackend]] = {
    "openrouter": OpenRouterBackend,
    "openai_compat": OpenAICompatibleBackend,
}

# Free models, best first.
DEFAULT_MODELS = [
    "kwaipilot/kat-coder-pro:free",
    "openrouter/polaris-alpha",
    "minimax/minimax-m2:free",
    "deepseek/deepseek-chat-v3.1:free",
    "qwen/qwen3-coder:free",
    "moonshotai/kimi-k2:free",
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-3.3-70b-instruct:free",
    "deepseek/deepseek-r1:free",
    "qwen/qwen-2.5-72b-instruct:free",
]

DEFAULTS = {
    "provider": "openrouter",
    "url": OPENROUTER_URL,
    "api_key": "${OPENROUTER_API_KEY}",
    "temperature": 1.0,
    "max_tokens": 150,
    "top_p": 0.95,
    "timeout": 10,
}


class FallbackRouter:
    """Tries backends in their configured order and returns the first usable reply."""

    def __init__(
        self,
        backends: list[BaseBackend],
        backoff_seconds: float = BACKOFF_SECONDS,
        persona: Callable[[], str] = lambda: PERSONA_PROMPT,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.backends = list(backends)
        self.backoff_seconds = backoff_seconds
        self._persona = persona
        self._sleep = sleep
        self.last_success_index: int | None = None

        names = [b.name for b in self.backends]
        logger.info("Fallback chain: %s", " → ".join(names) or "(empty)")

    @classmethod
    def from_config(cls, cfg: dict) -> "FallbackRouter":
        """Build the chain from the fallback: section of the config."""
        f_cfg = cfg.get("fallback", {})
        defaults = {**DEFAULTS, **f_cfg.get("defaults", {})}
        entries = f_cfg.get("models") or DEFAULT_MODELS

        backends = []
        for entry in entries:
            backend = cls._create_backend(entry, defaults)
            if backend:
                backends.append(backend)

        return cls(
            backends,
            backoff_seconds=f_cfg.get("backoff_seconds", BACKOFF_SECONDS),
            persona=lambda: get_persona(cfg),
        )

    @staticmethod
    def _create_backend(entry, defaults: dict) -> BaseBackend | None:
        """Instantiate a backend from a model name or a dict of overrides."""
        if isinstance(entry, str):
            entry = {"model": entry}
        merged = {**defaults, **entry}

        provider = merged.get("provider", "openrouter")
        backend_cls = PROVIDERS.get(provider)
        if not backend_cls:
            logger.warning("Unknown provider '%s', skipping", provider)
            return None

        model = merged.get("model", "")
        if not model:
            logger.warning("Fallback entry without a model, skipping: %s", entry)
            return None

        url = merged.get("url", "")
        if not url:
            logger.warning("Backend for model '%s' has no url, skipping", model)
            return None

        return backend_cls(
            name=merged.get("name", model),
            url=url,
            model=model,
            api_key=merged.get("api_key", ""),
            timeout=merged.get("timeout", 10),
            temperature=merged.get("temperature", 1.0),
            max_tokens=merged.get("max_tokens", 150),
            top_p=merged.get("top_p", 0.95),
        )

    @property
    def last_success(self) -> str | None:
        """Name of the backend that answered most recently, if any."""
        if self.last_success_index is None:
            return None
        return self.backends[self.last_success_index].name

    async def complete_with_fallback(
        self,
        history: list[Message],
        display_name: str,
        extra_context: str,
        profile: Profile,
    ) -> str | None:
        """Return the first non-empty completion from the chain, or None."""
        messages = build_messages(self._persona(), history, display_name, extra_context, profile)
        total = len(self.backends)

        for i, backend in enumerate(self.backends):
            logger.info("Trying model %d/%d: %s", i + 1, total, backend.model)
            response = await backend.forward(messages)

            if response.ok:
                reply = response.content.strip()
                if reply:
                    logger.info(
                        "Success with '%s' in %.0fms", backend.name, response.latency_ms,
                    )
                    self.last_success_index = i
                    return reply
                logger.warning("Backend '%s' returned an empty completion", backend.name)
                continue

            logger.warning("Backend '%s' failed: %s", backend.name, response.error)

            if response.rate_limited:
                logger.info("Backend '%s' rate limited, trying next model", backend.name)
                continue

            await self._sleep(self.backoff_seconds)

        logger.error("All %d backends exhausted", total)
        return None

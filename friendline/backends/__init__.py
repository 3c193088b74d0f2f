"""
Completion backends and the fallback chain that strings them together.
"""
from friendline.backends.router import FallbackRouter
from friendline.backends.base import BaseBackend, BackendResponse
from friendline.backends.openrouter import OpenRouterBackend
from friendline.backends.openai_compat import OpenAICompatibleBackend

__all__ = [
    "FallbackRouter",
    "BaseBackend",
    "BackendResponse",
    "OpenRouterBackend",
    "OpenAICompatibleBackend",
]

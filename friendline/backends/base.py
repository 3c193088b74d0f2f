"""
Base backend abstraction.
All backends implement this interface so the fallback router can treat them
uniformly. A backend is one completion provider: an endpoint, a model and
fixed sampling parameters.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

TEMPERATURE = 1.0
MAX_TOKENS = 150
TOP_P = 0.95
TIMEOUT = 10


@dataclass
class BackendResponse:
    """Standardized response from any backend."""
    ok: bool
    status_code: int = 200
    data: dict = field(default_factory=dict)
    backend_name: str = ""
    model: str = ""
    latency_ms: float = 0.0
    error: str = ""

    @property
    def rate_limited(self) -> bool:
        """HTTP 429: the provider is throttling us, move on without waiting."""
        return not self.ok and self.status_code == 429

    @property
    def content(self) -> str:
        """Extract assistant content from response data."""
        return extract_content(self.data) or ""


def extract_content(data) -> str | None:
    """
    Pull choices[0].message.content out of an OpenAI-style payload.
    Returns None when the payload doesn't have that shape.
    """
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str):
        return None
    return content


class BaseBackend(abc.ABC):
    """
    Abstract base for completion backends.
    forward() never raises: every failure comes back as a BackendResponse
    with ok=False.
    """

    def __init__(
        self,
        name: str,
        url: str,
        model: str,
        timeout: float = TIMEOUT,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        top_p: float = TOP_P,
    ):
        self.name = name
        self.url = url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p

    def build_body(self, messages: list[dict]) -> dict:
        """OpenAI-compatible chat completion body with this backend's parameters."""
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }

    @abc.abstractmethod
    async def forward(self, messages: list[dict]) -> BackendResponse:
        """
        Send a chat completion request.
        Returns BackendResponse with data or error.
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} model={self.model!r}>"

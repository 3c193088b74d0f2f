"""
OpenRouter backend — hosted models, most of the default chain.
"""

from __future__ import annotations

import logging
import os
import time

import httpx

from friendline.backends.base import BaseBackend, BackendResponse, extract_content

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1"
REFERER = "https://github.com/friendline/friendline"


class OpenRouterBackend(BaseBackend):
    """Backend for the OpenRouter API."""

    def __init__(self, name: str, url: str = OPENROUTER_URL, api_key: str = "", **kwargs):
        super().__init__(name=name, url=url or OPENROUTER_URL, **kwargs)
        # Resolve env var references like ${OPENROUTER_API_KEY}
        self.api_key = self._resolve_env(api_key)

    @staticmethod
    def _resolve_env(value: str) -> str:
        """Resolve ${ENV_VAR} references in config values."""
        if value and value.startswith("${") and value.endswith("}"):
            env_name = value[2:-1]
            return os.environ.get(env_name, "")
        return value

    def _headers(self) -> dict:
        """Build request headers with auth."""
        headers = {
            "Content-Type": "application/json",
            "HTTP-Referer": REFERER,
            "X-Title": "Friendline",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def forward(self, messages: list[dict]) -> BackendResponse:
        """Send a non-streaming completion request to OpenRouter."""
        if not self.api_key:
            return BackendResponse(
                ok=False, backend_name=self.name, model=self.model,
                status_code=401, error="No API key configured for OpenRouter",
            )

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/chat/completions",
                    headers=self._headers(),
                    json=self.build_body(messages),
                )
                latency = (time.monotonic() - t0) * 1000

                if resp.status_code >= 400:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        model=self.model,
                        latency_ms=latency,
                        error=f"HTTP {resp.status_code}: {resp.text[:200]}",
                    )

                data = resp.json()
                if extract_content(data) is None:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        data=data if isinstance(data, dict) else {},
                        backend_name=self.name,
                        model=self.model,
                        latency_ms=latency,
                        error="Malformed response: no choices[0].message.content",
                    )

                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    data=data,
                    backend_name=self.name,
                    model=self.model,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("OpenRouter backend '%s' timed out after %.0fms", self.name, latency)
            return BackendResponse(
                ok=False, backend_name=self.name, model=self.model, latency_ms=latency,
                status_code=504, error=f"Timeout after {self.timeout}s",
            )
        except Exception as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("OpenRouter backend '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False, backend_name=self.name, model=self.model, latency_ms=latency,
                status_code=502, error=str(e),
            )

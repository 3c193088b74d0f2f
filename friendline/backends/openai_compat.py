"""
Generic OpenAI-compatible backend.

Lets a self-hosted or alternative endpoint sit in the fallback chain:
- llama.cpp server
- vLLM
- LocalAI
- Ollama's /v1 endpoint
"""

from __future__ import annotations

import logging
import time

import httpx

from friendline.backends.base import BaseBackend, BackendResponse, extract_content

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend(BaseBackend):
    """
    Generic backend for OpenAI-compatible endpoints.

    Works with any service that implements /v1/chat/completions.
    """

    def __init__(self, name: str, url: str, api_key: str = "", **kwargs):
        super().__init__(name=name, url=url, **kwargs)
        self.api_key = api_key

    async def forward(self, messages: list[dict]) -> BackendResponse:
        """Send a non-streaming request."""
        t0 = time.monotonic()
        try:
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/v1/chat/completions",
                    json=self.build_body(messages),
                    headers=headers,
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
            logger.warning(
                "OpenAI-compatible backend '%s' timed out after %.0fms",
                self.name,
                latency,
            )
            return BackendResponse(
                ok=False,
                status_code=504,
                backend_name=self.name,
                model=self.model,
                latency_ms=latency,
                error=f"Timeout after {self.timeout}s",
            )
        except Exception as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning(
                "OpenAI-compatible backend '%s' failed: %s", self.name, e
            )
            return BackendResponse(
                ok=False,
                status_code=502,
                backend_name=self.name,
                model=self.model,
                latency_ms=latency,
                error=str(e),
            )

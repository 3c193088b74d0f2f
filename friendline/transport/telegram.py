"""
Telegram transport — Bot API over httpx.

Two intake modes:
  - polling: poll() long-polls getUpdates and dispatches each event as a task
  - webhook: the HTTP app receives updates and hands them to parse_update()

Events are dispatched in arrival order. Ordering within one conversation is
kept by the relay's per-conversation lock, not here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from friendline.transport.base import BaseTransport, InboundEvent, MEDIA_KINDS

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramTransport(BaseTransport):
    """Sends and receives Telegram messages for one bot token."""

    def __init__(
        self,
        token: str,
        api_url: str = TELEGRAM_API,
        timeout: float = 15,
        poll_timeout: int = 30,
        retry_seconds: float = 3.0,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.poll_timeout = poll_timeout
        self.retry_seconds = retry_seconds
        self._offset: int | None = None
        self._running = False
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, cfg: dict) -> "TelegramTransport":
        t_cfg = cfg.get("telegram", {})
        return cls(
            token=t_cfg.get("token", ""),
            api_url=t_cfg.get("api_url", TELEGRAM_API),
            poll_timeout=t_cfg.get("poll_timeout", 30),
            retry_seconds=t_cfg.get("retry_seconds", 3.0),
        )

    def _method_url(self, method: str) -> str:
        return f"{self.api_url}/bot{self.token}/{method}"

    async def _call(self, method: str, payload: dict, timeout: float | None = None):
        """
        Invoke a Bot API method. Returns the "result" field, or None on any
        failure (logged).
        """
        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                resp = await client.post(self._method_url(method), json=payload)
                data = resp.json()
        except httpx.TimeoutException:
            logger.warning("Telegram %s timed out", method)
            return None
        except Exception as e:
            logger.warning("Telegram %s failed: %s", method, e)
            return None

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description", "") if isinstance(data, dict) else ""
            logger.warning("Telegram %s rejected (HTTP %d): %s", method, resp.status_code, description)
            return None
        return data.get("result")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, conversation_id: str, text: str) -> bool:
        result = await self._call("sendMessage", {"chat_id": conversation_id, "text": text})
        return result is not None

    async def send_typing(self, conversation_id: str) -> bool:
        result = await self._call("sendChatAction", {"chat_id": conversation_id, "action": "typing"})
        return result is not None

    async def set_webhook(self, url: str) -> bool:
        ok = await self._call("setWebhook", {"url": url}) is not None
        if ok:
            logger.info("Webhook registered")
        return ok

    async def delete_webhook(self) -> bool:
        return await self._call("deleteWebhook", {}) is not None

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    @staticmethod
    def parse_update(update: dict) -> InboundEvent | None:
        """Turn a Telegram update into an InboundEvent. None if it isn't one we handle."""
        message = update.get("message")
        if not isinstance(message, dict):
            return None

        chat = message.get("chat") or {}
        if "id" not in chat:
            return None
        sender = message.get("from") or {}
        name = chat.get("first_name") or sender.get("first_name") or ""
        arrival = float(message.get("date", 0)) or None

        kwargs = {"conversation_id": str(chat["id"]), "display_name": name}
        if arrival:
            kwargs["arrival_time"] = arrival

        text = message.get("text")
        if text:
            return InboundEvent(text=text, **kwargs)

        for kind in MEDIA_KINDS:
            if message.get(kind):
                return InboundEvent(media_kind=kind, **kwargs)

        return None

    async def get_updates(self) -> list[dict]:
        """One long-poll round. Raises on transport errors so the loop can back off."""
        payload = {"timeout": self.poll_timeout, "allowed_updates": ["message"]}
        if self._offset is not None:
            payload["offset"] = self._offset

        async with httpx.AsyncClient(timeout=self.poll_timeout + 10) as client:
            resp = await client.post(self._method_url("getUpdates"), json=payload)
            resp.raise_for_status()
            data = resp.json()

        if not data.get("ok"):
            raise RuntimeError(data.get("description", "getUpdates not ok"))

        updates = data.get("result", [])
        if updates:
            self._offset = max(u.get("update_id", 0) for u in updates) + 1
        return updates

    def dispatch(self, event: InboundEvent, handler: Callable[[InboundEvent], Awaitable]) -> asyncio.Task:
        """Run handler(event) as a background task, keeping a reference until it finishes."""
        task = asyncio.create_task(handler(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def poll(self, handler: Callable[[InboundEvent], Awaitable]):
        """Long-poll until stop() is called or the task is cancelled."""
        await self.delete_webhook()
        self._running = True
        logger.info("Polling for updates")

        while self._running:
            try:
                updates = await self.get_updates()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Polling error: %s", e)
                await asyncio.sleep(self.retry_seconds)
                continue

            for update in updates:
                event = self.parse_update(update)
                if event:
                    self.dispatch(event, handler)

    def stop(self):
        self._running = False

    def cancel_pending(self) -> list[asyncio.Task]:
        """Cancel every in-flight event task and return them so the caller can await them."""
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        return pending

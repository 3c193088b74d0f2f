"""
FastAPI application — the friendline entry point.

Serves the health surface and, in webhook mode, the Telegram webhook.
In polling mode the lifespan starts a background long-poll task instead.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from friendline import __version__
from friendline.backends.router import FallbackRouter
from friendline.config import get_config
from friendline.delivery import DeliveryScheduler
from friendline.relay import Relay
from friendline.session import SessionStore
from friendline.transport.telegram import TelegramTransport


# ---------------------------------------------------------------------------
# Globals — initialized at startup
# ---------------------------------------------------------------------------
relay: Relay | None = None
transport: TelegramTransport | None = None
sessions: SessionStore | None = None
router: FallbackRouter | None = None
started_at: float = time.monotonic()


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, log_cfg.get("level", "INFO").upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        from pathlib import Path
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


async def _evict_idle_loop(store: SessionStore, max_idle_seconds: float):
    """Periodically drop conversations nobody has touched in a while."""
    interval = max(60.0, max_idle_seconds / 10)
    while True:
        await asyncio.sleep(interval)
        store.evict_idle(max_idle_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    global relay, transport, sessions, router, started_at

    cfg = get_config()
    _setup_logging(cfg)
    logger = logging.getLogger(__name__)
    started_at = time.monotonic()

    sessions = SessionStore.from_config(cfg)
    router = FallbackRouter.from_config(cfg)
    scheduler = DeliveryScheduler.from_config(cfg)
    transport = TelegramTransport.from_config(cfg)
    relay = Relay(
        sessions=sessions,
        router=router,
        scheduler=scheduler,
        transport=transport,
        long_gap_seconds=cfg.get("session", {}).get("long_gap_seconds", 3600),
    )

    background: list[asyncio.Task] = []

    max_idle = cfg.get("session", {}).get("max_idle_seconds", 0)
    if max_idle:
        background.append(asyncio.create_task(_evict_idle_loop(sessions, max_idle)))
        logger.info("Idle conversation eviction: after %ss", max_idle)

    t_cfg = cfg.get("telegram", {})
    webhook_url = t_cfg.get("webhook_url", "")
    if not transport.token:
        logger.warning("No telegram.token configured — not receiving messages")
    elif webhook_url:
        await transport.set_webhook(f"{webhook_url.rstrip('/')}/bot{transport.token}")
        logger.info("Bot running in WEBHOOK mode")
    else:
        background.append(asyncio.create_task(transport.poll(relay.handle)))
        logger.info("Bot running in POLLING mode")

    logger.info(
        "Friendline %s started — %s:%s, %d models in the fallback chain",
        __version__,
        cfg.get("server", {}).get("host", "0.0.0.0"),
        cfg.get("server", {}).get("port", 3000),
        len(router.backends),
    )

    yield

    logger.info("bye")
    transport.stop()
    for task in background:
        task.cancel()
    background.extend(transport.cancel_pending())
    if background:
        await asyncio.gather(*background, return_exceptions=True)
    if transport.token and webhook_url:
        await transport.delete_webhook()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Friendline",
    description="Texts back like a friend would.",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/")
async def root():
    """Liveness with uptime, for deployment platforms."""
    return JSONResponse({
        "status": "Bot is running! 🤖",
        "uptime": round(time.monotonic() - started_at, 3),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@app.get("/health")
async def health():
    """Health check."""
    return JSONResponse({"status": "healthy", "bot": "online"})


@app.get("/api/v1/stats")
async def stats():
    """Conversation count and which model answered last."""
    return JSONResponse({
        "conversations": sessions.count if sessions else 0,
        "models": [b.model for b in router.backends] if router else [],
        "last_success": router.last_success if router else None,
    })


@app.post("/bot{token}")
async def telegram_webhook(token: str, request: Request):
    """Webhook intake. The token in the path must match the bot token."""
    if transport is None or not transport.token or token != transport.token:
        return JSONResponse({"error": "not found"}, status_code=404)

    update = await request.json()
    event = TelegramTransport.parse_update(update)
    if event:
        transport.dispatch(event, relay.handle)
    return JSONResponse({"ok": True})

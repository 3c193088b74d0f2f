#!/usr/bin/env python3
"""
Friendline CLI.

Every command has a phone-line name and a standard alias:

    LINE            STANDARD        WHAT IT DOES
    ----            --------        ----------------------------------
    dial            serve, start    Start the bot and its HTTP surface
    ring            ping, status    Ping a running instance
    flash           config          Show the loaded config, secrets redacted
"""

import argparse
import json
import sys

from friendline import __version__


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_dial(args):
    """Start the bot."""
    import uvicorn
    from friendline.config import get_config

    cfg = get_config()
    host = args.host or cfg.get("server", {}).get("host", "0.0.0.0")
    port = args.port or cfg.get("server", {}).get("port", 3000)
    models = cfg.get("fallback", {}).get("models") or []

    print(f"  Friendline v{__version__}")
    print(f"  Dialing up on {host}:{port}")
    print(f"  Mode: {'webhook' if cfg.get('telegram', {}).get('webhook_url') else 'polling'}")
    if models:
        print(f"  Fallback chain: {len(models)} models")
    print()

    uvicorn.run(
        "friendline.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ring(args):
    """Ping a running instance."""
    import httpx

    url = args.url.rstrip("/")
    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except Exception as e:
        print(f"  ✗  No answer from {url}: {e}")
        return 1

    print(f"  ✓  {url} — {data.get('status', '?')} (bot {data.get('bot', '?')})")

    try:
        s = httpx.get(f"{url}/api/v1/stats", timeout=5).json()
        print(f"     Conversations: {s.get('conversations', 0)}")
        print(f"     Last model:    {s.get('last_success') or '—'}")
    except Exception:
        pass
    return 0


def cmd_flash(args):
    """Print the config with secrets masked."""
    from friendline.config import get_config, redact

    print(json.dumps(redact(get_config()), indent=2, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="friendline",
        description="Texts back like a friend would.",
    )
    parser.add_argument("--version", action="version", version=f"friendline {__version__}")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("dial", aliases=["serve", "start"], help="Start the bot")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    p.set_defaults(func=cmd_dial)

    p = sub.add_parser("ring", aliases=["ping", "status"], help="Ping a running instance")
    p.add_argument("--url", default="http://localhost:3000")
    p.set_defaults(func=cmd_ring)

    p = sub.add_parser("flash", aliases=["config"], help="Show config (secrets redacted)")
    p.set_defaults(func=cmd_flash)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())

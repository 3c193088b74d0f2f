"""
Friendline settings.

config.yaml at the repo root is read once and cached; every other module
calls get_config(). Sections:

    telegram   bot token, webhook_url (empty = long-poll), poll/retry timings
    server     host and port for the HTTP surface
    fallback   backoff_seconds, per-model defaults and the ordered model chain
    session    history_cap, long_gap_seconds, optional LRU / idle eviction
    pacing     thinking delays, chunk gaps and the reaction odds
    persona    optional persona file path
    logging    level and optional log file

Tokens and API keys stay out of the file: write ${TELEGRAM_TOKEN} and the
value comes from the environment (or .env). Unset variables become "".
redact() is what `friendline flash` prints.
"""

import os
import re
import yaml
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"
_ENV_REF = re.compile(r"\$\{(\w+)\}")
_SECRET_MARKERS = ("key", "token", "secret")

_config: dict | None = None


def _resolve_env_vars(value: str) -> str:
    """Substitute each ${NAME} with os.environ[NAME], or "" when unset."""
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)


def _walk_and_resolve(obj):
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def load_config(path: Path | str | None = None) -> dict:
    """Read config.yaml (or path), resolve env references and cache the result."""
    global _config
    if _config is not None:
        return _config

    config_path = Path(path) if path else _CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    _config = _walk_and_resolve(raw)
    return _config


def get_config() -> dict:
    if _config is None:
        return load_config()
    return _config


def reset_config():
    """Drop the cached config so the next get_config() re-reads the file."""
    global _config
    _config = None


def redact(cfg: dict) -> dict:
    """Copy of cfg with every non-empty string under a key/token/secret key masked."""
    def _walk(obj, key=""):
        if isinstance(obj, dict):
            return {k: _walk(v, k) for k, v in obj.items()}
        if isinstance(obj, list):
            return [_walk(v, key) for v in obj]
        if isinstance(obj, str) and obj and any(s in key.lower() for s in _SECRET_MARKERS):
            return "***redacted***"
        return obj
    return _walk(cfg)

"""Configuration loading: TOML file + environment variables (.env aware)."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from dotenv import find_dotenv, load_dotenv

from juicebox_notifier.models.config import EventStream, NotifierConfig

# Variable names used by earlier deployments of the bot
LEGACY_SUBGRAPH_ENV = "JUICEBOX_SUBGRAPH"
LEGACY_WEBHOOK_ENV = "DISCORD_WEBHOOK"


def _parse_streams(value: object) -> list[EventStream]:
    if isinstance(value, str):
        value = [s.strip() for s in value.split(",") if s.strip()]
    streams = [EventStream(str(s)) for s in value]  # type: ignore[union-attr]
    if not streams:
        raise ValueError("at least one stream must be configured")
    return streams


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "JUICEBOX_NOTIFIER_",
    dotenv_path: str | Path | None = None,
) -> NotifierConfig:
    """Load notifier configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (JUICEBOX_NOTIFIER_DISCORD_WEBHOOK, etc.)
        2. Legacy env vars (DISCORD_WEBHOOK, JUICEBOX_SUBGRAPH)
        3. TOML config file
        4. Defaults from NotifierConfig

    A .env file is loaded first; it never overrides variables already set.
    """
    load_dotenv(dotenv_path or find_dotenv(usecwd=True))

    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = NotifierConfig()

    # ── Notifier section ───────────────────────────────────
    notifier = raw.get("notifier", {})
    if (v := notifier.get("streams")) is not None:
        cfg.streams = _parse_streams(v)
    if (v := notifier.get("max_concurrent_events")) is not None:
        cfg.max_concurrent_events = int(v)
    if v := notifier.get("request_timeout"):
        cfg.request_timeout = int(v)
    if (v := notifier.get("delivery_retries")) is not None:
        cfg.delivery_retries = int(v)
    if v := notifier.get("log_level"):
        cfg.log_level = str(v)

    # ── Subgraph / Discord ─────────────────────────────────
    if v := raw.get("subgraph", {}).get("url"):
        cfg.subgraph_url = str(v)
    if v := raw.get("discord", {}).get("webhook_url"):
        cfg.webhook_url = str(v)

    # ── Enrichment section ─────────────────────────────────
    enrichment = raw.get("enrichment", {})
    if v := enrichment.get("ipfs_gateway"):
        cfg.ipfs_gateway = str(v)
    if v := enrichment.get("ens_resolver_url"):
        cfg.ens_resolver_url = str(v)

    # ── Links section ──────────────────────────────────────
    links = raw.get("links", {})
    if v := links.get("site_url"):
        cfg.site_url = str(v)
    if v := links.get("explorer_url"):
        cfg.explorer_url = str(v)

    # ── Storage section ────────────────────────────────────
    if v := raw.get("storage", {}).get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides ─────────────────────
    if url := os.environ.get(LEGACY_SUBGRAPH_ENV):
        cfg.subgraph_url = url
    if hook := os.environ.get(LEGACY_WEBHOOK_ENV):
        cfg.webhook_url = hook
    if url := os.environ.get(f"{env_prefix}SUBGRAPH_URL"):
        cfg.subgraph_url = url
    if hook := os.environ.get(f"{env_prefix}DISCORD_WEBHOOK"):
        cfg.webhook_url = hook
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level
    if streams := os.environ.get(f"{env_prefix}STREAMS"):
        cfg.streams = _parse_streams(streams)

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg

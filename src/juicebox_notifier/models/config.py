"""Configuration models for the notifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EventStream(str, Enum):
    """Upstream event categories, each with its own watermark."""

    PAY = "pay"
    PROJECT_CREATE = "project_create"


@dataclass
class NotifierConfig:
    """Complete notifier configuration."""

    # Notifier
    streams: list[EventStream] = field(
        default_factory=lambda: [EventStream.PAY, EventStream.PROJECT_CREATE]
    )
    max_concurrent_events: int = 0  # 0 = unbounded fan-out
    request_timeout: int = 10  # seconds, per external call
    delivery_retries: int = 3
    log_level: str = "info"

    # Subgraph
    subgraph_url: str = ""

    # Discord
    webhook_url: str = ""

    # Enrichment
    ipfs_gateway: str = "https://ipfs.io"
    ens_resolver_url: str = "https://api.ensideas.com/ens/resolve"

    # Links used in notifications
    site_url: str = "https://juicebox.money"
    explorer_url: str = "https://etherscan.io"

    # Storage
    db_path: str = "~/.juicebox_notifier/state.db"

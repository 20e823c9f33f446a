"""Store protocols - watermark persistence and the operational error log."""

from __future__ import annotations

from typing import Iterable, Protocol

from juicebox_notifier.models.records import ErrorRecord


class WatermarkStore(Protocol):
    """Persists the per-stream delivery watermark."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Watermarks ─────────────────────────────────────────

    async def load_watermarks(
        self, streams: Iterable[str], now: int | None = None,
    ) -> dict[str, int]:
        """Return the watermark per stream, seeding missing streams to `now`."""
        ...

    async def save_watermarks(self, watermarks: dict[str, int]) -> None:
        """Overwrite all given watermarks in one atomic transaction."""
        ...


class ErrorLog(Protocol):
    """Append-only record of failed fetches, enrichments and deliveries."""

    async def log_error(
        self,
        stream: str,
        kind: str,
        message: str,
        tx_hash: str | None = None,
        event_timestamp: int | None = None,
    ) -> None:
        ...

    async def get_recent_errors(self, limit: int = 50) -> list[ErrorRecord]:
        ...

"""Run orchestrator - wires all components together for one polling pass."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from juicebox_notifier.discord.format import NotificationFormatter
from juicebox_notifier.discord.sink import DiscordWebhookSink
from juicebox_notifier.enrichment.identity import EnsIdentityResolver
from juicebox_notifier.enrichment.metadata import IpfsMetadataResolver
from juicebox_notifier.models.config import NotifierConfig
from juicebox_notifier.models.records import RunReport, StreamResult
from juicebox_notifier.processor import StreamProcessor
from juicebox_notifier.storage.sqlite import SQLiteStateStore
from juicebox_notifier.subgraph.source import SubgraphEventSource

log = logging.getLogger(__name__)


def merge_watermarks(
    prior: dict[str, int], results: list[StreamResult],
) -> dict[str, int]:
    """Fold per-stream results into the prior map.

    Streams without a result keep their prior value, and no stream ever
    moves backwards.
    """
    merged = dict(prior)
    for result in results:
        current = merged.get(result.stream)
        merged[result.stream] = (
            result.watermark if current is None else max(current, result.watermark)
        )
    return merged


class NotifierRunner:
    """Polls every configured stream once and persists the new watermarks.

    Streams run concurrently and independently; the watermark store is
    written exactly once, after all of them have finished.
    """

    def __init__(self, cfg: NotifierConfig) -> None:
        self._cfg = cfg

        self.store = SQLiteStateStore(cfg.db_path)
        self.source = SubgraphEventSource(cfg.subgraph_url, cfg.request_timeout)
        self.metadata = IpfsMetadataResolver(cfg.ipfs_gateway, cfg.request_timeout)
        self.identity = EnsIdentityResolver(cfg.ens_resolver_url, cfg.request_timeout)
        self.sink = DiscordWebhookSink(
            cfg.webhook_url, cfg.request_timeout, cfg.delivery_retries,
        )
        self.formatter = NotificationFormatter(
            cfg.site_url, cfg.explorer_url, cfg.ipfs_gateway,
        )

    def build_processor(self) -> StreamProcessor:
        return StreamProcessor(
            source=self.source,
            metadata=self.metadata,
            identity=self.identity,
            sink=self.sink,
            formatter=self.formatter,
            error_log=self.store,
            max_concurrent=self._cfg.max_concurrent_events,
        )

    async def run_once(self) -> RunReport:
        """One full pass: load, process all streams, save once.

        Only a failure to persist the watermarks propagates to the caller.
        """
        started = datetime.now(timezone.utc).isoformat()
        start_time = time.monotonic()
        streams = list(self._cfg.streams)

        await self.store.initialize()
        try:
            prior = await self.store.load_watermarks([s.value for s in streams])
            for stream in streams:
                log.info("%s watermark: %d", stream.value, prior[stream.value])

            processor = self.build_processor()
            gathered = await asyncio.gather(
                *(processor.process(s, prior[s.value]) for s in streams),
                return_exceptions=True,
            )

            results: list[StreamResult] = []
            for stream, outcome in zip(streams, gathered):
                if isinstance(outcome, StreamResult):
                    results.append(outcome)
                elif isinstance(outcome, Exception):
                    log.error(
                        "Stream %s aborted, keeping watermark %d: %s",
                        stream.value, prior[stream.value], outcome,
                    )
                else:
                    raise outcome

            watermarks = merge_watermarks(prior, results)
            await self.store.save_watermarks(watermarks)
            log.info("Saved watermarks: %s", watermarks)
        finally:
            await self.store.close()

        return RunReport(
            started_at=started,
            watermarks=watermarks,
            results=results,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )


async def run_notifier(cfg: NotifierConfig) -> RunReport:
    """Entry point for a single notifier run."""
    runner = NotifierRunner(cfg)
    return await runner.run_once()

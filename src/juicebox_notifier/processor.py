"""Stream processor - fetch, enrich, deliver and advance one stream's watermark."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Iterable

from juicebox_notifier.discord.format import NotificationFormatter
from juicebox_notifier.interfaces.resolvers import IdentityResolver, MetadataResolver
from juicebox_notifier.interfaces.sink import NotificationSink
from juicebox_notifier.interfaces.source import EventSource
from juicebox_notifier.interfaces.store import ErrorLog
from juicebox_notifier.models.config import EventStream
from juicebox_notifier.models.records import (
    EnrichedEvent,
    EventOutcome,
    OutcomeStatus,
    StreamEvent,
    StreamResult,
)

log = logging.getLogger(__name__)


def advance_watermark(prior: int, outcomes: Iterable[EventOutcome]) -> int:
    """New watermark: the highest delivered timestamp, never below `prior`.

    Upstream order is not trusted, so this is a true maximum rather than the
    timestamp of the last event processed.
    """
    delivered = [o.timestamp for o in outcomes if o.delivered]
    if not delivered:
        return prior
    return max(prior, max(delivered))


class StreamProcessor:
    """Runs one polling pass for a single event stream.

    Each pass:
    1. Fetches every event above the stream's watermark
    2. Enriches all events concurrently (metadata + identity per event)
    3. Delivers one notification per successfully enriched event
    4. Advances the watermark to the max timestamp among delivered events

    Failures are contained per event and recorded in the error log; a fetch
    failure leaves the watermark untouched. process() never raises.
    """

    def __init__(
        self,
        source: EventSource,
        metadata: MetadataResolver,
        identity: IdentityResolver,
        sink: NotificationSink,
        formatter: NotificationFormatter,
        error_log: ErrorLog,
        max_concurrent: int = 0,
    ) -> None:
        self._source = source
        self._metadata = metadata
        self._identity = identity
        self._sink = sink
        self._formatter = formatter
        self._error_log = error_log
        self._max_concurrent = max_concurrent

    async def process(self, stream: EventStream, watermark: int) -> StreamResult:
        name = stream.value

        try:
            events = await self._source.fetch_since(stream, watermark)
        except Exception as exc:
            log.error("Fetch failed for %s stream: %s", name, exc)
            await self._record_error(name, "fetch", str(exc))
            return StreamResult(
                stream=name, prior_watermark=watermark, watermark=watermark, error=str(exc),
            )

        if not events:
            return StreamResult(stream=name, prior_watermark=watermark, watermark=watermark)

        limit = (
            asyncio.Semaphore(self._max_concurrent)
            if self._max_concurrent > 0
            else contextlib.nullcontext()
        )

        async def _handle_one(event: StreamEvent) -> EventOutcome:
            async with limit:
                return await self._handle_event(name, event)

        results = await asyncio.gather(
            *(_handle_one(e) for e in events), return_exceptions=True,
        )

        outcomes: list[EventOutcome] = []
        for event, result in zip(events, results):
            if isinstance(result, EventOutcome):
                outcomes.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            log.error("Unexpected error handling %s event %s: %s", name, event.tx_hash, result)
            await self._record_error(
                name, "deliver", f"unexpected: {result!r}",
                tx_hash=event.tx_hash, event_timestamp=event.timestamp,
            )
            outcomes.append(EventOutcome(
                tx_hash=event.tx_hash,
                timestamp=event.timestamp,
                status=OutcomeStatus.FAILED,
                error=repr(result),
            ))

        new_watermark = advance_watermark(watermark, outcomes)
        summary = StreamResult(
            stream=name,
            prior_watermark=watermark,
            watermark=new_watermark,
            outcomes=outcomes,
        )
        log.info(
            "%s stream: %d events, %d delivered, %d skipped, %d failed, watermark %d -> %d",
            name, len(outcomes), summary.delivered, summary.skipped, summary.failed,
            watermark, new_watermark,
        )
        return summary

    async def _handle_event(self, stream: str, event: StreamEvent) -> EventOutcome:
        """Enrich then deliver a single event."""
        metadata, identity = await asyncio.gather(
            self._metadata.resolve(event.project.metadata_uri),
            self._resolve_identity(event),
            return_exceptions=True,
        )
        for result in (metadata, identity):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        if isinstance(metadata, Exception):
            log.warning("Skipping %s event %s: enrichment failed: %s", stream, event.tx_hash, metadata)
            await self._record_error(
                stream, "enrich", str(metadata),
                tx_hash=event.tx_hash, event_timestamp=event.timestamp,
            )
            return EventOutcome(
                tx_hash=event.tx_hash,
                timestamp=event.timestamp,
                status=OutcomeStatus.SKIPPED,
                error=str(metadata),
            )

        notification = self._formatter.build(
            EnrichedEvent(event=event, metadata=metadata, identity=identity)
        )
        delivery = await self._sink.deliver(notification)
        if not delivery.success:
            await self._record_error(
                stream, "deliver", delivery.error or "delivery failed",
                tx_hash=event.tx_hash, event_timestamp=event.timestamp,
            )
            return EventOutcome(
                tx_hash=event.tx_hash,
                timestamp=event.timestamp,
                status=OutcomeStatus.FAILED,
                error=delivery.error,
            )

        return EventOutcome(
            tx_hash=event.tx_hash,
            timestamp=event.timestamp,
            status=OutcomeStatus.DELIVERED,
        )

    async def _record_error(
        self,
        stream: str,
        kind: str,
        message: str,
        tx_hash: str | None = None,
        event_timestamp: int | None = None,
    ) -> None:
        try:
            await self._error_log.log_error(
                stream, kind, message, tx_hash=tx_hash, event_timestamp=event_timestamp,
            )
        except Exception as exc:
            log.error("Could not write error log entry (%s/%s): %s", stream, kind, exc)

    async def _resolve_identity(self, event: StreamEvent) -> str:
        """Display name for the event's address; the raw address on any failure."""
        try:
            return await self._identity.resolve(event.address)
        except Exception as exc:
            log.debug("Identity lookup failed for %s: %s", event.address, exc)
            return event.address

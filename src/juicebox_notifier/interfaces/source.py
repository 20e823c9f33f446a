"""EventSource protocol - fetches stream events above a watermark."""

from __future__ import annotations

from typing import Protocol

from juicebox_notifier.models.config import EventStream
from juicebox_notifier.models.records import StreamEvent


class EventSource(Protocol):
    """Fetches events for one stream from the indexing service."""

    async def fetch_since(self, stream: EventStream, watermark: int) -> list[StreamEvent]:
        """Return every event with timestamp > watermark, in upstream order.

        Raises SubgraphError on any transport or payload problem.
        """
        ...

"""Subgraph event source - fetches pay and project-create events over GraphQL."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from juicebox_notifier.errors import SubgraphError
from juicebox_notifier.models.config import EventStream
from juicebox_notifier.models.records import StreamEvent
from juicebox_notifier.subgraph.queries import MAX_SKIP, PAGE_SIZE, STREAM_QUERIES, build_query

log = logging.getLogger(__name__)


def drop_last_timestamp(events: list[StreamEvent]) -> list[StreamEvent]:
    """Drop events sharing the highest timestamp of a truncated result.

    Those may be incomplete; leaving them out keeps the watermark below
    them so the next run fetches the whole group. If every event shares
    one timestamp nothing is dropped.
    """
    if not events:
        return events
    last = max(e.timestamp for e in events)
    kept = [e for e in events if e.timestamp < last]
    return kept or events


class SubgraphEventSource:
    """Queries the Juicebox subgraph for events newer than a watermark.

    Filtering happens upstream through the `timestamp_gt` clause. Results
    are requested in ascending timestamp order and paged with `skip` until
    a short page comes back. When the subgraph's skip limit is reached the
    result is truncated below its last timestamp and the rest is left for
    the next run.
    """

    def __init__(
        self,
        subgraph_url: str,
        timeout: int = 10,
        page_size: int = PAGE_SIZE,
        max_skip: int = MAX_SKIP,
    ) -> None:
        self._url = subgraph_url
        self._timeout = timeout
        self._page_size = page_size
        self._max_skip = max_skip

    async def fetch_since(self, stream: EventStream, watermark: int) -> list[StreamEvent]:
        _, collection, parse = STREAM_QUERIES[stream]
        events: list[StreamEvent] = []
        skip = 0

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            while True:
                query = build_query(stream, watermark, first=self._page_size, skip=skip)
                records = await self._fetch_page(client, query, collection)
                for raw in records:
                    try:
                        events.append(parse(raw))
                    except (KeyError, TypeError, ValueError) as exc:
                        raise SubgraphError(f"malformed {collection} record: {exc!r}") from exc

                if len(records) < self._page_size:
                    break
                skip += self._page_size
                if skip > self._max_skip:
                    log.warning(
                        "%s: more than %d events above %d, deferring the rest to the next run",
                        stream.value, skip, watermark,
                    )
                    events = drop_last_timestamp(events)
                    break

        if events:
            log.info("Fetched %d %s events above %d", len(events), stream.value, watermark)
        else:
            log.debug("No %s events above %d", stream.value, watermark)
        return events

    async def _fetch_page(
        self, client: httpx.AsyncClient, query: str, collection: str,
    ) -> list[Any]:
        try:
            resp = await client.post(self._url, json={"query": query})
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise SubgraphError(
                f"subgraph HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SubgraphError(f"subgraph request failed: {exc!r}") from exc
        except ValueError as exc:
            raise SubgraphError(f"subgraph returned invalid JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise SubgraphError("subgraph response is not an object")
        if body.get("errors"):
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in body["errors"]
            )
            raise SubgraphError(f"subgraph query errors: {messages}")

        records = (body.get("data") or {}).get(collection)
        if not isinstance(records, list):
            raise SubgraphError(f"subgraph response missing data.{collection}")
        return records

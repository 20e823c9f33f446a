"""Real httpx clients against local aiohttp stand-ins for each service."""

from __future__ import annotations

import random
import re

import pytest
from aiohttp import web

from juicebox_notifier.discord.sink import DiscordWebhookSink
from juicebox_notifier.enrichment.identity import EnsIdentityResolver
from juicebox_notifier.enrichment.metadata import IpfsMetadataResolver
from juicebox_notifier.errors import MetadataError, SubgraphError
from juicebox_notifier.models.config import EventStream
from juicebox_notifier.models.events import PayEvent, ProjectCreateEvent
from juicebox_notifier.models.records import EmbedField, Notification
from juicebox_notifier.subgraph.source import SubgraphEventSource

from tests.factories import (
    BENEFICIARY,
    make_pay_event,
    make_project_create_event,
    pay_event_json,
    project_create_event_json,
)


def _subgraph_app(response: dict, status: int = 200, seen: list | None = None) -> web.Application:
    async def handle(request):
        if seen is not None:
            seen.append(await request.json())
        return web.json_response(response, status=status)

    app = web.Application()
    app.router.add_post("/subgraph", handle)
    return app


# ── Subgraph ─────────────────────────────────────────────────────


async def test_subgraph_fetch_pay_events(http_server):
    seen: list = []
    events = [make_pay_event(timestamp=1010), make_pay_event(timestamp=1005)]
    base = await http_server(_subgraph_app(
        {"data": {"payEvents": [pay_event_json(e) for e in events]}}, seen=seen,
    ))
    source = SubgraphEventSource(f"{base}/subgraph", timeout=5)

    fetched = await source.fetch_since(EventStream.PAY, 1000)

    assert fetched == events  # upstream order preserved
    assert all(isinstance(e, PayEvent) for e in fetched)
    query = seen[0]["query"]
    assert "payEvents(first: 1000, skip: 0, orderBy: timestamp, orderDirection: asc" in query
    assert "where:{timestamp_gt: 1000}" in query
    assert len(seen) == 1  # short page ends the fetch


async def test_subgraph_fetch_project_create_events(http_server):
    event = make_project_create_event(timestamp=1500)
    base = await http_server(_subgraph_app(
        {"data": {"projectCreateEvents": [project_create_event_json(event)]}},
    ))
    source = SubgraphEventSource(f"{base}/subgraph")

    fetched = await source.fetch_since(EventStream.PROJECT_CREATE, 1000)

    assert fetched == [event]
    assert isinstance(fetched[0], ProjectCreateEvent)
    assert fetched[0].address == event.creator


async def test_subgraph_does_not_refilter(http_server):
    """Upstream is authoritative: records at or below the watermark pass through."""
    event = make_pay_event(timestamp=900)
    base = await http_server(_subgraph_app({"data": {"payEvents": [pay_event_json(event)]}}))

    fetched = await SubgraphEventSource(f"{base}/subgraph").fetch_since(EventStream.PAY, 1000)

    assert fetched == [event]


async def test_subgraph_http_error(http_server):
    base = await http_server(_subgraph_app({"message": "bad gateway"}, status=502))

    with pytest.raises(SubgraphError) as exc_info:
        await SubgraphEventSource(f"{base}/subgraph").fetch_since(EventStream.PAY, 1000)

    assert exc_info.value.status_code == 502


async def test_subgraph_graphql_errors(http_server):
    base = await http_server(_subgraph_app({"errors": [{"message": "indexing error"}]}))

    with pytest.raises(SubgraphError, match="indexing error"):
        await SubgraphEventSource(f"{base}/subgraph").fetch_since(EventStream.PAY, 1000)


async def test_subgraph_missing_collection(http_server):
    base = await http_server(_subgraph_app({"data": {}}))

    with pytest.raises(SubgraphError, match="payEvents"):
        await SubgraphEventSource(f"{base}/subgraph").fetch_since(EventStream.PAY, 1000)


async def test_subgraph_malformed_record(http_server):
    record = pay_event_json(make_pay_event())
    del record["txHash"]
    base = await http_server(_subgraph_app({"data": {"payEvents": [record]}}))

    with pytest.raises(SubgraphError, match="malformed"):
        await SubgraphEventSource(f"{base}/subgraph").fetch_since(EventStream.PAY, 1000)


async def test_subgraph_unreachable():
    source = SubgraphEventSource("http://127.0.0.1:1/subgraph", timeout=2)

    with pytest.raises(SubgraphError):
        await source.fetch_since(EventStream.PAY, 1000)


def _paged_subgraph_app(events: list[PayEvent], cap: int, seen: list) -> web.Application:
    """Stand-in that honours first/skip/timestamp_gt and never returns more than `cap`."""

    async def handle(request):
        query = (await request.json())["query"]
        seen.append(query)
        first = int(re.search(r"first: (\d+)", query).group(1))
        skip = int(re.search(r"skip: (\d+)", query).group(1))
        watermark = int(re.search(r"timestamp_gt: (\d+)", query).group(1))
        matching = sorted(
            (e for e in events if e.timestamp > watermark), key=lambda e: e.timestamp,
        )
        page = matching[skip:skip + min(first, cap)]
        return web.json_response({"data": {"payEvents": [pay_event_json(e) for e in page]}})

    app = web.Application()
    app.router.add_post("/subgraph", handle)
    return app


async def test_subgraph_pages_past_first_page(http_server):
    events = [make_pay_event(timestamp=1000 + i) for i in range(1, 251)]
    random.Random(7).shuffle(events)
    seen: list = []
    base = await http_server(_paged_subgraph_app(events, cap=100, seen=seen))
    source = SubgraphEventSource(f"{base}/subgraph", page_size=100)

    fetched = await source.fetch_since(EventStream.PAY, 1000)

    assert len(fetched) == 250
    assert [e.timestamp for e in fetched] == list(range(1001, 1251))
    assert len(seen) == 3
    assert [re.search(r"skip: (\d+)", q).group(1) for q in seen] == ["0", "100", "200"]


async def test_subgraph_exact_page_multiple_ends_on_empty_page(http_server):
    events = [make_pay_event(timestamp=1000 + i) for i in range(1, 201)]
    seen: list = []
    base = await http_server(_paged_subgraph_app(events, cap=100, seen=seen))

    fetched = await SubgraphEventSource(f"{base}/subgraph", page_size=100).fetch_since(
        EventStream.PAY, 1000,
    )

    assert len(fetched) == 200
    assert len(seen) == 3


async def test_subgraph_skip_limit_defers_last_timestamp(http_server):
    """Hitting the skip limit on full pages credits only timestamps known to be complete."""
    events = [make_pay_event(timestamp=1000 + i) for i in range(1, 29)]
    events += [make_pay_event(timestamp=1029, tx_hash=f"0xpay1029-{i}") for i in range(7)]
    seen: list = []
    base = await http_server(_paged_subgraph_app(events, cap=10, seen=seen))
    source = SubgraphEventSource(f"{base}/subgraph", page_size=10, max_skip=20)

    first_run = await source.fetch_since(EventStream.PAY, 1000)

    assert len(seen) == 3
    assert len(first_run) == 28
    assert max(e.timestamp for e in first_run) == 1028

    second_run = await source.fetch_since(EventStream.PAY, 1028)

    assert len(second_run) == 7
    assert {e.timestamp for e in second_run} == {1029}


async def test_subgraph_skip_limit_keeps_single_timestamp_batch(http_server):
    events = [make_pay_event(timestamp=1005, tx_hash=f"0xpay1005-{i}") for i in range(40)]
    base = await http_server(_paged_subgraph_app(events, cap=10, seen=[]))
    source = SubgraphEventSource(f"{base}/subgraph", page_size=10, max_skip=20)

    fetched = await source.fetch_since(EventStream.PAY, 1000)

    assert len(fetched) == 30


# ── IPFS metadata ────────────────────────────────────────────────


def _gateway_app(documents: dict[str, object]) -> web.Application:
    async def handle(request):
        cid = request.match_info["cid"]
        if cid not in documents:
            return web.Response(status=404)
        doc = documents[cid]
        if isinstance(doc, str):
            return web.Response(text=doc, content_type="application/json")
        return web.json_response(doc)

    app = web.Application()
    app.router.add_get("/ipfs/{cid}", handle)
    return app


async def test_metadata_resolves_document(http_server):
    base = await http_server(_gateway_app({
        "QmMeta": {"name": "JuiceboxDAO", "description": "The DAO", "logoUri": "QmLogo"},
    }))
    resolver = IpfsMetadataResolver(base, timeout=5)

    metadata = await resolver.resolve("QmMeta")

    assert metadata.name == "JuiceboxDAO"
    assert metadata.description == "The DAO"
    assert metadata.logo_uri == "QmLogo"


async def test_metadata_strips_ipfs_scheme_and_blank_fields(http_server):
    base = await http_server(_gateway_app({"QmMeta": {"name": "", "description": None}}))

    metadata = await IpfsMetadataResolver(base).resolve("ipfs://QmMeta")

    assert metadata.name is None
    assert metadata.description is None
    assert metadata.logo_uri is None


async def test_metadata_not_found_raises(http_server):
    base = await http_server(_gateway_app({}))

    with pytest.raises(MetadataError) as exc_info:
        await IpfsMetadataResolver(base).resolve("QmMissing")

    assert exc_info.value.metadata_uri == "QmMissing"
    assert "404" in str(exc_info.value)


async def test_metadata_invalid_json_raises(http_server):
    base = await http_server(_gateway_app({"QmBad": "{not json"}))

    with pytest.raises(MetadataError):
        await IpfsMetadataResolver(base).resolve("QmBad")


# ── ENS identity ─────────────────────────────────────────────────


def _ens_app(names: dict[str, str | None], status: int = 200) -> web.Application:
    async def handle(request):
        address = request.match_info["address"]
        return web.json_response(
            {"address": address, "name": names.get(address), "displayName": address},
            status=status,
        )

    app = web.Application()
    app.router.add_get("/ens/resolve/{address}", handle)
    return app


async def test_identity_returns_name(http_server):
    base = await http_server(_ens_app({BENEFICIARY: "jango.eth"}))

    assert await EnsIdentityResolver(f"{base}/ens/resolve").resolve(BENEFICIARY) == "jango.eth"


async def test_identity_falls_back_to_address(http_server):
    base = await http_server(_ens_app({}))

    assert await EnsIdentityResolver(f"{base}/ens/resolve").resolve(BENEFICIARY) == BENEFICIARY


async def test_identity_swallows_http_errors(http_server):
    base = await http_server(_ens_app({BENEFICIARY: "jango.eth"}, status=500))

    assert await EnsIdentityResolver(f"{base}/ens/resolve").resolve(BENEFICIARY) == BENEFICIARY


async def test_identity_swallows_connection_errors():
    resolver = EnsIdentityResolver("http://127.0.0.1:1/ens/resolve", timeout=2)

    assert await resolver.resolve(BENEFICIARY) == BENEFICIARY


# ── Discord webhook ──────────────────────────────────────────────


def _notification() -> Notification:
    return Notification(
        title="Payment to JuiceboxDAO",
        url="https://juicebox.money/v2/p/1",
        fields=[EmbedField("Amount", "1 ETH")],
        thumbnail_url="https://ipfs.io/ipfs/QmLogo",
    )


def _webhook_app(responses: list[tuple[int, dict | None]], received: list) -> web.Application:
    """Replies with `responses` in order, repeating the last one."""

    async def handle(request):
        received.append(await request.json())
        status, body = responses.pop(0) if len(responses) > 1 else responses[0]
        if body is None:
            return web.Response(status=status)
        return web.json_response(body, status=status)

    app = web.Application()
    app.router.add_post("/webhook", handle)
    return app


async def test_webhook_delivers_embed(http_server):
    received: list = []
    base = await http_server(_webhook_app([(204, None)], received))
    sink = DiscordWebhookSink(f"{base}/webhook", timeout=5, retries=3, backoff=0)

    result = await sink.deliver(_notification())

    assert result.success
    assert result.status_code == 204
    assert result.attempts == 1
    embed = received[0]["embeds"][0]
    assert embed["title"] == "Payment to JuiceboxDAO"
    assert embed["fields"] == [{"name": "Amount", "value": "1 ETH", "inline": True}]
    assert embed["thumbnail"] == {"url": "https://ipfs.io/ipfs/QmLogo"}
    assert 0 <= embed["color"] <= 0xFFFFFF


async def test_webhook_retries_rate_limit(http_server):
    received: list = []
    base = await http_server(_webhook_app(
        [(429, {"retry_after": 0}), (204, None)],
        received,
    ))
    sink = DiscordWebhookSink(f"{base}/webhook", retries=3, backoff=0)

    result = await sink.deliver(_notification())

    assert result.success
    assert result.attempts == 2
    assert len(received) == 2


async def test_webhook_client_error_not_retried(http_server):
    received: list = []
    base = await http_server(_webhook_app(
        [(400, {"message": "Invalid Form Body"})], received,
    ))
    sink = DiscordWebhookSink(f"{base}/webhook", retries=3, backoff=0)

    result = await sink.deliver(_notification())

    assert not result.success
    assert result.status_code == 400
    assert result.attempts == 1
    assert "400" in (result.error or "")


async def test_webhook_server_error_exhausts_retries(http_server):
    received: list = []
    base = await http_server(_webhook_app([(503, None)], received))
    sink = DiscordWebhookSink(f"{base}/webhook", retries=3, backoff=0)

    result = await sink.deliver(_notification())

    assert not result.success
    assert result.attempts == 3
    assert len(received) == 3


async def test_webhook_unreachable_is_failure_not_exception():
    sink = DiscordWebhookSink("http://127.0.0.1:1/webhook", timeout=2, retries=1)

    result = await sink.deliver(_notification())

    assert not result.success
    assert result.status_code is None

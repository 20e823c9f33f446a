"""Builds Discord embed notifications from enriched events."""

from __future__ import annotations

from decimal import Decimal

from juicebox_notifier.models.events import PayEvent, ProjectCreateEvent
from juicebox_notifier.models.records import (
    EmbedField,
    EnrichedEvent,
    Notification,
    ProjectMetadata,
    StreamEvent,
)


def format_eth(wei: int) -> str:
    """Render a wei amount as a plain decimal ETH string."""
    eth = Decimal(wei).scaleb(-18).normalize()
    return f"{eth:f} ETH"


def project_label(metadata: ProjectMetadata, event: StreamEvent) -> str:
    """Project display name, or a synthesized "v<pv> project <id>" label."""
    if metadata.name:
        return metadata.name
    return f"v{event.pv} project {event.project_id}"


class NotificationFormatter:
    """Turns an EnrichedEvent into a Notification with links to the site,
    the block explorer and the IPFS-hosted project logo."""

    def __init__(
        self,
        site_url: str = "https://juicebox.money",
        explorer_url: str = "https://etherscan.io",
        ipfs_gateway: str = "https://ipfs.io",
    ) -> None:
        self._site = site_url.rstrip("/")
        self._explorer = explorer_url.rstrip("/")
        self._gateway = ipfs_gateway.rstrip("/")

    def project_url(self, event: StreamEvent) -> str:
        if event.pv == "2":
            return f"{self._site}/v2/p/{event.project_id}"
        if not event.project.handle:
            # v1 project without a handle: the site has no page to link
            return self._site
        return f"{self._site}/p/{event.project.handle}"

    def account_link(self, identity: str, address: str) -> str:
        return f"[{identity}]({self._site}/account/{address})"

    def tx_link(self, tx_hash: str) -> str:
        return f"[Etherscan]({self._explorer}/tx/{tx_hash})"

    def thumbnail_url(self, metadata: ProjectMetadata) -> str | None:
        if not metadata.logo_uri:
            return None
        # logoUri may be a full gateway URL; only the trailing CID is kept
        cid = metadata.logo_uri.rstrip("/").rsplit("/", 1)[-1]
        return f"{self._gateway}/ipfs/{cid}"

    def build(self, enriched: EnrichedEvent) -> Notification:
        event = enriched.event
        if isinstance(event, PayEvent):
            return self._pay(enriched, event)
        if isinstance(event, ProjectCreateEvent):
            return self._project_create(enriched, event)
        raise TypeError(f"unsupported event type: {type(event).__name__}")

    def _pay(self, enriched: EnrichedEvent, event: PayEvent) -> Notification:
        label = project_label(enriched.metadata, event)
        return Notification(
            title=f"Payment to {label}",
            url=self.project_url(event),
            fields=[
                EmbedField("Amount", format_eth(event.amount)),
                EmbedField("Beneficiary", self.account_link(enriched.identity, event.beneficiary)),
                EmbedField("Transaction", self.tx_link(event.tx_hash)),
            ],
            thumbnail_url=self.thumbnail_url(enriched.metadata),
        )

    def _project_create(
        self, enriched: EnrichedEvent, event: ProjectCreateEvent,
    ) -> Notification:
        label = project_label(enriched.metadata, event)
        fields = [
            EmbedField("Creator", self.account_link(enriched.identity, event.creator)),
            EmbedField("Transaction", self.tx_link(event.tx_hash)),
        ]
        if enriched.metadata.description:
            fields.append(
                EmbedField("Description", enriched.metadata.description, inline=False)
            )
        return Notification(
            title=f"New Project: {label}",
            url=self.project_url(event),
            fields=fields,
            thumbnail_url=self.thumbnail_url(enriched.metadata),
        )

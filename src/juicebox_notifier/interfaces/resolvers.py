"""Enrichment resolver protocols."""

from __future__ import annotations

from typing import Protocol

from juicebox_notifier.models.records import ProjectMetadata


class MetadataResolver(Protocol):
    """Dereferences a content-addressed project metadata pointer."""

    async def resolve(self, metadata_uri: str) -> ProjectMetadata:
        """Raises MetadataError when the document can't be fetched or parsed."""
        ...


class IdentityResolver(Protocol):
    """Maps an address to a display string."""

    async def resolve(self, address: str) -> str:
        """Return a reverse-resolved name, or the address itself. Never raises."""
        ...

"""IPFS metadata resolver - fetches project metadata documents from a gateway."""

from __future__ import annotations

import logging

import httpx

from juicebox_notifier.errors import MetadataError
from juicebox_notifier.models.records import ProjectMetadata

log = logging.getLogger(__name__)

_IPFS_SCHEME = "ipfs://"


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class IpfsMetadataResolver:
    """Resolves a project's metadataUri to its JSON document.

    Failures are raised as MetadataError: without metadata the event
    can't be formatted, so the caller skips it.
    """

    def __init__(self, gateway_url: str = "https://ipfs.io", timeout: int = 10) -> None:
        self._gateway = gateway_url.rstrip("/")
        self._timeout = timeout

    def url_for(self, metadata_uri: str) -> str:
        cid = metadata_uri
        if cid.startswith(_IPFS_SCHEME):
            cid = cid[len(_IPFS_SCHEME):]
        return f"{self._gateway}/ipfs/{cid}"

    async def resolve(self, metadata_uri: str) -> ProjectMetadata:
        url = self.url_for(metadata_uri)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise MetadataError(
                f"gateway HTTP {exc.response.status_code} for {metadata_uri}", metadata_uri,
            ) from exc
        except httpx.HTTPError as exc:
            raise MetadataError(f"gateway request failed: {exc!r}", metadata_uri) from exc
        except ValueError as exc:
            raise MetadataError(f"invalid metadata JSON: {exc}", metadata_uri) from exc

        if not isinstance(data, dict):
            raise MetadataError("metadata document is not an object", metadata_uri)

        log.debug("Resolved metadata %s", metadata_uri)
        return ProjectMetadata(
            name=_optional_str(data.get("name")),
            description=_optional_str(data.get("description")),
            logo_uri=_optional_str(data.get("logoUri")),
        )

"""Enrichment resolvers - project metadata and address identity."""

from juicebox_notifier.enrichment.identity import EnsIdentityResolver
from juicebox_notifier.enrichment.metadata import IpfsMetadataResolver

__all__ = ["EnsIdentityResolver", "IpfsMetadataResolver"]

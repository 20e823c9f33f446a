"""Exception types raised by the notifier's external clients."""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for notifier errors."""


class SubgraphError(NotifierError):
    """Fetching events failed: transport error, bad status or malformed payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MetadataError(NotifierError):
    """A project metadata document could not be resolved."""

    def __init__(self, message: str, metadata_uri: str) -> None:
        super().__init__(message)
        self.metadata_uri = metadata_uri

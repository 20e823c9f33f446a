"""Subgraph event models, one per stream."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProjectRef:
    """Project fields embedded in every event."""

    handle: str | None
    metadata_uri: str


@dataclass(frozen=True)
class PayEvent:
    """A payment into a project (payEvents collection)."""

    project: ProjectRef
    project_id: int
    amount: int  # wei
    beneficiary: str
    tx_hash: str
    pv: str  # protocol version tag, "1" or "2"
    timestamp: int

    @property
    def address(self) -> str:
        return self.beneficiary


@dataclass(frozen=True)
class ProjectCreateEvent:
    """A newly launched project (projectCreateEvents collection)."""

    project: ProjectRef
    project_id: int
    creator: str
    tx_hash: str
    pv: str
    timestamp: int

    @property
    def address(self) -> str:
        return self.creator

"""Internal record types for enrichment, delivery and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from juicebox_notifier.models.events import PayEvent, ProjectCreateEvent

StreamEvent = Union[PayEvent, ProjectCreateEvent]


@dataclass(frozen=True)
class ProjectMetadata:
    """Project metadata document resolved from IPFS."""

    name: str | None = None
    description: str | None = None
    logo_uri: str | None = None


@dataclass(frozen=True)
class EnrichedEvent:
    """An event plus its resolved metadata and address identity."""

    event: StreamEvent
    metadata: ProjectMetadata
    identity: str  # ENS name, or the raw address


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = True


@dataclass
class Notification:
    """One formatted message, derived 1:1 from an EnrichedEvent."""

    title: str
    url: str
    fields: list[EmbedField] = field(default_factory=list)
    thumbnail_url: str | None = None


@dataclass
class DeliveryResult:
    """Result of posting a notification to the sink."""

    success: bool
    status_code: int | None = None
    error: str | None = None
    attempts: int = 0
    duration_ms: int = 0


class OutcomeStatus(str, Enum):
    DELIVERED = "delivered"
    SKIPPED = "skipped"  # enrichment failed, nothing sent
    FAILED = "failed"  # delivery failed or unexpected error


@dataclass
class EventOutcome:
    """What happened to a single event during a run."""

    tx_hash: str
    timestamp: int
    status: OutcomeStatus
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == OutcomeStatus.DELIVERED


@dataclass
class StreamResult:
    """Result of one stream processor pass."""

    stream: str
    prior_watermark: int
    watermark: int
    outcomes: list[EventOutcome] = field(default_factory=list)
    error: str | None = None  # set when the fetch failed

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.DELIVERED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.FAILED)


@dataclass
class RunReport:
    """Summary of a full run across all streams."""

    started_at: str
    watermarks: dict[str, int]
    results: list[StreamResult] = field(default_factory=list)
    duration_ms: int = 0


@dataclass
class ErrorRecord:
    """A row of the append-only error log."""

    stream: str
    kind: str  # "fetch", "enrich", "deliver"
    message: str
    tx_hash: str | None = None
    event_timestamp: int | None = None
    created_at: str = ""

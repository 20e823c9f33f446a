"""Data models for the juicebox_notifier pipeline."""

from juicebox_notifier.models.events import PayEvent, ProjectCreateEvent, ProjectRef
from juicebox_notifier.models.records import (
    DeliveryResult,
    EmbedField,
    EnrichedEvent,
    ErrorRecord,
    EventOutcome,
    Notification,
    OutcomeStatus,
    ProjectMetadata,
    RunReport,
    StreamEvent,
    StreamResult,
)
from juicebox_notifier.models.config import EventStream, NotifierConfig

__all__ = [
    "PayEvent", "ProjectCreateEvent", "ProjectRef",
    "DeliveryResult", "EmbedField", "EnrichedEvent", "ErrorRecord",
    "EventOutcome", "Notification", "OutcomeStatus", "ProjectMetadata",
    "RunReport", "StreamEvent", "StreamResult",
    "EventStream", "NotifierConfig",
]

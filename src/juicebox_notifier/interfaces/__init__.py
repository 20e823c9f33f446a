"""Protocol interfaces for all juicebox_notifier components."""

from juicebox_notifier.interfaces.source import EventSource
from juicebox_notifier.interfaces.resolvers import IdentityResolver, MetadataResolver
from juicebox_notifier.interfaces.sink import NotificationSink
from juicebox_notifier.interfaces.store import ErrorLog, WatermarkStore

__all__ = [
    "EventSource",
    "IdentityResolver", "MetadataResolver",
    "NotificationSink",
    "ErrorLog", "WatermarkStore",
]

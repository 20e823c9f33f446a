"""GraphQL queries and record parsers for the Juicebox subgraph."""

from __future__ import annotations

from typing import Any, Callable

from juicebox_notifier.models.config import EventStream
from juicebox_notifier.models.events import PayEvent, ProjectCreateEvent, ProjectRef
from juicebox_notifier.models.records import StreamEvent

# The Graph caps `first` at 1000 and `skip` at 5000
PAGE_SIZE = 1000
MAX_SKIP = 5000

PAY_EVENTS_QUERY = """{
  payEvents(first: %(first)d, skip: %(skip)d, orderBy: timestamp, orderDirection: asc,
            where:{timestamp_gt: %(watermark)d}){
    project {
      handle
      metadataUri
    }
    amount
    projectId
    beneficiary
    txHash
    pv
    timestamp
  }
}"""

PROJECT_CREATE_EVENTS_QUERY = """{
  projectCreateEvents(first: %(first)d, skip: %(skip)d, orderBy: timestamp, orderDirection: asc,
                      where:{timestamp_gt: %(watermark)d}){
    project {
      handle
      metadataUri
    }
    from
    projectId
    txHash
    pv
    timestamp
  }
}"""


def _project(raw: dict[str, Any]) -> ProjectRef:
    project = raw["project"]
    return ProjectRef(
        handle=project.get("handle") or None,
        metadata_uri=str(project["metadataUri"]),
    )


def parse_pay_event(raw: dict[str, Any]) -> PayEvent:
    return PayEvent(
        project=_project(raw),
        project_id=int(raw["projectId"]),
        amount=int(raw["amount"]),
        beneficiary=str(raw["beneficiary"]),
        tx_hash=str(raw["txHash"]),
        pv=str(raw["pv"]),
        timestamp=int(raw["timestamp"]),
    )


def parse_project_create_event(raw: dict[str, Any]) -> ProjectCreateEvent:
    return ProjectCreateEvent(
        project=_project(raw),
        project_id=int(raw["projectId"]),
        creator=str(raw["from"]),
        tx_hash=str(raw["txHash"]),
        pv=str(raw["pv"]),
        timestamp=int(raw["timestamp"]),
    )


# stream -> (query template, response collection, record parser)
STREAM_QUERIES: dict[EventStream, tuple[str, str, Callable[[dict[str, Any]], StreamEvent]]] = {
    EventStream.PAY: (PAY_EVENTS_QUERY, "payEvents", parse_pay_event),
    EventStream.PROJECT_CREATE: (
        PROJECT_CREATE_EVENTS_QUERY, "projectCreateEvents", parse_project_create_event,
    ),
}


def build_query(
    stream: EventStream, watermark: int, first: int = PAGE_SIZE, skip: int = 0,
) -> str:
    template, _, _ = STREAM_QUERIES[stream]
    return template % {"first": first, "skip": skip, "watermark": int(watermark)}

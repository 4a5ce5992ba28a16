# ---
# File: statuspage/incidents/timeline.py
# Purpose: One newest-first activity feed per organization, merging incidents
#          with service status changes, plus the per-day grouping for display
# ---

from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from statuspage.errors import ValidationError
from statuspage.persistence.base import Store
from statuspage.persistence.records import IncidentQuery, IncidentRecord, StatusLogRecord
from statuspage.utils.status_utils import IncidentStatus
from statuspage.utils.time_utils import as_utc

MAX_TIMELINE_LIMIT = 200


class TimelineTypeFilter(str, Enum):
    ALL = "all"
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"
    SERVICE_CHANGE = "service_change"


class IncidentItem(BaseModel):
    kind: Literal["incident"] = "incident"
    id: str
    timestamp: datetime
    incident: IncidentRecord


class StatusChangeItem(BaseModel):
    kind: Literal["service_status_change"] = "service_status_change"
    id: str
    timestamp: datetime
    change: StatusLogRecord


TimelineItem = Annotated[Union[IncidentItem, StatusChangeItem], Field(discriminator="kind")]


class TimelineDay(BaseModel):
    day: date
    items: List[TimelineItem]


def _matches_type(item, type_filter: TimelineTypeFilter) -> bool:
    if type_filter == TimelineTypeFilter.ALL:
        return True
    if type_filter == TimelineTypeFilter.SERVICE_CHANGE:
        return item.kind == "service_status_change"
    return item.kind == "incident" and item.incident.type == type_filter.value


def _matches_status(item, status: Optional[str]) -> bool:
    # Status changes carry no incident status and always pass.
    if not status or item.kind != "incident":
        return True
    return item.incident.status == status


def _matches_search(item, needle: Optional[str]) -> bool:
    if not needle:
        return True
    if item.kind == "incident":
        haystack = f"{item.incident.title}\n{item.incident.description or ''}"
    else:
        haystack = item.change.serviceName or ""
    return needle.casefold() in haystack.casefold()


def merge_timeline(
    incidents: List[IncidentRecord],
    changes: List[StatusLogRecord],
    limit: int,
) -> List[TimelineItem]:
    items = [IncidentItem(id=incident.id, timestamp=as_utc(incident.startedAt), incident=incident) for incident in incidents]
    items += [StatusChangeItem(id=change.id, timestamp=as_utc(change.createdAt), change=change) for change in changes]
    # sorted() is stable: on equal timestamps incidents stay ahead of changes
    items = sorted(items, key=lambda item: item.timestamp, reverse=True)
    return items[:limit]


async def get_timeline(
    store: Store,
    organization_id: str,
    limit: int = 50,
    type_filter=TimelineTypeFilter.ALL,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> List[TimelineItem]:
    """
    Fetch the newest `limit` incidents (by startedAt) and the newest `limit`
    status changes independently, merge them newest first and cut to `limit`,
    then filter by type, incident status and search text in that order.

    The result is the most recent `limit` items overall only when one source
    alone does not crowd out the other; ask for a larger limit when the feed
    must be complete.
    """
    if limit < 1:
        raise ValidationError.for_field("limit", "limit must be positive")
    try:
        type_filter = TimelineTypeFilter(type_filter or TimelineTypeFilter.ALL)
    except ValueError:
        raise ValidationError.for_field("type", f"Invalid type filter '{type_filter}'")
    if status_filter and status_filter != "all":
        try:
            status_filter = IncidentStatus(status_filter).value
        except ValueError:
            raise ValidationError.for_field("status", f"Invalid status filter '{status_filter}'")
    else:
        status_filter = None

    limit = min(limit, MAX_TIMELINE_LIMIT)
    incidents = await store.list_incidents(
        organization_id, IncidentQuery(order_by="startedAt", descending=True, limit=limit)
    )
    changes = await store.list_status_logs(organization_id, limit=limit)

    items = merge_timeline(incidents, changes, limit)
    items = [item for item in items if _matches_type(item, type_filter)]
    items = [item for item in items if _matches_status(item, status_filter)]
    return [item for item in items if _matches_search(item, search)]


def group_by_date(items: List[TimelineItem]) -> List[TimelineDay]:
    """Group by UTC calendar date, keeping the incoming newest-first order."""
    days: List[TimelineDay] = []
    for item in items:
        day = as_utc(item.timestamp).date()
        if not days or days[-1].day != day:
            days.append(TimelineDay(day=day, items=[]))
        days[-1].items.append(item)
    return days

# ---
# File: incidents/routes.py
# Purpose: FastAPI routes for incidents, their updates and the organization timeline
# ---

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from statuspage.auth.access import get_current_user, require_organization_role
from statuspage.deps import get_incident_service, get_store
from statuspage.incidents.incident_services import IncidentService
from statuspage.incidents.models import (
    IncidentCreateRequest,
    IncidentPatchRequest,
    IncidentUpdateCreateRequest,
    IncidentUpdateRead,
    incident_read,
)
from statuspage.incidents.timeline import get_timeline, group_by_date
from statuspage.persistence.base import Store
from statuspage.persistence.records import IncidentRecord, UserRecord
from statuspage.utils.responses import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/incidents", tags=["Incidents"])


def _csv(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


async def _authorized_incident(
    incidents: IncidentService, store: Store, user: UserRecord, incident_id: str, admin: bool = False
) -> IncidentRecord:
    incident = await incidents.get_incident(incident_id)
    await require_organization_role(store, user, incident.organizationId, admin=admin)
    return incident


async def _detail(store: Store, incident: IncidentRecord, with_updates: bool = True) -> dict:
    services = await store.list_services(incident.organizationId, service_ids=incident.serviceIds)
    if with_updates:
        updates = await store.list_incident_updates(incident.id)
        return incident_read(incident, services, updates=updates)
    latest = await store.list_incident_updates(incident.id, newest_first=True, limit=1)
    return incident_read(incident, services, latest_update=latest[0] if latest else None)


# ---
# Paginated list; `status` and `type` take comma separated values.
# ---
@router.get("/organization/{organizationId}")
async def list_incidents(
    organizationId: str = Path(...),
    status_filter: Optional[str] = Query(None, alias="status"),
    type_filter: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    organization, _ = await require_organization_role(store, user, organizationId)
    items, total = await incidents.list_incidents(
        organization.id,
        statuses=_csv(status_filter),
        incident_types=_csv(type_filter),
        page=page,
        limit=limit,
    )
    return success_response(
        {
            "incidents": [await _detail(store, incident, with_updates=False) for incident in items],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }
    )


@router.post("/organization/{organizationId}", status_code=status.HTTP_201_CREATED)
async def create_incident(
    data: IncidentCreateRequest,
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    incident = await incidents.create_incident(
        organization.id,
        user.id,
        title=data.title,
        description=data.description,
        severity=data.severity,
        incident_type=data.type,
        service_ids=data.serviceIds,
        status=data.status,
        scheduled_for=data.scheduledFor,
        scheduled_until=data.scheduledUntil,
        is_public=data.isPublic,
        notify_subscribers=data.notifySubscribers,
    )
    return success_response({"incident": await _detail(store, incident)}, "Incident created successfully")


@router.get("/organization/{organizationId}/timeline")
async def timeline(
    organizationId: str = Path(...),
    limit: int = Query(50, ge=1, le=200),
    type_filter: str = Query("all", alias="type"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId)
    items = await get_timeline(
        store,
        organization.id,
        limit=limit,
        type_filter=type_filter,
        status_filter=status_filter,
        search=search,
    )
    return success_response(
        {
            "timeline": [item.model_dump(mode="json") for item in items],
            "groups": [day.model_dump(mode="json") for day in group_by_date(items)],
        }
    )


@router.get("/{incidentId}")
async def get_incident(
    incidentId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    incident = await _authorized_incident(incidents, store, user, incidentId)
    return success_response({"incident": await _detail(store, incident)})


@router.put("/{incidentId}")
async def update_incident(
    data: IncidentPatchRequest,
    incidentId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    await _authorized_incident(incidents, store, user, incidentId, admin=True)
    incident = await incidents.update_incident(incidentId, data.model_dump(exclude_unset=True))
    return success_response({"incident": await _detail(store, incident)}, "Incident updated successfully")


@router.delete("/{incidentId}")
async def delete_incident(
    incidentId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    await _authorized_incident(incidents, store, user, incidentId, admin=True)
    await incidents.delete_incident(incidentId)
    return success_response(message="Incident deleted successfully")


@router.post("/{incidentId}/updates", status_code=status.HTTP_201_CREATED)
async def post_update(
    data: IncidentUpdateCreateRequest,
    incidentId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    await _authorized_incident(incidents, store, user, incidentId, admin=True)
    posted = await incidents.post_incident_update(
        incidentId,
        user.id,
        title=data.title,
        description=data.description,
        status=data.status,
        is_public=data.isPublic,
        notify_subscribers=data.notifySubscribers,
    )
    return success_response(
        {
            "update": IncidentUpdateRead.model_validate(posted.update).model_dump(mode="json"),
            "incident": await _detail(store, posted.incident, with_updates=False),
            "resolved": posted.newly_resolved,
        },
        "Incident update created successfully",
    )


@router.get("/{incidentId}/updates")
async def list_updates(
    incidentId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    incidents: IncidentService = Depends(get_incident_service),
):
    await _authorized_incident(incidents, store, user, incidentId)
    updates = await incidents.list_updates(incidentId)
    return success_response(
        {"updates": [IncidentUpdateRead.model_validate(update).model_dump(mode="json") for update in updates]}
    )

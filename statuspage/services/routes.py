# ---
# File: services/routes.py
# Purpose: FastAPI routes for managing an organization's services, their
#          status, uptime and display order, and reading the status audit log
# ---

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from statuspage.auth.access import get_current_user, require_organization_role
from statuspage.deps import get_service_manager, get_store
from statuspage.persistence.base import Store
from statuspage.persistence.records import ServiceRecord, UserRecord
from statuspage.services.models import (
    IncidentSummary,
    ServiceCreateRequest,
    ServiceReorderRequest,
    ServiceResponse,
    ServiceStatusRequest,
    ServiceUpdateRequest,
    ServiceUptimeRequest,
    StatusChangeResponse,
    to_payload,
)
from statuspage.services.service_manager import ServiceManager
from statuspage.services.status_log import list_status_changes
from statuspage.utils.responses import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/services", tags=["Services"])


async def _service_response(store: Store, service: ServiceRecord) -> dict:
    incidents = await store.list_service_incidents(service.id, unresolved_only=True)
    response = ServiceResponse.model_validate(
        {**service.model_dump(), "incidents": [IncidentSummary.model_validate(incident) for incident in incidents]}
    )
    return response.model_dump(mode="json")


async def _authorized_service(
    manager: ServiceManager, store: Store, user: UserRecord, service_id: str, admin: bool = False
) -> ServiceRecord:
    service = await manager.get_service(service_id)
    await require_organization_role(store, user, service.organizationId, admin=admin)
    return service


# ---
# Services of an organization, by display order then name, each with its
# unresolved incidents.
# ---
@router.get("/organization/{organizationId}")
async def list_services(
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    organization, _ = await require_organization_role(store, user, organizationId)
    services = await manager.list_services(organization.id)
    return success_response({"services": [await _service_response(store, service) for service in services]})


@router.post("/organization/{organizationId}", status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreateRequest,
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    service = await manager.create_service(organization.id, user.id, to_payload(data))
    return success_response({"service": await _service_response(store, service)}, "Service created successfully")


@router.put("/organization/{organizationId}/reorder")
async def reorder_services(
    data: ServiceReorderRequest,
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    services = await manager.reorder(organization.id, data.serviceIds)
    logger.info(f"[SERVICE] Reordered {len(data.serviceIds)} service(s) in {organization.id}")
    return success_response(
        {"services": [ServiceResponse.model_validate(service).model_dump(mode="json") for service in services]},
        "Services reordered successfully",
    )


@router.get("/organization/{organizationId}/status-log")
async def status_log(
    organizationId: str = Path(...),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    serviceId: Optional[str] = Query(None),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId)
    entries = await list_status_changes(store, organization.id, limit=limit, offset=offset, service_id=serviceId)
    return success_response(
        {"changes": [StatusChangeResponse.model_validate(entry).model_dump(mode="json") for entry in entries]}
    )


@router.get("/{serviceId}")
async def get_service(
    serviceId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    service = await _authorized_service(manager, store, user, serviceId)
    return success_response({"service": await _service_response(store, service)})


@router.put("/{serviceId}")
async def update_service(
    data: ServiceUpdateRequest,
    serviceId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    await _authorized_service(manager, store, user, serviceId, admin=True)
    change = await manager.update_service(serviceId, user.id, to_payload(data, exclude_unset=True))
    return success_response(
        {"service": await _service_response(store, change.service)}, "Service updated successfully"
    )


@router.delete("/{serviceId}")
async def delete_service(
    serviceId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    await _authorized_service(manager, store, user, serviceId, admin=True)
    await manager.delete_service(serviceId)
    return success_response(message="Service deleted successfully")


# ---
# Status changes always write an audit entry, even when the status is unchanged.
# ---
@router.patch("/{serviceId}/status")
async def change_status(
    data: ServiceStatusRequest,
    serviceId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    await _authorized_service(manager, store, user, serviceId, admin=True)
    change = await manager.change_status(serviceId, data.status, user.id)
    return success_response(
        {
            "service": await _service_response(store, change.service),
            "oldStatus": change.old_status,
            "newStatus": change.service.status,
        },
        "Service status updated successfully",
    )


@router.patch("/{serviceId}/uptime")
async def update_uptime(
    data: ServiceUptimeRequest,
    serviceId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
    manager: ServiceManager = Depends(get_service_manager),
):
    await _authorized_service(manager, store, user, serviceId, admin=True)
    service = await manager.update_uptime(serviceId, data.uptimePercentage)
    return success_response({"service": await _service_response(store, service)}, "Service uptime updated successfully")

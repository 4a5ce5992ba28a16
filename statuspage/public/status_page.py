# ---
# File: statuspage/public/status_page.py
# Purpose: The unauthenticated projection of an organization: only public
#          services, incidents and updates, and the overall status derived
#          from the public services alone
# ---

import random
from datetime import date, timedelta
from typing import Dict, List, Optional

from statuspage.errors import NotFoundError
from statuspage.persistence.base import Store
from statuspage.organizations.models import PublicOrganizationRead
from statuspage.persistence.records import IncidentQuery, IncidentRecord, OrganizationRecord, ServiceRecord
from statuspage.public.models import PublicIncident, PublicService, PublicServiceRef, PublicUpdate
from statuspage.services.service_manager import overall_status_for
from statuspage.utils.status_utils import IncidentType, status_badge
from statuspage.utils.time_utils import utc_now

UPCOMING_MAINTENANCE_LIMIT = 5
RECENT_INCIDENT_DAYS = 30
SUMMARY_INCIDENT_DAYS = 7


async def public_organization(store: Store, slug: str) -> OrganizationRecord:
    organization = await store.get_organization_by_slug(slug)
    if not organization or not organization.isPublic:
        raise NotFoundError("Status page not found")
    return organization


def public_service(service: ServiceRecord) -> dict:
    return {**PublicService.model_validate(service).model_dump(mode="json"), "badge": status_badge(service.status)}


async def public_incident(
    store: Store,
    incident: IncidentRecord,
    services: List[ServiceRecord],
    with_updates: bool = False,
) -> dict:
    """Affected services are limited to the public ones in `services`."""
    by_id = {service.id: service for service in services}
    affected = [PublicServiceRef.model_validate(by_id[sid]) for sid in incident.serviceIds if sid in by_id]
    payload = {**incident.model_dump(), "affectedServices": affected}
    if with_updates:
        updates = await store.list_incident_updates(incident.id, public_only=True)
        payload["updates"] = [PublicUpdate.model_validate(update) for update in updates]
    else:
        latest = await store.list_incident_updates(incident.id, public_only=True, newest_first=True, limit=1)
        payload["latestUpdate"] = PublicUpdate.model_validate(latest[0]) if latest else None
    return PublicIncident.model_validate(payload).model_dump(mode="json")


async def status_page(store: Store, slug: str) -> Dict:
    organization = await public_organization(store, slug)
    services = await store.list_services(organization.id, public_only=True)
    active = await store.list_incidents(
        organization.id, IncidentQuery(unresolved_only=True, public_only=True)
    )
    maintenance = await store.list_incidents(
        organization.id,
        IncidentQuery(
            incident_type=IncidentType.MAINTENANCE.value,
            public_only=True,
            scheduled_from=utc_now(),
            order_by="scheduledFor",
            descending=False,
            limit=UPCOMING_MAINTENANCE_LIMIT,
        ),
    )
    overall = overall_status_for(services, organization.id)
    return {
        "organization": PublicOrganizationRead.model_validate(organization).model_dump(mode="json"),
        "services": [public_service(service) for service in services],
        "activeIncidents": [await public_incident(store, incident, services) for incident in active],
        "scheduledMaintenance": [await public_incident(store, incident, services) for incident in maintenance],
        "overallStatus": overall.value,
        "overallStatusBadge": status_badge(overall),
    }


async def status_summary(store: Store, slug: str) -> Dict:
    organization = await public_organization(store, slug)
    now = utc_now()
    services = await store.list_services(organization.id, public_only=True)
    return {
        "organization": PublicOrganizationRead.model_validate(organization).model_dump(mode="json"),
        "summary": {
            "serviceCount": len(services),
            "activeIncidentCount": await store.count_incidents(
                organization.id, IncidentQuery(unresolved_only=True, public_only=True)
            ),
            "scheduledMaintenanceCount": await store.count_incidents(
                organization.id,
                IncidentQuery(incident_type=IncidentType.MAINTENANCE.value, public_only=True, scheduled_from=now),
            ),
            "recentIncidentCount": await store.count_incidents(
                organization.id,
                IncidentQuery(public_only=True, started_since=now - timedelta(days=SUMMARY_INCIDENT_DAYS)),
            ),
        },
    }


async def recent_incidents(store: Store, slug: str, page: int = 1, limit: int = 10) -> Dict:
    organization = await public_organization(store, slug)
    services = await store.list_services(organization.id, public_only=True)
    query = IncidentQuery(
        public_only=True,
        started_since=utc_now() - timedelta(days=RECENT_INCIDENT_DAYS),
        limit=limit,
        offset=(page - 1) * limit,
    )
    incidents = await store.list_incidents(organization.id, query)
    total = await store.count_incidents(organization.id, query)
    return {
        "incidents": [await public_incident(store, incident, services, with_updates=True) for incident in incidents],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


async def incident_detail(store: Store, slug: str, incident_id: str) -> Dict:
    organization = await public_organization(store, slug)
    incident = await store.get_incident(incident_id)
    if not incident or incident.organizationId != organization.id or not incident.isPublic:
        raise NotFoundError("Incident not found")
    services = await store.list_services(organization.id, public_only=True)
    return {
        "incident": await public_incident(store, incident, services, with_updates=True),
        "organization": {"id": organization.id, "name": organization.name},
    }


def mock_daily_uptime(service_id: str, day: date) -> float:
    """
    Stand-in for measured availability: the same service and day always give
    the same number, and about nine days in ten are a clean 100.
    """
    rng = random.Random(f"{service_id}:{day.isoformat()}")
    if rng.random() > 0.1:
        return 100.0
    return round(rng.random() * 100, 2)


def uptime_series(service_id: str, days: int, today: Optional[date] = None) -> List[Dict]:
    today = today or utc_now().date()
    start = today - timedelta(days=days)
    return [
        {"date": (start + timedelta(days=offset)).isoformat(), "uptime": mock_daily_uptime(service_id, start + timedelta(days=offset))}
        for offset in range(days)
    ]


async def service_uptime(store: Store, slug: str, service_id: str, days: int = 30) -> Dict:
    organization = await public_organization(store, slug)
    service = await store.get_service(service_id)
    if not service or service.organizationId != organization.id or not service.isPublic:
        raise NotFoundError("Service not found")
    series = uptime_series(service.id, days)
    return {
        "service": {
            "id": service.id,
            "name": service.name,
            "status": service.status,
            "uptimePercentage": service.uptimePercentage,
        },
        "uptimeData": series,
        "averageUptime": round(sum(day["uptime"] for day in series) / len(series), 2),
    }

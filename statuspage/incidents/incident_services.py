# ---
# File: statuspage/incidents/incident_services.py
# Purpose: Incident lifecycle: creation with its affected services and first
#          update, appended updates that drive status and resolvedAt,
#          partial edits, deletion, and the realtime notifications for each
# ---

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from statuspage.errors import NotFoundError, ValidationError
from statuspage.persistence.base import Store
from statuspage.persistence.records import (
    IncidentQuery,
    IncidentRecord,
    IncidentUpdateRecord,
    OrganizationRecord,
)
from statuspage.utils.locks import KeyedLock
from statuspage.utils.status_utils import IncidentSeverity, IncidentStatus, IncidentType
from statuspage.utils.time_utils import as_utc, utc_now
from statuspage.websocket.notifier import RealtimeNotifier

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = (
    "title",
    "description",
    "severity",
    "serviceIds",
    "scheduledFor",
    "scheduledUntil",
    "isPublic",
    "notifySubscribers",
)
MAX_PAGE_SIZE = 100


@dataclass
class PostedUpdate:
    update: IncidentUpdateRecord
    incident: IncidentRecord
    newly_resolved: bool


def _enum_value(enum_cls, value, field: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError.for_field(field, f"Invalid {field} '{value}'; expected one of: {allowed}")


def _required_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError.for_field(field, f"{field} is required")
    return value.strip()


def _scheduling(scheduled_for: Optional[datetime], scheduled_until: Optional[datetime]) -> Dict:
    scheduled_for, scheduled_until = as_utc(scheduled_for), as_utc(scheduled_until)
    if scheduled_for and scheduled_until and scheduled_until < scheduled_for:
        raise ValidationError.for_field("scheduledUntil", "scheduledUntil must not be before scheduledFor")
    return {"scheduledFor": scheduled_for, "scheduledUntil": scheduled_until}


class IncidentService:
    def __init__(
        self,
        store: Store,
        notifier: RealtimeNotifier,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.notifier = notifier
        self.locks = locks or KeyedLock()
        self.clock = clock

    # ---
    # Reads
    # ---
    async def get_incident(self, incident_id: str) -> IncidentRecord:
        incident = await self.store.get_incident(incident_id)
        if not incident:
            raise NotFoundError("Incident not found")
        return incident

    async def list_incidents(
        self,
        organization_id: str,
        statuses: Optional[Iterable[str]] = None,
        incident_types: Optional[Iterable[str]] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[IncidentRecord], int]:
        if page < 1 or limit < 1:
            raise ValidationError.for_field("page", "page and limit must be positive")
        statuses = [_enum_value(IncidentStatus, value, "status") for value in statuses or []]
        types = {_enum_value(IncidentType, value, "type") for value in incident_types or []}
        # More than one distinct type means every type, so no filter
        incident_type = types.pop() if len(types) == 1 else None

        limit = min(limit, MAX_PAGE_SIZE)
        query = IncidentQuery(
            statuses=statuses or None,
            incident_type=incident_type,
            limit=limit,
            offset=(page - 1) * limit,
        )
        incidents = await self.store.list_incidents(organization_id, query)
        total = await self.store.count_incidents(organization_id, query)
        return incidents, total

    async def list_updates(self, incident_id: str, public_only: bool = False) -> List[IncidentUpdateRecord]:
        await self.get_incident(incident_id)
        return await self.store.list_incident_updates(incident_id, public_only=public_only)

    async def _organization(self, organization_id: str) -> OrganizationRecord:
        organization = await self.store.get_organization(organization_id)
        if not organization:
            raise NotFoundError("Organization not found")
        return organization

    async def _owned_service_ids(self, organization_id: str, service_ids) -> List[str]:
        if not service_ids:
            raise ValidationError.for_field("serviceIds", "At least one affected service is required")
        wanted = list(dict.fromkeys(service_ids))
        owned = {service.id for service in await self.store.list_services(organization_id, service_ids=wanted)}
        foreign = [service_id for service_id in wanted if service_id not in owned]
        if foreign:
            raise ValidationError.for_field(
                "serviceIds", f"Services not found in this organization: {', '.join(foreign)}"
            )
        return wanted

    # ---
    # Mutations
    # ---
    async def create_incident(
        self,
        organization_id: str,
        actor_id: str,
        title: str,
        description: Optional[str] = None,
        severity=IncidentSeverity.MINOR,
        incident_type=IncidentType.INCIDENT,
        service_ids: Iterable[str] = (),
        status=IncidentStatus.INVESTIGATING,
        scheduled_for: Optional[datetime] = None,
        scheduled_until: Optional[datetime] = None,
        is_public: bool = True,
        notify_subscribers: bool = True,
    ) -> IncidentRecord:
        """
        Everything is validated before the first write. The incident row, its
        service links and the initial update commit together or not at all.
        """
        title = _required_text(title, "title")
        severity = _enum_value(IncidentSeverity, severity, "severity")
        incident_type = _enum_value(IncidentType, incident_type, "type")
        status = _enum_value(IncidentStatus, status, "status")
        scheduling = _scheduling(scheduled_for, scheduled_until)
        organization = await self._organization(organization_id)
        service_ids = await self._owned_service_ids(organization.id, list(service_ids))

        now = self.clock()
        data = {
            "organizationId": organization.id,
            "title": title,
            "description": description,
            "status": status,
            "severity": severity,
            "type": incident_type,
            "createdBy": actor_id,
            "startedAt": now,
            "isPublic": is_public,
            "notifySubscribers": notify_subscribers,
            **scheduling,
        }
        if status == IncidentStatus.RESOLVED.value:
            data["resolvedAt"] = now

        async with self.store.transaction() as tx:
            incident = await tx.create_incident({key: value for key, value in data.items() if value is not None})
            await tx.replace_incident_services(incident.id, service_ids)
            await tx.create_incident_update(
                {
                    "incidentId": incident.id,
                    "title": title,
                    "description": description or title,
                    "status": status,
                    "isPublic": is_public,
                    "notifySubscribers": notify_subscribers,
                    "createdBy": actor_id,
                }
            )

        incident = await self.get_incident(incident.id)
        logger.info(
            f"[INCIDENT] Created {incident.id} ({incident.type}/{incident.severity}) in {organization.id} "
            f"affecting {len(service_ids)} service(s)"
        )
        await self._notify_created(organization, incident)
        return incident

    async def post_incident_update(
        self,
        incident_id: str,
        actor_id: Optional[str],
        title: str,
        description: str,
        status,
        is_public: bool = True,
        notify_subscribers: bool = True,
    ) -> PostedUpdate:
        """
        Append an update and move the incident to its status. The first time
        an incident reaches `resolved` its resolvedAt is stamped; later
        updates never move it.
        """
        title = _required_text(title, "title")
        description = _required_text(description, "description")
        status = _enum_value(IncidentStatus, status, "status")

        async with self.locks.hold(f"incident:{incident_id}"):
            async with self.store.transaction() as tx:
                incident = await tx.get_incident(incident_id)
                if not incident:
                    raise NotFoundError("Incident not found")
                update = await tx.create_incident_update(
                    {
                        "incidentId": incident.id,
                        "title": title,
                        "description": description,
                        "status": status,
                        "isPublic": is_public,
                        "notifySubscribers": notify_subscribers,
                        "createdBy": actor_id,
                    }
                )
                changes = {}
                if status != incident.status:
                    changes["status"] = status
                newly_resolved = status == IncidentStatus.RESOLVED.value and incident.resolvedAt is None
                if newly_resolved:
                    changes["resolvedAt"] = self.clock()
                if changes:
                    incident = await tx.update_incident(incident.id, changes)

        logger.info(
            f"[INCIDENT] Update on {incident_id}: status={status}"
            + (" (resolved)" if newly_resolved else "")
        )
        await self._notify_updated(incident, update, newly_resolved)
        return PostedUpdate(update=update, incident=incident, newly_resolved=newly_resolved)

    async def update_incident(self, incident_id: str, patch: Dict) -> IncidentRecord:
        """
        Partial edit. A given `serviceIds` replaces the whole association set.
        Status is not editable here; post an update instead.
        """
        unknown = sorted(set(patch) - set(PATCHABLE_FIELDS))
        if unknown:
            raise ValidationError(
                "Validation failed",
                [{"field": field, "message": f"{field} cannot be changed here"} for field in unknown],
            )
        changes = {key: value for key, value in patch.items() if value is not None}
        if "title" in changes:
            changes["title"] = _required_text(changes["title"], "title")
        if "severity" in changes:
            changes["severity"] = _enum_value(IncidentSeverity, changes["severity"], "severity")
        service_ids = changes.pop("serviceIds", None)

        async with self.locks.hold(f"incident:{incident_id}"):
            current = await self.get_incident(incident_id)
            if "scheduledFor" in changes or "scheduledUntil" in changes:
                changes.update(
                    _scheduling(
                        changes.get("scheduledFor", current.scheduledFor),
                        changes.get("scheduledUntil", current.scheduledUntil),
                    )
                )
            if service_ids is not None:
                service_ids = await self._owned_service_ids(current.organizationId, service_ids)

            async with self.store.transaction() as tx:
                if changes:
                    await tx.update_incident(incident_id, changes)
                if service_ids is not None:
                    await tx.replace_incident_services(incident_id, service_ids)

        incident = await self.get_incident(incident_id)
        logger.info(f"[INCIDENT] Edited {incident_id}: {sorted(patch)}")
        await self._notify_updated(incident)
        return incident

    async def delete_incident(self, incident_id: str) -> None:
        async with self.locks.hold(f"incident:{incident_id}"):
            incident = await self.get_incident(incident_id)
            await self.store.delete_incident(incident_id)
        logger.info(f"[INCIDENT] Deleted {incident_id} ({incident.title})")

    async def _notify_created(self, organization: OrganizationRecord, incident: IncidentRecord) -> None:
        try:
            public = await self.store.list_services(organization.id, public_only=True, service_ids=incident.serviceIds)
            await self.notifier.incident_created(organization, incident, [service.id for service in public])
        except Exception:
            logger.exception(f"[INCIDENT] Post-commit notification for {incident.id} failed")

    async def _notify_updated(
        self, incident: IncidentRecord, update: Optional[IncidentUpdateRecord] = None, newly_resolved: bool = False
    ) -> None:
        try:
            organization = await self.store.get_organization(incident.organizationId)
            if organization:
                await self.notifier.incident_updated(organization, incident, update, newly_resolved=newly_resolved)
        except Exception:
            logger.exception(f"[INCIDENT] Post-commit notification for {incident.id} failed")

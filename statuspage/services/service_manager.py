# ---
# File: statuspage/services/service_manager.py
# Purpose: Service lifecycle and status mutations. Every accepted status
#          change writes the service row and its audit entry in one
#          transaction, serialized per service, then recomputes the overall
#          status and notifies realtime subscribers.
# ---

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from statuspage.errors import NotFoundError, ValidationError
from statuspage.persistence.base import Store
from statuspage.persistence.records import OrganizationRecord, ServiceRecord, StatusLogRecord
from statuspage.services.status_log import record_status_change
from statuspage.utils.locks import KeyedLock
from statuspage.utils.status_utils import ServiceStatus, derive_overall_status, is_known_status, unknown_statuses
from statuspage.websocket.notifier import RealtimeNotifier

logger = logging.getLogger(__name__)

UPTIME_MIN = 1
UPTIME_MAX = 100
EDITABLE_FIELDS = ("name", "description", "url", "order", "isPublic")


@dataclass
class StatusChange:
    service: ServiceRecord
    log_entry: Optional[StatusLogRecord]
    old_status: Optional[str]
    was_public: Optional[bool] = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.service.status

    @property
    def visibility_changed(self) -> bool:
        return self.was_public is not None and self.was_public != self.service.isPublic


def _validated_status(value, field: str = "status") -> str:
    if not is_known_status(value):
        raise ValidationError.for_field(field, f"Invalid status value '{value}'")
    return ServiceStatus(value).value


def overall_status_for(services: List[ServiceRecord], organization_id: str = None) -> ServiceStatus:
    bad = unknown_statuses(services)
    if bad:
        logger.warning(
            "[DATA-INTEGRITY] Organization %s has services with unknown status values %s; ranking them as operational",
            organization_id,
            bad,
        )
    return derive_overall_status(services)


class ServiceManager:
    def __init__(self, store: Store, notifier: RealtimeNotifier, locks: Optional[KeyedLock] = None):
        self.store = store
        self.notifier = notifier
        self.locks = locks or KeyedLock()

    # ---
    # Reads
    # ---
    async def get_service(self, service_id: str) -> ServiceRecord:
        service = await self.store.get_service(service_id)
        if not service:
            raise NotFoundError("Service not found")
        return service

    async def list_services(self, organization_id: str, public_only: bool = False) -> List[ServiceRecord]:
        return await self.store.list_services(organization_id, public_only=public_only)

    async def overall_status(self, organization_id: str, public_only: bool = False) -> ServiceStatus:
        services = await self.store.list_services(organization_id, public_only=public_only)
        return overall_status_for(services, organization_id)

    async def _organization(self, organization_id: str) -> OrganizationRecord:
        organization = await self.store.get_organization(organization_id)
        if not organization:
            raise NotFoundError("Organization not found")
        return organization

    # ---
    # Mutations
    # ---
    async def create_service(self, organization_id: str, actor_id: Optional[str], data: Dict) -> ServiceRecord:
        organization = await self._organization(organization_id)
        status = _validated_status(data.get("status") or ServiceStatus.OPERATIONAL.value)
        payload = {key: data[key] for key in EDITABLE_FIELDS if data.get(key) is not None}
        payload.update({"organizationId": organization.id, "status": status})

        async with self.store.transaction() as tx:
            service = await tx.create_service(payload)
            # First entry of the chain: nothing came before it
            await record_status_change(tx, service.id, None, status, actor_id, organization.id)

        logger.info(f"[SERVICE] Created {service.id} ({service.name}) in {organization.id} as {status}")
        await self.notifier.service_updated(organization, service)
        await self._broadcast_overall(organization)
        return service

    async def change_status(self, service_id: str, new_status, actor_id: Optional[str]) -> StatusChange:
        """
        Set a service's status and append the old -> new transition to the
        audit log. Calls for the same service run one at a time so the log
        forms an unbroken chain.
        """
        new_status = _validated_status(new_status)
        async with self.locks.hold(service_id):
            async with self.store.transaction() as tx:
                current = await tx.get_service(service_id)
                if not current:
                    raise NotFoundError("Service not found")
                old_status = current.status
                service = await tx.update_service(service_id, {"status": new_status})
                entry = await record_status_change(
                    tx, service_id, old_status, new_status, actor_id, current.organizationId
                )

        change = StatusChange(service=service, log_entry=entry, old_status=old_status)
        logger.info(f"[SERVICE] Status of {service_id}: {old_status} -> {new_status} by {actor_id}")
        await self._after_status_change(change)
        return change

    async def update_service(self, service_id: str, actor_id: Optional[str], patch: Dict) -> StatusChange:
        """
        Partial update. A status that differs from the current one is logged
        exactly like `change_status`; other fields are written in the same
        transaction.
        """
        fields = {key: patch[key] for key in EDITABLE_FIELDS if key in patch and patch[key] is not None}
        new_status = patch.get("status")
        if new_status is not None:
            new_status = _validated_status(new_status)

        async with self.locks.hold(service_id):
            async with self.store.transaction() as tx:
                current = await tx.get_service(service_id)
                if not current:
                    raise NotFoundError("Service not found")
                old_status = current.status
                entry = None
                if new_status is not None and new_status != old_status:
                    fields["status"] = new_status
                service = await tx.update_service(service_id, fields) if fields else current
                if "status" in fields:
                    entry = await record_status_change(
                        tx, service_id, old_status, new_status, actor_id, current.organizationId
                    )

        change = StatusChange(service=service, log_entry=entry, old_status=old_status, was_public=current.isPublic)
        logger.info(f"[SERVICE] Updated {service_id}: {sorted(fields)}")
        await self._after_status_change(change)
        return change

    async def update_uptime(self, service_id: str, uptime) -> ServiceRecord:
        try:
            value = float(uptime)
        except (TypeError, ValueError):
            value = None
        if value is None or math.isnan(value) or not UPTIME_MIN <= value <= UPTIME_MAX:
            raise ValidationError.for_field(
                "uptimePercentage",
                f"Uptime percentage must be a valid number between {UPTIME_MIN} and {UPTIME_MAX}",
            )
        service = await self.store.update_service(service_id, {"uptimePercentage": round(value, 2)})
        if not service:
            raise NotFoundError("Service not found")
        return service

    async def reorder(self, organization_id: str, service_ids: List[str]) -> List[ServiceRecord]:
        owned = {service.id for service in await self.store.list_services(organization_id)}
        foreign = [service_id for service_id in service_ids if service_id not in owned]
        if foreign:
            raise ValidationError.for_field(
                "serviceIds", f"Services do not belong to this organization: {', '.join(foreign)}"
            )
        async with self.store.transaction() as tx:
            for index, service_id in enumerate(service_ids):
                await tx.update_service(service_id, {"order": index})
        return await self.store.list_services(organization_id)

    async def delete_service(self, service_id: str) -> None:
        service = await self.get_service(service_id)
        async with self.locks.hold(service_id):
            await self.store.delete_service(service_id)
        logger.info(f"[SERVICE] Deleted {service_id} ({service.name})")
        organization = await self.store.get_organization(service.organizationId)
        if organization:
            await self._broadcast_overall(organization)

    # ---
    # Notifications
    # ---
    # Runs after commit; a failure here is logged and never reaches the caller.
    async def _after_status_change(self, change: StatusChange) -> None:
        try:
            organization = await self.store.get_organization(change.service.organizationId)
            if not organization:
                return
            await self.notifier.service_updated(
                organization, change.service, old_status=change.old_status, was_public=change.was_public
            )
            if change.changed or change.visibility_changed:
                await self._broadcast_overall(organization)
        except Exception:
            logger.exception(f"[SERVICE] Post-commit notification for {change.service.id} failed")

    async def _broadcast_overall(self, organization: OrganizationRecord) -> None:
        try:
            services = await self.store.list_services(organization.id)
            overall = overall_status_for(services, organization.id)
            public_overall = derive_overall_status(service for service in services if service.isPublic)
            await self.notifier.status_changed(organization, overall, public_overall)
        except Exception:
            logger.exception(f"[SERVICE] Overall status broadcast for {organization.id} failed")

# ---
# File: statuspage/persistence/prisma_store.py
# Purpose: Store adapter backed by the generated Prisma client (PostgreSQL).
#          Every call is time-bounded; timeouts and engine connection failures
#          surface as TransientError, unique violations as ConflictError.
# ---

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Awaitable, Dict, List, Optional, TypeVar

import httpx
from prisma import Prisma
from prisma import errors as prisma_errors

from statuspage import config
from statuspage.errors import ConflictError, TransientError
from statuspage.persistence.base import Store, with_timeout
from statuspage.persistence.records import (
    IncidentQuery,
    IncidentRecord,
    IncidentUpdateRecord,
    MembershipRecord,
    OrganizationRecord,
    ServiceRecord,
    StatusLogRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SERVICE_ORDER = [{"order": "asc"}, {"name": "asc"}]


def _unique_field(exc: Exception) -> Optional[str]:
    # Prisma reports the violated constraint columns under user_facing_error.meta.target
    data = getattr(exc, "data", None)
    if not isinstance(data, dict):
        return None
    meta = (data.get("user_facing_error") or {}).get("meta") or {}
    target = meta.get("target")
    if isinstance(target, list) and target:
        return str(target[0])
    if isinstance(target, str):
        return target
    return None


def _incident(row) -> IncidentRecord:
    record = IncidentRecord.model_validate(row)
    links = getattr(row, "services", None) or []
    return record.model_copy(update={"serviceIds": [link.serviceId for link in links]})


def _status_log(row) -> StatusLogRecord:
    record = StatusLogRecord.model_validate(row)
    service = getattr(row, "service", None)
    return record.model_copy(update={"serviceName": service.name if service else None})


def _incident_where(organization_id: str, query: IncidentQuery) -> Dict:
    conditions: List[Dict] = [{"organizationId": organization_id}]
    if query.statuses:
        conditions.append({"status": {"in": query.statuses}})
    if query.unresolved_only:
        conditions.append({"status": {"not": "resolved"}})
    if query.incident_type:
        conditions.append({"type": query.incident_type})
    if query.public_only:
        conditions.append({"isPublic": True})
    if query.started_since:
        conditions.append({"startedAt": {"gte": query.started_since}})
    if query.scheduled_from:
        conditions.append({"scheduledFor": {"gte": query.scheduled_from}})
    return {"AND": conditions}


class PrismaStore(Store):
    def __init__(
        self,
        client: Optional[Prisma] = None,
        timeout: Optional[float] = None,
        in_transaction: bool = False,
    ):
        self._client = client or Prisma()
        self._timeout = config.PERSISTENCE_TIMEOUT_SECONDS if timeout is None else timeout
        self._in_transaction = in_transaction

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await with_timeout(awaitable, self._timeout, operation)
        except prisma_errors.UniqueViolationError as exc:
            field = _unique_field(exc)
            raise ConflictError(f"{field or 'value'} already exists", field=field) from exc
        except (prisma_errors.ClientNotConnectedError, httpx.TransportError) as exc:
            logger.error("[STORE] %s failed: %s", operation, exc)
            raise TransientError() from exc

    # ---
    # Lifecycle
    # ---
    async def connect(self) -> None:
        if not self._client.is_connected():
            await self._client.connect()

    async def disconnect(self) -> None:
        if self._client.is_connected():
            await self._client.disconnect()

    async def ping(self) -> bool:
        await self._call(self._client.query_raw("SELECT 1"), "ping")
        return True

    @asynccontextmanager
    async def transaction(self):
        if self._in_transaction:
            yield self
            return
        timeout = timedelta(seconds=max(self._timeout * 2, 1))
        try:
            async with self._client.tx(max_wait=timedelta(seconds=self._timeout), timeout=timeout) as tx:
                yield PrismaStore(tx, timeout=self._timeout, in_transaction=True)
        except (prisma_errors.ClientNotConnectedError, httpx.TransportError) as exc:
            logger.error("[STORE] transaction failed: %s", exc)
            raise TransientError() from exc

    # ---
    # Users
    # ---
    async def create_user(self, data: Dict) -> UserRecord:
        row = await self._call(self._client.user.create(data=data), "create_user")
        return UserRecord.model_validate(row)

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = await self._call(self._client.user.find_unique(where={"id": user_id}), "get_user")
        return UserRecord.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = await self._call(
            self._client.user.find_first(where={"email": {"equals": email, "mode": "insensitive"}}),
            "get_user_by_email",
        )
        return UserRecord.model_validate(row) if row else None

    async def update_user(self, user_id: str, data: Dict) -> Optional[UserRecord]:
        row = await self._call(self._client.user.update(where={"id": user_id}, data=data), "update_user")
        return UserRecord.model_validate(row) if row else None

    # ---
    # Organizations
    # ---
    async def create_organization(self, data: Dict) -> OrganizationRecord:
        row = await self._call(self._client.organization.create(data=data), "create_organization")
        return OrganizationRecord.model_validate(row)

    async def get_organization(self, organization_id: str) -> Optional[OrganizationRecord]:
        row = await self._call(
            self._client.organization.find_unique(where={"id": organization_id}), "get_organization"
        )
        return OrganizationRecord.model_validate(row) if row else None

    async def get_organization_by_slug(self, slug: str) -> Optional[OrganizationRecord]:
        row = await self._call(self._client.organization.find_unique(where={"slug": slug}), "get_organization_by_slug")
        return OrganizationRecord.model_validate(row) if row else None

    async def get_organization_by_access_code(self, access_code: str) -> Optional[OrganizationRecord]:
        row = await self._call(
            self._client.organization.find_unique(where={"accessCode": access_code}),
            "get_organization_by_access_code",
        )
        return OrganizationRecord.model_validate(row) if row else None

    async def list_owned_organizations(self, user_id: str) -> List[OrganizationRecord]:
        rows = await self._call(
            self._client.organization.find_many(where={"ownerId": user_id}, order={"createdAt": "asc"}),
            "list_owned_organizations",
        )
        return [OrganizationRecord.model_validate(row) for row in rows]

    async def update_organization(self, organization_id: str, data: Dict) -> Optional[OrganizationRecord]:
        row = await self._call(
            self._client.organization.update(where={"id": organization_id}, data=data), "update_organization"
        )
        return OrganizationRecord.model_validate(row) if row else None

    async def delete_organization(self, organization_id: str) -> bool:
        async with self.transaction() as tx:
            client = tx._client
            where = {"organizationId": organization_id}
            incident_ids = [
                row.id for row in await tx._call(client.incident.find_many(where=where), "list_incident_ids")
            ]
            if incident_ids:
                await tx._call(
                    client.incidentupdate.delete_many(where={"incidentId": {"in": incident_ids}}), "delete_updates"
                )
                await tx._call(
                    client.incidentservice.delete_many(where={"incidentId": {"in": incident_ids}}), "delete_links"
                )
            await tx._call(client.incident.delete_many(where=where), "delete_incidents")
            await tx._call(client.servicestatuslog.delete_many(where=where), "delete_status_logs")
            await tx._call(client.service.delete_many(where=where), "delete_services")
            await tx._call(client.organizationmember.delete_many(where=where), "delete_memberships")
            row = await tx._call(client.organization.delete(where={"id": organization_id}), "delete_organization")
        return row is not None

    # ---
    # Memberships
    # ---
    async def create_membership(self, data: Dict) -> MembershipRecord:
        row = await self._call(self._client.organizationmember.create(data=data), "create_membership")
        return MembershipRecord.model_validate(row)

    async def get_membership(self, membership_id: str) -> Optional[MembershipRecord]:
        row = await self._call(
            self._client.organizationmember.find_unique(where={"id": membership_id}), "get_membership"
        )
        return MembershipRecord.model_validate(row) if row else None

    async def find_membership(self, user_id: str, organization_id: str) -> Optional[MembershipRecord]:
        row = await self._call(
            self._client.organizationmember.find_first(where={"userId": user_id, "organizationId": organization_id}),
            "find_membership",
        )
        return MembershipRecord.model_validate(row) if row else None

    async def list_memberships(self, organization_id: str, active_only: bool = False) -> List[MembershipRecord]:
        where = {"organizationId": organization_id}
        if active_only:
            where["status"] = "active"
        rows = await self._call(
            self._client.organizationmember.find_many(where=where, order={"joinedAt": "asc"}), "list_memberships"
        )
        return [MembershipRecord.model_validate(row) for row in rows]

    async def list_user_memberships(self, user_id: str, active_only: bool = True) -> List[MembershipRecord]:
        where = {"userId": user_id}
        if active_only:
            where["status"] = "active"
        rows = await self._call(
            self._client.organizationmember.find_many(where=where, order={"joinedAt": "asc"}), "list_user_memberships"
        )
        return [MembershipRecord.model_validate(row) for row in rows]

    async def update_membership(self, membership_id: str, data: Dict) -> Optional[MembershipRecord]:
        row = await self._call(
            self._client.organizationmember.update(where={"id": membership_id}, data=data), "update_membership"
        )
        return MembershipRecord.model_validate(row) if row else None

    async def delete_membership(self, membership_id: str) -> bool:
        row = await self._call(
            self._client.organizationmember.delete(where={"id": membership_id}), "delete_membership"
        )
        return row is not None

    # ---
    # Services
    # ---
    async def create_service(self, data: Dict) -> ServiceRecord:
        row = await self._call(self._client.service.create(data=data), "create_service")
        return ServiceRecord.model_validate(row)

    async def get_service(self, service_id: str) -> Optional[ServiceRecord]:
        row = await self._call(self._client.service.find_unique(where={"id": service_id}), "get_service")
        return ServiceRecord.model_validate(row) if row else None

    async def list_services(
        self,
        organization_id: str,
        public_only: bool = False,
        service_ids: Optional[List[str]] = None,
    ) -> List[ServiceRecord]:
        where: Dict = {"organizationId": organization_id}
        if public_only:
            where["isPublic"] = True
        if service_ids is not None:
            where["id"] = {"in": list(service_ids)}
        rows = await self._call(self._client.service.find_many(where=where, order=SERVICE_ORDER), "list_services")
        return [ServiceRecord.model_validate(row) for row in rows]

    async def update_service(self, service_id: str, data: Dict) -> Optional[ServiceRecord]:
        row = await self._call(self._client.service.update(where={"id": service_id}, data=data), "update_service")
        return ServiceRecord.model_validate(row) if row else None

    async def delete_service(self, service_id: str) -> bool:
        async with self.transaction() as tx:
            client = tx._client
            await tx._call(client.servicestatuslog.delete_many(where={"serviceId": service_id}), "delete_status_logs")
            await tx._call(client.incidentservice.delete_many(where={"serviceId": service_id}), "delete_links")
            row = await tx._call(client.service.delete(where={"id": service_id}), "delete_service")
        return row is not None

    # ---
    # Service status log
    # ---
    async def create_status_log(self, data: Dict) -> StatusLogRecord:
        row = await self._call(
            self._client.servicestatuslog.create(data=data, include={"service": True}), "create_status_log"
        )
        return _status_log(row)

    async def list_status_logs(
        self,
        organization_id: str,
        limit: int = 50,
        offset: int = 0,
        service_id: Optional[str] = None,
    ) -> List[StatusLogRecord]:
        where = {"organizationId": organization_id}
        if service_id:
            where["serviceId"] = service_id
        rows = await self._call(
            self._client.servicestatuslog.find_many(
                where=where,
                include={"service": True},
                order={"createdAt": "desc"},
                take=limit,
                skip=offset,
            ),
            "list_status_logs",
        )
        return [_status_log(row) for row in rows]

    # ---
    # Incidents
    # ---
    async def create_incident(self, data: Dict) -> IncidentRecord:
        row = await self._call(
            self._client.incident.create(data=data, include={"services": True}), "create_incident"
        )
        return _incident(row)

    async def get_incident(self, incident_id: str) -> Optional[IncidentRecord]:
        row = await self._call(
            self._client.incident.find_unique(where={"id": incident_id}, include={"services": True}),
            "get_incident",
        )
        return _incident(row) if row else None

    async def list_incidents(self, organization_id: str, query: IncidentQuery) -> List[IncidentRecord]:
        rows = await self._call(
            self._client.incident.find_many(
                where=_incident_where(organization_id, query),
                include={"services": True},
                order={query.order_by: "desc" if query.descending else "asc"},
                take=query.limit,
                skip=query.offset or None,
            ),
            "list_incidents",
        )
        return [_incident(row) for row in rows]

    async def count_incidents(self, organization_id: str, query: IncidentQuery) -> int:
        return await self._call(
            self._client.incident.count(where=_incident_where(organization_id, query)), "count_incidents"
        )

    async def update_incident(self, incident_id: str, data: Dict) -> Optional[IncidentRecord]:
        row = await self._call(
            self._client.incident.update(where={"id": incident_id}, data=data, include={"services": True}),
            "update_incident",
        )
        return _incident(row) if row else None

    async def delete_incident(self, incident_id: str) -> bool:
        async with self.transaction() as tx:
            client = tx._client
            await tx._call(client.incidentupdate.delete_many(where={"incidentId": incident_id}), "delete_updates")
            await tx._call(client.incidentservice.delete_many(where={"incidentId": incident_id}), "delete_links")
            row = await tx._call(client.incident.delete(where={"id": incident_id}), "delete_incident")
        return row is not None

    async def replace_incident_services(self, incident_id: str, service_ids: List[str]) -> None:
        await self._call(
            self._client.incidentservice.delete_many(where={"incidentId": incident_id}), "clear_incident_services"
        )
        links = [{"incidentId": incident_id, "serviceId": service_id} for service_id in dict.fromkeys(service_ids)]
        if links:
            await self._call(
                self._client.incidentservice.create_many(data=links, skip_duplicates=True), "link_incident_services"
            )

    async def list_service_incidents(self, service_id: str, unresolved_only: bool = False) -> List[IncidentRecord]:
        where: Dict = {"services": {"some": {"serviceId": service_id}}}
        if unresolved_only:
            where["status"] = {"not": "resolved"}
        rows = await self._call(
            self._client.incident.find_many(where=where, include={"services": True}, order={"startedAt": "desc"}),
            "list_service_incidents",
        )
        return [_incident(row) for row in rows]

    # ---
    # Incident updates
    # ---
    async def create_incident_update(self, data: Dict) -> IncidentUpdateRecord:
        row = await self._call(self._client.incidentupdate.create(data=data), "create_incident_update")
        return IncidentUpdateRecord.model_validate(row)

    async def list_incident_updates(
        self,
        incident_id: str,
        public_only: bool = False,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[IncidentUpdateRecord]:
        where: Dict = {"incidentId": incident_id}
        if public_only:
            where["isPublic"] = True
        rows = await self._call(
            self._client.incidentupdate.find_many(
                where=where,
                order={"createdAt": "desc" if newest_first else "asc"},
                take=limit,
            ),
            "list_incident_updates",
        )
        return [IncidentUpdateRecord.model_validate(row) for row in rows]

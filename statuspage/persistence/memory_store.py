# ---
# File: statuspage/persistence/memory_store.py
# Purpose: In-process Store used for local demos (DATABASE_BACKEND=memory)
#          and the test-suite. Transactions snapshot the tables and restore
#          them if the block raises.
# ---

import asyncio
import copy
import itertools
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Callable, Dict, List, Optional

from statuspage.errors import ConflictError
from statuspage.persistence.base import Store
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
from statuspage.utils.time_utils import utc_now


class MemoryStore(Store):
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._sequence = itertools.count()
        self._tx_lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(f"memory_store_tx_{id(self)}", default=False)
        self._tables: Dict[str, Dict[str, dict]] = {
            "users": {},
            "organizations": {},
            "memberships": {},
            "services": {},
            "status_logs": {},
            "incidents": {},
            "incident_services": {},
            "incident_updates": {},
        }

    # ---
    # Internal helpers
    # ---
    def _new_row(self, table: str, data: Dict, **defaults) -> dict:
        now = self._clock()
        row = {"id": str(uuid.uuid4()), "createdAt": now, **defaults}
        row.update({key: value for key, value in data.items() if value is not None or key not in row})
        row["_seq"] = next(self._sequence)
        self._tables[table][row["id"]] = row
        return row

    def _touch(self, row: dict, data: Dict) -> dict:
        row.update(data)
        if "updatedAt" in row:
            row["updatedAt"] = self._clock()
        return row

    def _rows(self, table: str) -> List[dict]:
        return sorted(self._tables[table].values(), key=lambda row: row["_seq"])

    def _service_ids_for(self, incident_id: str) -> List[str]:
        links = [link for link in self._rows("incident_services") if link["incidentId"] == incident_id]
        return [link["serviceId"] for link in links]

    def _incident(self, row: dict) -> IncidentRecord:
        return IncidentRecord(**{**row, "serviceIds": self._service_ids_for(row["id"])})

    def _status_log(self, row: dict) -> StatusLogRecord:
        service = self._tables["services"].get(row["serviceId"])
        return StatusLogRecord(**{**row, "serviceName": service["name"] if service else None})

    # ---
    # Lifecycle
    # ---
    async def ping(self) -> bool:
        return True

    @asynccontextmanager
    async def transaction(self):
        if self._in_transaction.get():
            yield self
            return
        async with self._tx_lock:
            snapshot = copy.deepcopy(self._tables)
            token = self._in_transaction.set(True)
            try:
                yield self
            except BaseException:
                self._tables = snapshot
                raise
            finally:
                self._in_transaction.reset(token)

    # ---
    # Users
    # ---
    async def create_user(self, data: Dict) -> UserRecord:
        if await self.get_user_by_email(data["email"]):
            raise ConflictError("User with this email already exists", field="email")
        row = self._new_row("users", data, isActive=True, lastLoginAt=None)
        return UserRecord(**row)

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self._tables["users"].get(user_id)
        return UserRecord(**row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for row in self._rows("users"):
            if row["email"].lower() == email.lower():
                return UserRecord(**row)
        return None

    async def update_user(self, user_id: str, data: Dict) -> Optional[UserRecord]:
        row = self._tables["users"].get(user_id)
        if not row:
            return None
        return UserRecord(**self._touch(row, data))

    # ---
    # Organizations
    # ---
    def _check_organization_unique(self, data: Dict, exclude_id: Optional[str] = None) -> None:
        for row in self._rows("organizations"):
            if row["id"] == exclude_id:
                continue
            if data.get("slug") and row["slug"] == data["slug"]:
                raise ConflictError(f"slug '{data['slug']}' already exists", field="slug")
            if data.get("accessCode") and row.get("accessCode") == data["accessCode"]:
                raise ConflictError("accessCode already exists", field="accessCode")

    async def create_organization(self, data: Dict) -> OrganizationRecord:
        self._check_organization_unique(data)
        now = self._clock()
        row = self._new_row(
            "organizations",
            data,
            updatedAt=now,
            primaryColor="#3b82f6",
            timezone="UTC",
            isPublic=True,
        )
        return OrganizationRecord(**row)

    async def get_organization(self, organization_id: str) -> Optional[OrganizationRecord]:
        row = self._tables["organizations"].get(organization_id)
        return OrganizationRecord(**row) if row else None

    async def get_organization_by_slug(self, slug: str) -> Optional[OrganizationRecord]:
        for row in self._rows("organizations"):
            if row["slug"] == slug:
                return OrganizationRecord(**row)
        return None

    async def get_organization_by_access_code(self, access_code: str) -> Optional[OrganizationRecord]:
        for row in self._rows("organizations"):
            if row.get("accessCode") == access_code:
                return OrganizationRecord(**row)
        return None

    async def list_owned_organizations(self, user_id: str) -> List[OrganizationRecord]:
        return [OrganizationRecord(**row) for row in self._rows("organizations") if row["ownerId"] == user_id]

    async def update_organization(self, organization_id: str, data: Dict) -> Optional[OrganizationRecord]:
        row = self._tables["organizations"].get(organization_id)
        if not row:
            return None
        self._check_organization_unique(data, exclude_id=organization_id)
        return OrganizationRecord(**self._touch(row, data))

    async def delete_organization(self, organization_id: str) -> bool:
        if organization_id not in self._tables["organizations"]:
            return False
        for service in await self.list_services(organization_id):
            await self.delete_service(service.id)
        for row in list(self._rows("incidents")):
            if row["organizationId"] == organization_id:
                await self.delete_incident(row["id"])
        for membership in await self.list_memberships(organization_id):
            await self.delete_membership(membership.id)
        del self._tables["organizations"][organization_id]
        return True

    # ---
    # Memberships
    # ---
    async def create_membership(self, data: Dict) -> MembershipRecord:
        if await self.find_membership(data["userId"], data["organizationId"]):
            raise ConflictError("User is already a member of this organization", field="userId")
        row = self._new_row("memberships", data, role="member", status="active", joinedAt=self._clock())
        row.pop("createdAt", None)
        return MembershipRecord(**row)

    async def get_membership(self, membership_id: str) -> Optional[MembershipRecord]:
        row = self._tables["memberships"].get(membership_id)
        return MembershipRecord(**row) if row else None

    async def find_membership(self, user_id: str, organization_id: str) -> Optional[MembershipRecord]:
        for row in self._rows("memberships"):
            if row["userId"] == user_id and row["organizationId"] == organization_id:
                return MembershipRecord(**row)
        return None

    async def list_memberships(self, organization_id: str, active_only: bool = False) -> List[MembershipRecord]:
        rows = [row for row in self._rows("memberships") if row["organizationId"] == organization_id]
        if active_only:
            rows = [row for row in rows if row["status"] == "active"]
        return [MembershipRecord(**row) for row in rows]

    async def list_user_memberships(self, user_id: str, active_only: bool = True) -> List[MembershipRecord]:
        rows = [row for row in self._rows("memberships") if row["userId"] == user_id]
        if active_only:
            rows = [row for row in rows if row["status"] == "active"]
        return [MembershipRecord(**row) for row in rows]

    async def update_membership(self, membership_id: str, data: Dict) -> Optional[MembershipRecord]:
        row = self._tables["memberships"].get(membership_id)
        if not row:
            return None
        return MembershipRecord(**self._touch(row, data))

    async def delete_membership(self, membership_id: str) -> bool:
        return self._tables["memberships"].pop(membership_id, None) is not None

    # ---
    # Services
    # ---
    async def create_service(self, data: Dict) -> ServiceRecord:
        row = self._new_row(
            "services",
            data,
            updatedAt=self._clock(),
            status="operational",
            order=0,
            isPublic=True,
            uptimePercentage=100.0,
        )
        return ServiceRecord(**row)

    async def get_service(self, service_id: str) -> Optional[ServiceRecord]:
        row = self._tables["services"].get(service_id)
        return ServiceRecord(**row) if row else None

    async def list_services(
        self,
        organization_id: str,
        public_only: bool = False,
        service_ids: Optional[List[str]] = None,
    ) -> List[ServiceRecord]:
        rows = [row for row in self._rows("services") if row["organizationId"] == organization_id]
        if public_only:
            rows = [row for row in rows if row["isPublic"]]
        if service_ids is not None:
            wanted = set(service_ids)
            rows = [row for row in rows if row["id"] in wanted]
        rows.sort(key=lambda row: (row["order"], row["name"]))
        return [ServiceRecord(**row) for row in rows]

    async def update_service(self, service_id: str, data: Dict) -> Optional[ServiceRecord]:
        row = self._tables["services"].get(service_id)
        if not row:
            return None
        return ServiceRecord(**self._touch(row, data))

    async def delete_service(self, service_id: str) -> bool:
        if self._tables["services"].pop(service_id, None) is None:
            return False
        for table in ("status_logs", "incident_services"):
            for row_id, row in list(self._tables[table].items()):
                if row["serviceId"] == service_id:
                    del self._tables[table][row_id]
        return True

    # ---
    # Service status log
    # ---
    async def create_status_log(self, data: Dict) -> StatusLogRecord:
        row = self._new_row("status_logs", data, oldStatus=None, changedBy=None)
        return self._status_log(row)

    async def list_status_logs(
        self,
        organization_id: str,
        limit: int = 50,
        offset: int = 0,
        service_id: Optional[str] = None,
    ) -> List[StatusLogRecord]:
        rows = [row for row in self._rows("status_logs") if row["organizationId"] == organization_id]
        if service_id:
            rows = [row for row in rows if row["serviceId"] == service_id]
        rows.sort(key=lambda row: (row["createdAt"], row["_seq"]), reverse=True)
        return [self._status_log(row) for row in rows[offset:offset + limit]]

    # ---
    # Incidents
    # ---
    async def create_incident(self, data: Dict) -> IncidentRecord:
        now = self._clock()
        row = self._new_row(
            "incidents",
            data,
            updatedAt=now,
            startedAt=now,
            status="investigating",
            severity="minor",
            type="incident",
            isPublic=True,
            notifySubscribers=True,
            resolvedAt=None,
            scheduledFor=None,
            scheduledUntil=None,
        )
        return self._incident(row)

    async def get_incident(self, incident_id: str) -> Optional[IncidentRecord]:
        row = self._tables["incidents"].get(incident_id)
        return self._incident(row) if row else None

    def _matching_incidents(self, organization_id: str, query: IncidentQuery) -> List[dict]:
        rows = [row for row in self._rows("incidents") if row["organizationId"] == organization_id]
        if query.statuses:
            rows = [row for row in rows if row["status"] in query.statuses]
        if query.unresolved_only:
            rows = [row for row in rows if row["status"] != "resolved"]
        if query.incident_type:
            rows = [row for row in rows if row["type"] == query.incident_type]
        if query.public_only:
            rows = [row for row in rows if row["isPublic"]]
        if query.started_since:
            rows = [row for row in rows if row["startedAt"] >= query.started_since]
        if query.scheduled_from:
            rows = [row for row in rows if row.get("scheduledFor") and row["scheduledFor"] >= query.scheduled_from]
        return rows

    async def list_incidents(self, organization_id: str, query: IncidentQuery) -> List[IncidentRecord]:
        rows = self._matching_incidents(organization_id, query)
        rows.sort(key=lambda row: (row.get(query.order_by) or row["createdAt"], row["_seq"]), reverse=query.descending)
        end = query.offset + query.limit if query.limit is not None else None
        return [self._incident(row) for row in rows[query.offset:end]]

    async def count_incidents(self, organization_id: str, query: IncidentQuery) -> int:
        return len(self._matching_incidents(organization_id, query))

    async def update_incident(self, incident_id: str, data: Dict) -> Optional[IncidentRecord]:
        row = self._tables["incidents"].get(incident_id)
        if not row:
            return None
        return self._incident(self._touch(row, data))

    async def delete_incident(self, incident_id: str) -> bool:
        if self._tables["incidents"].pop(incident_id, None) is None:
            return False
        for table in ("incident_updates", "incident_services"):
            for row_id, row in list(self._tables[table].items()):
                if row["incidentId"] == incident_id:
                    del self._tables[table][row_id]
        return True

    async def replace_incident_services(self, incident_id: str, service_ids: List[str]) -> None:
        for row_id, row in list(self._tables["incident_services"].items()):
            if row["incidentId"] == incident_id:
                del self._tables["incident_services"][row_id]
        for service_id in dict.fromkeys(service_ids):
            self._new_row("incident_services", {"incidentId": incident_id, "serviceId": service_id})

    async def list_service_incidents(self, service_id: str, unresolved_only: bool = False) -> List[IncidentRecord]:
        incident_ids = [
            link["incidentId"] for link in self._rows("incident_services") if link["serviceId"] == service_id
        ]
        rows = [self._tables["incidents"][incident_id] for incident_id in incident_ids]
        if unresolved_only:
            rows = [row for row in rows if row["status"] != "resolved"]
        rows.sort(key=lambda row: (row["startedAt"], row["_seq"]), reverse=True)
        return [self._incident(row) for row in rows]

    # ---
    # Incident updates
    # ---
    async def create_incident_update(self, data: Dict) -> IncidentUpdateRecord:
        row = self._new_row("incident_updates", data, isPublic=True, notifySubscribers=True, createdBy=None)
        return IncidentUpdateRecord(**row)

    async def list_incident_updates(
        self,
        incident_id: str,
        public_only: bool = False,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[IncidentUpdateRecord]:
        rows = [row for row in self._rows("incident_updates") if row["incidentId"] == incident_id]
        if public_only:
            rows = [row for row in rows if row["isPublic"]]
        rows.sort(key=lambda row: (row["createdAt"], row["_seq"]), reverse=newest_first)
        if limit is not None:
            rows = rows[:limit]
        return [IncidentUpdateRecord(**row) for row in rows]

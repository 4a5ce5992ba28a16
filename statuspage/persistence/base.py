# ---
# File: statuspage/persistence/base.py
# Purpose: The persistence contract consumed by the core, and the timeout
#          guard every adapter wraps its I/O in
# ---

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncContextManager, Awaitable, Dict, List, Optional, TypeVar

from statuspage.errors import TransientError
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


async def with_timeout(awaitable: Awaitable[T], timeout: Optional[float], operation: str = "store call") -> T:
    """
    Await `awaitable`, turning a timeout into a retriable TransientError.
    Nothing is committed by the caller when this raises.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("[STORE] %s timed out after %.1fs", operation, timeout)
        raise TransientError() from None


class Store(ABC):
    """
    CRUD and filtered queries over the status page entities.

    Grouped writes go through `transaction()`: the yielded store sees the
    work in progress and everything is discarded if the block raises.
    Cascades are explicit: deleting a service removes its status log and
    incident links, deleting an incident removes its updates and links,
    deleting an organization removes everything it owns.
    """

    # --- lifecycle ---
    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    @abstractmethod
    async def ping(self) -> bool: ...

    @abstractmethod
    def transaction(self) -> AsyncContextManager["Store"]: ...

    # --- users ---
    @abstractmethod
    async def create_user(self, data: Dict) -> UserRecord: ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abstractmethod
    async def update_user(self, user_id: str, data: Dict) -> Optional[UserRecord]: ...

    # --- organizations ---
    @abstractmethod
    async def create_organization(self, data: Dict) -> OrganizationRecord: ...

    @abstractmethod
    async def get_organization(self, organization_id: str) -> Optional[OrganizationRecord]: ...

    @abstractmethod
    async def get_organization_by_slug(self, slug: str) -> Optional[OrganizationRecord]: ...

    @abstractmethod
    async def get_organization_by_access_code(self, access_code: str) -> Optional[OrganizationRecord]: ...

    @abstractmethod
    async def list_owned_organizations(self, user_id: str) -> List[OrganizationRecord]: ...

    @abstractmethod
    async def update_organization(self, organization_id: str, data: Dict) -> Optional[OrganizationRecord]: ...

    @abstractmethod
    async def delete_organization(self, organization_id: str) -> bool: ...

    # --- memberships ---
    @abstractmethod
    async def create_membership(self, data: Dict) -> MembershipRecord: ...

    @abstractmethod
    async def get_membership(self, membership_id: str) -> Optional[MembershipRecord]: ...

    @abstractmethod
    async def find_membership(self, user_id: str, organization_id: str) -> Optional[MembershipRecord]: ...

    @abstractmethod
    async def list_memberships(self, organization_id: str, active_only: bool = False) -> List[MembershipRecord]: ...

    @abstractmethod
    async def list_user_memberships(self, user_id: str, active_only: bool = True) -> List[MembershipRecord]: ...

    @abstractmethod
    async def update_membership(self, membership_id: str, data: Dict) -> Optional[MembershipRecord]: ...

    @abstractmethod
    async def delete_membership(self, membership_id: str) -> bool: ...

    # --- services ---
    @abstractmethod
    async def create_service(self, data: Dict) -> ServiceRecord: ...

    @abstractmethod
    async def get_service(self, service_id: str) -> Optional[ServiceRecord]: ...

    @abstractmethod
    async def list_services(
        self,
        organization_id: str,
        public_only: bool = False,
        service_ids: Optional[List[str]] = None,
    ) -> List[ServiceRecord]:
        """Ordered by `order`, then name."""

    @abstractmethod
    async def update_service(self, service_id: str, data: Dict) -> Optional[ServiceRecord]: ...

    @abstractmethod
    async def delete_service(self, service_id: str) -> bool: ...

    # --- service status log (append-only) ---
    @abstractmethod
    async def create_status_log(self, data: Dict) -> StatusLogRecord: ...

    @abstractmethod
    async def list_status_logs(
        self,
        organization_id: str,
        limit: int = 50,
        offset: int = 0,
        service_id: Optional[str] = None,
    ) -> List[StatusLogRecord]:
        """Newest first, with `serviceName` filled in."""

    # --- incidents ---
    @abstractmethod
    async def create_incident(self, data: Dict) -> IncidentRecord: ...

    @abstractmethod
    async def get_incident(self, incident_id: str) -> Optional[IncidentRecord]: ...

    @abstractmethod
    async def list_incidents(self, organization_id: str, query: IncidentQuery) -> List[IncidentRecord]: ...

    @abstractmethod
    async def count_incidents(self, organization_id: str, query: IncidentQuery) -> int: ...

    @abstractmethod
    async def update_incident(self, incident_id: str, data: Dict) -> Optional[IncidentRecord]: ...

    @abstractmethod
    async def delete_incident(self, incident_id: str) -> bool: ...

    @abstractmethod
    async def replace_incident_services(self, incident_id: str, service_ids: List[str]) -> None:
        """Drop every association of the incident, then insert `service_ids`."""

    @abstractmethod
    async def list_service_incidents(self, service_id: str, unresolved_only: bool = False) -> List[IncidentRecord]: ...

    # --- incident updates (append-only) ---
    @abstractmethod
    async def create_incident_update(self, data: Dict) -> IncidentUpdateRecord: ...

    @abstractmethod
    async def list_incident_updates(
        self,
        incident_id: str,
        public_only: bool = False,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[IncidentUpdateRecord]: ...

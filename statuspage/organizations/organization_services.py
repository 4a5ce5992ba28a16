# ---
# File: statuspage/organizations/organization_services.py
# Purpose: Organization creation (slug and access code uniqueness, owner
#          membership), dashboard stats and the member roster
# ---

import logging
import secrets
from typing import Dict, List

from statuspage.auth.access import ROLE_ADMIN
from statuspage.errors import ConflictError, StatusPageError
from statuspage.persistence.base import Store
from statuspage.persistence.records import IncidentQuery, OrganizationRecord, UserRecord
from statuspage.utils.status_utils import IncidentType
from statuspage.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

ACCESS_CODE_ATTEMPTS = 10


def generate_access_code() -> str:
    """Seven digits, never starting with 0."""
    return str(1_000_000 + secrets.randbelow(9_000_000))


async def unique_access_code(store: Store) -> str:
    for _ in range(ACCESS_CODE_ATTEMPTS):
        code = generate_access_code()
        if not await store.get_organization_by_access_code(code):
            return code
    logger.error(f"[ORG] No free access code after {ACCESS_CODE_ATTEMPTS} attempts")
    raise StatusPageError("Unable to generate unique access code. Please try again.")


async def create_organization(store: Store, owner: UserRecord, data: Dict) -> OrganizationRecord:
    if await store.get_organization_by_slug(data["slug"]):
        raise ConflictError("Organization slug is already taken", field="slug")
    payload = {key: value for key, value in data.items() if value is not None}
    payload.update({"ownerId": owner.id, "accessCode": await unique_access_code(store)})

    async with store.transaction() as tx:
        organization = await tx.create_organization(payload)
        await tx.create_membership(
            {
                "userId": owner.id,
                "organizationId": organization.id,
                "role": ROLE_ADMIN,
                "status": "active",
                "joinedAt": utc_now(),
            }
        )
    logger.info(f"[ORG] Created {organization.id} ({organization.slug}) owned by {owner.id}")
    return organization


async def organization_stats(store: Store, organization: OrganizationRecord) -> Dict[str, int]:
    services = await store.list_services(organization.id)
    active_incidents = await store.count_incidents(organization.id, IncidentQuery(unresolved_only=True))
    upcoming_maintenance = await store.count_incidents(
        organization.id,
        IncidentQuery(incident_type=IncidentType.MAINTENANCE.value, scheduled_from=utc_now()),
    )
    members = {membership.userId for membership in await store.list_memberships(organization.id, active_only=True)}
    members.add(organization.ownerId)
    return {
        "serviceCount": len(services),
        "activeIncidentCount": active_incidents,
        "upcomingMaintenanceCount": upcoming_maintenance,
        "memberCount": len(members),
    }


def _person(user: UserRecord) -> Dict:
    return {
        "id": user.id,
        "firstName": user.firstName,
        "lastName": user.lastName,
        "email": user.email,
        "lastLoginAt": user.lastLoginAt,
    }


async def list_members(store: Store, organization: OrganizationRecord) -> List[Dict]:
    """Owner first (always admin), then memberships by join date."""
    roster = []
    owner = await store.get_user(organization.ownerId)
    if owner:
        roster.append(
            {
                "id": None,
                "user": _person(owner),
                "role": ROLE_ADMIN,
                "status": "active",
                "isOwner": True,
                "joinedAt": organization.createdAt,
            }
        )
    memberships = await store.list_memberships(organization.id)
    memberships.sort(key=lambda membership: membership.joinedAt or membership.invitedAt or organization.createdAt)
    for membership in memberships:
        if membership.userId == organization.ownerId:
            continue
        user = await store.get_user(membership.userId)
        if not user:
            continue
        roster.append(
            {
                "id": membership.id,
                "user": _person(user),
                "role": membership.role,
                "status": membership.status,
                "isOwner": False,
                "invitedBy": membership.invitedBy,
                "joinedAt": membership.joinedAt,
            }
        )
    return roster

# ---
# File: organizations/routes.py
# Purpose: FastAPI routes for organizations, their members and joining by access code
# ---

import logging

from fastapi import APIRouter, Depends, Path, status

from statuspage.auth.access import ROLE_ADMIN, get_current_user, require_organization_role
from statuspage.deps import get_store
from statuspage.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from statuspage.organizations.models import (
    JoinOrganizationRequest,
    MemberInviteRequest,
    MemberRoleRequest,
    OrganizationCreateRequest,
    OrganizationRead,
    OrganizationUpdateRequest,
)
from statuspage.organizations.organization_services import (
    create_organization,
    list_members,
    organization_stats,
)
from statuspage.persistence.base import Store
from statuspage.persistence.records import UserRecord
from statuspage.utils.responses import success_response
from statuspage.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/organizations", tags=["Organizations"])


def _organization(organization) -> dict:
    return OrganizationRead.model_validate(organization).model_dump(mode="json")


# ---
# Every organization the caller can open: owned ones first, then active
# memberships, each once.
# ---
@router.get("")
async def list_organizations(user: UserRecord = Depends(get_current_user), store: Store = Depends(get_store)):
    organizations = {}
    for organization in await store.list_owned_organizations(user.id):
        organizations[organization.id] = {**_organization(organization), "role": ROLE_ADMIN, "isOwner": True}

    for membership in await store.list_user_memberships(user.id, active_only=True):
        if membership.organizationId in organizations:
            continue
        organization = await store.get_organization(membership.organizationId)
        if organization:
            organizations[organization.id] = {
                **_organization(organization),
                "role": membership.role,
                "isOwner": False,
                "joinedAt": membership.joinedAt,
            }
    return success_response({"organizations": list(organizations.values())})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create(
    data: OrganizationCreateRequest,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization = await create_organization(store, user, data.model_dump(mode="json"))
    return success_response({"organization": _organization(organization)}, "Organization created successfully")


# Registered before /{organizationId} so "join" is never taken for an id.
@router.post("/join", status_code=status.HTTP_201_CREATED)
async def join(
    data: JoinOrganizationRequest,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization = await store.get_organization_by_slug(data.slug.strip())
    if not organization or not organization.isPublic or organization.accessCode != data.accessCode.strip():
        logger.warning(f"[ORG] Join rejected for {user.id} on slug {data.slug}")
        raise NotFoundError("Organization not found or invalid access code")
    if organization.ownerId == user.id or await store.find_membership(user.id, organization.id):
        raise ConflictError("You are already a member of this organization")

    await store.create_membership(
        {
            "userId": user.id,
            "organizationId": organization.id,
            "role": "member",
            "status": "active",
            "joinedAt": utc_now(),
        }
    )
    logger.info(f"[ORG] User {user.id} joined {organization.id}")
    return success_response(
        {"organization": {"id": organization.id, "name": organization.name, "slug": organization.slug}},
        "Successfully joined organization",
    )


@router.get("/{organizationId}")
async def get_organization(
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, role = await require_organization_role(store, user, organizationId)
    return success_response(
        {
            "organization": _organization(organization),
            "stats": await organization_stats(store, organization),
            "userRole": role,
        }
    )


@router.put("/{organizationId}")
async def update_organization(
    data: OrganizationUpdateRequest,
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    changes = data.model_dump(mode="json", exclude_none=True)
    if changes:
        organization = await store.update_organization(organization.id, changes)
    logger.info(f"[ORG] Updated {organizationId}: {sorted(changes)}")
    return success_response({"organization": _organization(organization)}, "Organization updated successfully")


@router.delete("/{organizationId}")
async def delete_organization(
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId)
    if organization.ownerId != user.id:
        raise AuthorizationError("Only organization owner can delete the organization")
    await store.delete_organization(organization.id)
    logger.info(f"[ORG] Deleted {organization.id} ({organization.slug})")
    return success_response(message="Organization deleted successfully")


# ---
# Members
# ---
@router.get("/{organizationId}/members")
async def members(
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId)
    return success_response({"members": await list_members(store, organization)})


@router.post("/{organizationId}/members", status_code=status.HTTP_201_CREATED)
async def add_member(
    data: MemberInviteRequest,
    organizationId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    invitee = await store.get_user_by_email(data.email.lower())
    if not invitee:
        raise NotFoundError("User with this email not found")
    if invitee.id == organization.ownerId or await store.find_membership(invitee.id, organization.id):
        raise ConflictError("User is already a member of this organization")

    now = utc_now()
    membership = await store.create_membership(
        {
            "userId": invitee.id,
            "organizationId": organization.id,
            "role": data.role,
            "status": "active",
            "invitedBy": user.id,
            "invitedAt": now,
            "joinedAt": now,
        }
    )
    logger.info(f"[ORG] {user.id} added {invitee.id} to {organization.id} as {data.role}")
    return success_response({"member": membership.model_dump(mode="json")}, "Member added successfully")


async def _member_of(store: Store, organization_id: str, member_id: str):
    membership = await store.get_membership(member_id)
    if not membership or membership.organizationId != organization_id:
        raise NotFoundError("Member not found")
    return membership


@router.put("/{organizationId}/members/{memberId}")
async def change_member_role(
    data: MemberRoleRequest,
    organizationId: str = Path(...),
    memberId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    membership = await _member_of(store, organization.id, memberId)
    if membership.userId == organization.ownerId:
        raise ValidationError.for_field("role", "The owner's role cannot be changed")
    membership = await store.update_membership(membership.id, {"role": data.role})
    return success_response({"member": membership.model_dump(mode="json")}, "Member role updated successfully")


@router.delete("/{organizationId}/members/{memberId}")
async def remove_member(
    organizationId: str = Path(...),
    memberId: str = Path(...),
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    organization, _ = await require_organization_role(store, user, organizationId, admin=True)
    membership = await _member_of(store, organization.id, memberId)
    if membership.userId == organization.ownerId:
        raise ValidationError.for_field("memberId", "The owner cannot be removed")
    await store.delete_membership(membership.id)
    logger.info(f"[ORG] Removed membership {membership.id} from {organization.id}")
    return success_response(message="Member removed successfully")

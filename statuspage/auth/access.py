# ---
# File: statuspage/auth/access.py
# Purpose: Who is calling, and what may they do in an organization.
#          Owners act as admins; other users need an active membership.
# ---

import logging
from typing import Optional, Tuple

from fastapi import Depends, Request

from statuspage.auth.tokens import decode_access_token, extract_bearer_token
from statuspage.deps import get_store
from statuspage.errors import AuthenticationError, AuthorizationError, NotFoundError
from statuspage.persistence.base import Store
from statuspage.persistence.records import OrganizationRecord, UserRecord

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
ROLES = (ROLE_ADMIN, ROLE_MEMBER)


async def authenticate_token(store: Store, token: str) -> UserRecord:
    user_id = decode_access_token(token)
    user = await store.get_user(user_id)
    if not user or not user.isActive:
        raise AuthenticationError("Invalid or expired token")
    return user


async def get_current_user(request: Request, store: Store = Depends(get_store)) -> UserRecord:
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise AuthenticationError("Access token is required")
    return await authenticate_token(store, token)


async def resolve_role(store: Store, user_id: str, organization_id: str) -> Optional[str]:
    organization = await store.get_organization(organization_id)
    if not organization:
        return None
    if organization.ownerId == user_id:
        return ROLE_ADMIN
    membership = await store.find_membership(user_id, organization_id)
    if membership and membership.status == "active":
        return membership.role
    return None


async def require_organization_role(
    store: Store,
    user: UserRecord,
    organization_id: str,
    admin: bool = False,
) -> Tuple[OrganizationRecord, str]:
    organization = await store.get_organization(organization_id)
    if not organization:
        raise NotFoundError("Organization not found")
    role = await resolve_role(store, user.id, organization.id)
    if role is None:
        logger.warning(f"[AUTH] User {user.id} denied access to organization {organization.id}")
        raise AuthorizationError("Access to this organization is denied")
    if admin and role != ROLE_ADMIN:
        raise AuthorizationError("Organization admin privileges required")
    return organization, role

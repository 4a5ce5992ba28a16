# ---
# File: auth/routes.py
# Purpose: FastAPI routes for registration, login, profile and token refresh
# ---

import logging

from fastapi import APIRouter, Depends, status

from statuspage.auth.access import get_current_user
from statuspage.auth.models import (
    ChangePasswordRequest,
    LoginRequest,
    OrganizationBrief,
    ProfileUpdateRequest,
    RegisterRequest,
    UserRead,
)
from statuspage.auth.tokens import create_access_token
from statuspage.deps import get_store
from statuspage.errors import AuthenticationError, ConflictError, ValidationError
from statuspage.persistence.base import Store
from statuspage.persistence.records import UserRecord
from statuspage.utils.hash import hash_password, verify_password
from statuspage.utils.responses import success_response
from statuspage.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _user(user: UserRecord) -> dict:
    return UserRead.model_validate(user).model_dump(mode="json")


# ---
# Create an account and sign it in straight away.
# ---
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, store: Store = Depends(get_store)):
    logger.info(f"[REGISTER] Received registration for {data.email}")
    if await store.get_user_by_email(data.email.lower()):
        logger.warning(f"[REGISTER] Email {data.email} already registered")
        raise ConflictError("User with this email already exists", field="email")

    user = await store.create_user(
        {
            "email": data.email.lower(),
            "firstName": data.firstName.strip(),
            "lastName": data.lastName.strip(),
            "passwordHash": hash_password(data.password),
        }
    )
    logger.info(f"[REGISTER] User {user.id} created")
    return success_response(
        {"user": _user(user), "token": create_access_token(user)},
        "User registered successfully",
    )


# ---
# Unknown email and wrong password get the same answer.
# ---
@router.post("/login")
async def login(data: LoginRequest, store: Store = Depends(get_store)):
    logger.info(f"[LOGIN] Received login request for {data.email}")
    user = await store.get_user_by_email(data.email.lower())
    if not user or not verify_password(data.password, user.passwordHash):
        logger.warning(f"[LOGIN] Invalid credentials for {data.email}")
        raise AuthenticationError("Invalid email or password")
    if not user.isActive:
        raise AuthenticationError("Account is deactivated")

    user = await store.update_user(user.id, {"lastLoginAt": utc_now()})
    logger.info(f"[LOGIN] User {user.id} authenticated")
    return success_response({"user": _user(user), "token": create_access_token(user)}, "Login successful")


@router.get("/me")
async def me(user: UserRecord = Depends(get_current_user), store: Store = Depends(get_store)):
    owned = await store.list_owned_organizations(user.id)
    memberships = []
    for membership in await store.list_user_memberships(user.id, active_only=True):
        organization = await store.get_organization(membership.organizationId)
        if organization:
            memberships.append(
                {
                    "id": membership.id,
                    "role": membership.role,
                    "status": membership.status,
                    "organization": OrganizationBrief.model_validate(organization).model_dump(),
                }
            )
    profile = {
        **_user(user),
        "ownedOrganizations": [OrganizationBrief.model_validate(org).model_dump() for org in owned],
        "memberships": memberships,
    }
    return success_response({"user": profile})


@router.put("/me")
async def update_profile(
    data: ProfileUpdateRequest,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    changes = {key: value.strip() for key, value in data.model_dump(exclude_none=True).items()}
    if changes:
        user = await store.update_user(user.id, changes)
    return success_response({"user": _user(user)}, "Profile updated successfully")


@router.put("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    if not verify_password(data.currentPassword, user.passwordHash):
        raise ValidationError.for_field("currentPassword", "Current password is incorrect")
    await store.update_user(user.id, {"passwordHash": hash_password(data.newPassword)})
    logger.info(f"[AUTH] Password changed for {user.id}")
    return success_response(message="Password changed successfully")


@router.post("/refresh")
async def refresh(user: UserRecord = Depends(get_current_user)):
    return success_response({"token": create_access_token(user)})

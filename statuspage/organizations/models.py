# organizations/models.py

from datetime import datetime
from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, EmailStr, Field

from statuspage.auth.access import ROLE_ADMIN, ROLE_MEMBER

SLUG_PATTERN = r"^[a-z0-9-]+$"
COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"
ROLE_PATTERN = f"^({ROLE_ADMIN}|{ROLE_MEMBER})$"


class OrganizationCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=3, max_length=50, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)
    websiteUrl: Optional[AnyHttpUrl] = None
    logoUrl: Optional[AnyHttpUrl] = None
    primaryColor: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    timezone: Optional[str] = None
    isPublic: bool = True


class OrganizationUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    websiteUrl: Optional[AnyHttpUrl] = None
    logoUrl: Optional[AnyHttpUrl] = None
    primaryColor: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    timezone: Optional[str] = None
    isPublic: Optional[bool] = None


class MemberInviteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    role: str = Field(default=ROLE_MEMBER, pattern=ROLE_PATTERN)


class MemberRoleRequest(BaseModel):
    role: str = Field(pattern=ROLE_PATTERN)


class JoinOrganizationRequest(BaseModel):
    slug: str = Field(min_length=1)
    accessCode: str = Field(min_length=1)


class OrganizationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    websiteUrl: Optional[str] = None
    logoUrl: Optional[str] = None
    primaryColor: str
    timezone: str
    isPublic: bool
    accessCode: Optional[str] = None
    ownerId: str
    createdAt: datetime
    updatedAt: datetime


class PublicOrganizationRead(BaseModel):
    # Access codes and ownership stay private.
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    websiteUrl: Optional[str] = None
    logoUrl: Optional[str] = None
    primaryColor: str
    timezone: str

# ---
# File: statuspage/persistence/records.py
# Purpose: Plain records exchanged between the core and any Store adapter
# ---

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class UserRecord(Record):
    id: str
    email: str
    firstName: str
    lastName: str
    passwordHash: str
    isActive: bool = True
    lastLoginAt: Optional[datetime] = None
    createdAt: datetime


class OrganizationRecord(Record):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    websiteUrl: Optional[str] = None
    logoUrl: Optional[str] = None
    primaryColor: str = "#3b82f6"
    timezone: str = "UTC"
    isPublic: bool = True
    accessCode: Optional[str] = None
    ownerId: str
    createdAt: datetime
    updatedAt: datetime


class MembershipRecord(Record):
    id: str
    userId: str
    organizationId: str
    role: str = "member"
    status: str = "active"
    invitedBy: Optional[str] = None
    invitedAt: Optional[datetime] = None
    joinedAt: Optional[datetime] = None


class ServiceRecord(Record):
    id: str
    organizationId: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    # Kept as a raw string so a corrupted row still loads
    status: str = "operational"
    order: int = 0
    isPublic: bool = True
    uptimePercentage: float = 100.0
    createdAt: datetime
    updatedAt: datetime


class StatusLogRecord(Record):
    id: str
    serviceId: str
    organizationId: str
    oldStatus: Optional[str] = None
    newStatus: str
    changedBy: Optional[str] = None
    createdAt: datetime
    serviceName: Optional[str] = None


class IncidentRecord(Record):
    id: str
    organizationId: str
    title: str
    description: Optional[str] = None
    status: str = "investigating"
    severity: str = "minor"
    type: str = "incident"
    createdBy: str
    startedAt: datetime
    resolvedAt: Optional[datetime] = None
    scheduledFor: Optional[datetime] = None
    scheduledUntil: Optional[datetime] = None
    isPublic: bool = True
    notifySubscribers: bool = True
    createdAt: datetime
    updatedAt: datetime
    serviceIds: List[str] = Field(default_factory=list)


class IncidentUpdateRecord(Record):
    id: str
    incidentId: str
    title: str
    description: str
    status: str
    isPublic: bool = True
    notifySubscribers: bool = True
    createdBy: Optional[str] = None
    createdAt: datetime


class IncidentQuery(BaseModel):
    """Filters understood by Store.list_incidents / Store.count_incidents."""

    statuses: Optional[List[str]] = None
    unresolved_only: bool = False
    incident_type: Optional[str] = None
    public_only: bool = False
    started_since: Optional[datetime] = None
    scheduled_from: Optional[datetime] = None
    order_by: str = "startedAt"
    descending: bool = True
    limit: Optional[int] = None
    offset: int = 0

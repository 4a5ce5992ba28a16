# services/models.py

from datetime import datetime
from typing import List, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field

from statuspage.utils.status_utils import ServiceStatus


class ServiceCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    url: Optional[AnyHttpUrl] = None
    status: ServiceStatus = ServiceStatus.OPERATIONAL
    order: int = Field(default=0, ge=0)
    isPublic: bool = True


class ServiceUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    url: Optional[AnyHttpUrl] = None
    status: Optional[ServiceStatus] = None
    order: Optional[int] = Field(default=None, ge=0)
    isPublic: Optional[bool] = None


class ServiceStatusRequest(BaseModel):
    status: ServiceStatus


class ServiceUptimeRequest(BaseModel):
    uptimePercentage: float


class ServiceReorderRequest(BaseModel):
    serviceIds: List[str]


class IncidentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    status: str
    severity: str
    type: str
    startedAt: datetime
    resolvedAt: Optional[datetime] = None


class ServiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organizationId: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    status: str
    order: int
    isPublic: bool
    uptimePercentage: float
    createdAt: datetime
    updatedAt: datetime
    incidents: List[IncidentSummary] = []


class StatusChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    serviceId: str
    serviceName: Optional[str] = None
    organizationId: str
    oldStatus: Optional[str] = None
    newStatus: str
    changedBy: Optional[str] = None
    createdAt: datetime


def to_payload(request: BaseModel, exclude_unset: bool = False) -> dict:
    """Request model -> plain dict for the store (enums as values, urls as strings)."""
    return request.model_dump(mode="json", exclude_unset=exclude_unset)

# incidents/models.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from statuspage.utils.status_utils import IncidentSeverity, IncidentStatus, IncidentType


class IncidentCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: IncidentStatus = IncidentStatus.INVESTIGATING
    severity: IncidentSeverity = IncidentSeverity.MINOR
    type: IncidentType = IncidentType.INCIDENT
    serviceIds: List[str] = Field(min_length=1)
    scheduledFor: Optional[datetime] = None
    scheduledUntil: Optional[datetime] = None
    isPublic: bool = True
    notifySubscribers: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.scheduledFor and self.scheduledUntil and self.scheduledUntil < self.scheduledFor:
            raise ValueError("scheduledUntil must not be before scheduledFor")
        return self


class IncidentPatchRequest(BaseModel):
    # Status only moves through posted updates.
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    severity: Optional[IncidentSeverity] = None
    serviceIds: Optional[List[str]] = Field(default=None, min_length=1)
    scheduledFor: Optional[datetime] = None
    scheduledUntil: Optional[datetime] = None
    isPublic: Optional[bool] = None
    notifySubscribers: Optional[bool] = None


class IncidentUpdateCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    status: IncidentStatus
    isPublic: bool = True
    notifySubscribers: bool = True


class AffectedService(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    status: str


class IncidentUpdateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    incidentId: str
    title: str
    description: str
    status: str
    isPublic: bool
    notifySubscribers: bool
    createdBy: Optional[str] = None
    createdAt: datetime


class IncidentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organizationId: str
    title: str
    description: Optional[str] = None
    status: str
    severity: str
    type: str
    createdBy: str
    startedAt: datetime
    resolvedAt: Optional[datetime] = None
    scheduledFor: Optional[datetime] = None
    scheduledUntil: Optional[datetime] = None
    isPublic: bool
    notifySubscribers: bool
    createdAt: datetime
    updatedAt: datetime
    serviceIds: List[str] = []
    affectedServices: List[AffectedService] = []
    latestUpdate: Optional[IncidentUpdateRead] = None
    updates: Optional[List[IncidentUpdateRead]] = None


def incident_read(incident, services=(), updates=None, latest_update=None) -> dict:
    """
    Incident record -> response dict. `services` may hold services outside
    the incident; only the affected ones are attached.
    """
    by_id = {service.id: service for service in services}
    affected = [by_id[service_id] for service_id in incident.serviceIds if service_id in by_id]
    if latest_update is None and updates:
        latest_update = updates[-1]
    read = IncidentRead.model_validate(
        {
            **incident.model_dump(),
            "affectedServices": [AffectedService.model_validate(service) for service in affected],
            "latestUpdate": IncidentUpdateRead.model_validate(latest_update) if latest_update else None,
            "updates": [IncidentUpdateRead.model_validate(update) for update in updates] if updates is not None else None,
        }
    )
    return read.model_dump(mode="json", exclude_none=False)

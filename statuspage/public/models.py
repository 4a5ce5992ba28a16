# public/models.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class PublicService(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    status: str
    order: int


class PublicServiceRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    status: str


class PublicUpdate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    status: str
    createdAt: datetime


class PublicIncident(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    status: str
    severity: str
    type: str
    startedAt: datetime
    resolvedAt: Optional[datetime] = None
    scheduledFor: Optional[datetime] = None
    scheduledUntil: Optional[datetime] = None
    affectedServices: List[PublicServiceRef] = []
    latestUpdate: Optional[PublicUpdate] = None
    updates: Optional[List[PublicUpdate]] = None

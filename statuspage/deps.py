# ---
# File: statuspage/deps.py
# Purpose: FastAPI dependencies handing out the per-app collaborators that
#          create_app() puts on app.state
# ---

from fastapi import Request

from statuspage.incidents.incident_services import IncidentService
from statuspage.persistence.base import Store
from statuspage.services.service_manager import ServiceManager
from statuspage.websocket.notifier import RealtimeNotifier
from statuspage.websocket.topic_registry import TopicRegistry


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_registry(request: Request) -> TopicRegistry:
    return request.app.state.registry


def get_notifier(request: Request) -> RealtimeNotifier:
    return request.app.state.notifier


def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.service_manager


def get_incident_service(request: Request) -> IncidentService:
    return request.app.state.incident_service

# ---
# File: statuspage/websocket/notifier.py
# Purpose: Best-effort fan-out of core events to realtime topics.
#          Publishing never raises into the request that triggered it.
# ---

import asyncio
import logging
from typing import Optional

from fastapi.encoders import jsonable_encoder

from statuspage import config
from statuspage.utils.status_utils import status_badge
from statuspage.websocket.topic_registry import TopicRegistry, organization_topic, status_page_topic

logger = logging.getLogger(__name__)

SERVICE_UPDATED = "service-updated"
INCIDENT_CREATED = "incident-created"
INCIDENT_UPDATED = "incident-updated"
STATUS_CHANGED = "status-changed"


class RealtimeNotifier:
    def __init__(self, registry: TopicRegistry, send_timeout: Optional[float] = None):
        self.registry = registry
        self.send_timeout = config.WS_SEND_TIMEOUT_SECONDS if send_timeout is None else send_timeout

    # ---
    # Deliver one event to every connection currently on `topic`, in order.
    # Slow connections are skipped for this event; broken ones are dropped.
    # Returns the number of connections that received it.
    # ---
    async def publish(self, topic: str, event: str, payload: dict) -> int:
        message = {"event": event, "payload": jsonable_encoder(payload)}
        connections = self.registry.subscribers(topic)
        if not connections:
            return 0

        delivered = 0
        for connection in connections:
            try:
                await asyncio.wait_for(connection.send_json(message), timeout=self.send_timeout)
                delivered += 1
            except asyncio.TimeoutError:
                logger.warning(f"[WS] Send to a subscriber of {topic} timed out, skipping {event}")
            except Exception as e:
                logger.error(f"[WS] Failed to send {event} on {topic}: {e}")
                self.registry.drop(connection)
        logger.info(f"[WS] {event} -> {topic} | Delivered: {delivered}/{len(connections)}")
        return delivered

    async def _safe_publish(self, topic: str, event: str, payload: dict) -> None:
        try:
            await self.publish(topic, event, payload)
        except Exception:
            logger.exception(f"[WS] Publishing {event} to {topic} failed")

    # ---
    # Event catalog
    # ---
    async def service_updated(
        self, organization, service, old_status: Optional[str] = None, was_public: Optional[bool] = None
    ) -> None:
        payload = {
            "serviceId": service.id,
            "organizationId": organization.id,
            "name": service.name,
            "status": service.status,
            "oldStatus": old_status,
            "isPublic": service.isPublic,
        }
        await self._safe_publish(organization_topic(organization.id), SERVICE_UPDATED, payload)
        # A service that just went private is announced once so viewers drop it.
        if service.isPublic or was_public:
            await self._safe_publish(status_page_topic(organization.slug), SERVICE_UPDATED, payload)

    async def incident_created(self, organization, incident, public_service_ids=()) -> None:
        """`public_service_ids` limits the service ids the status page topic sees."""
        payload = {
            "incidentId": incident.id,
            "organizationId": organization.id,
            "title": incident.title,
            "status": incident.status,
            "severity": incident.severity,
            "type": incident.type,
            "serviceIds": incident.serviceIds,
        }
        await self._safe_publish(organization_topic(organization.id), INCIDENT_CREATED, payload)
        if incident.isPublic and incident.notifySubscribers:
            visible = set(public_service_ids)
            public_payload = {**payload, "serviceIds": [sid for sid in incident.serviceIds if sid in visible]}
            await self._safe_publish(status_page_topic(organization.slug), INCIDENT_CREATED, public_payload)

    async def incident_updated(self, organization, incident, update=None, newly_resolved: bool = False) -> None:
        payload = {
            "incidentId": incident.id,
            "organizationId": organization.id,
            "title": incident.title,
            "status": incident.status,
            "newlyResolved": newly_resolved,
            "resolvedAt": incident.resolvedAt,
        }
        if update is not None:
            payload["update"] = {
                "id": update.id,
                "title": update.title,
                "description": update.description,
                "status": update.status,
                "createdAt": update.createdAt,
            }
        await self._safe_publish(organization_topic(organization.id), INCIDENT_UPDATED, payload)

        public_update = update is None or (update.isPublic and update.notifySubscribers)
        if incident.isPublic and incident.notifySubscribers and public_update:
            await self._safe_publish(status_page_topic(organization.slug), INCIDENT_UPDATED, payload)

    async def status_changed(self, organization, overall_status, public_overall_status=None) -> None:
        await self._safe_publish(
            organization_topic(organization.id),
            STATUS_CHANGED,
            {"organizationId": organization.id, "overallStatus": status_badge(overall_status)},
        )
        if public_overall_status is not None:
            await self._safe_publish(
                status_page_topic(organization.slug),
                STATUS_CHANGED,
                {"organizationId": organization.id, "overallStatus": status_badge(public_overall_status)},
            )

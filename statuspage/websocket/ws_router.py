# ---
# File: statuspage/websocket/ws_router.py
# Purpose: WebSocket endpoint for realtime updates. Clients join organization
#          topics (members only) and public status page topics, and receive
#          every event the notifier publishes there.
# ---

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from statuspage.auth.access import authenticate_token, resolve_role
from statuspage.errors import AuthenticationError
from statuspage.persistence.records import UserRecord
from statuspage.websocket.topic_registry import TopicRegistry, organization_topic, status_page_topic

logger = logging.getLogger(__name__)

router = APIRouter()


class SocketSubscriber:
    """A connected client as the registry and notifier see it."""

    def __init__(self, websocket: WebSocket, user: Optional[UserRecord] = None):
        self.websocket = websocket
        self.user = user

    async def send_json(self, message: dict) -> None:
        await self.websocket.send_json(message)

    async def send_event(self, event: str, payload: dict) -> None:
        await self.send_json({"event": event, "payload": payload})

    async def send_error(self, message: str, action: Optional[str] = None) -> None:
        await self.send_event("error", {"message": message, "action": action})


async def handle_message(subscriber: SocketSubscriber, message, store, registry: TopicRegistry) -> None:
    if not isinstance(message, dict) or not isinstance(message.get("action"), str):
        await subscriber.send_error("Messages must be JSON objects with an 'action'")
        return
    action = message["action"]

    if action == "ping":
        await subscriber.send_event("pong", {})
        return

    if action in ("join-organization", "leave-organization"):
        organization_id = message.get("organizationId")
        if not organization_id:
            await subscriber.send_error("organizationId is required", action)
            return
        topic = organization_topic(organization_id)
        if action == "leave-organization":
            registry.unsubscribe(subscriber, topic)
            await subscriber.send_event("unsubscribed", {"topic": topic})
            return
        if subscriber.user is None:
            await subscriber.send_error("Authentication required", action)
            return
        if await resolve_role(store, subscriber.user.id, organization_id) is None:
            logger.warning(f"[WS] User {subscriber.user.id} denied {topic}")
            await subscriber.send_error("Access to this organization is denied", action)
            return
        registry.subscribe(subscriber, topic)
        await subscriber.send_event("subscribed", {"topic": topic})
        return

    if action in ("join-status-page", "leave-status-page"):
        slug = message.get("slug")
        if not slug:
            await subscriber.send_error("slug is required", action)
            return
        topic = status_page_topic(slug)
        if action == "leave-status-page":
            registry.unsubscribe(subscriber, topic)
            await subscriber.send_event("unsubscribed", {"topic": topic})
            return
        organization = await store.get_organization_by_slug(slug)
        if not organization or not organization.isPublic:
            await subscriber.send_error("Status page not found", action)
            return
        registry.subscribe(subscriber, topic)
        await subscriber.send_event("subscribed", {"topic": topic})
        return

    await subscriber.send_error(f"Unknown action '{action}'", action)


# ---
# /ws?token=<jwt>. Without a token only status page topics can be joined;
# an invalid token is refused before the handshake completes.
# ---
@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket, token: Optional[str] = Query(None)):
    store = websocket.app.state.store
    registry: TopicRegistry = websocket.app.state.registry

    user = None
    if token:
        try:
            user = await authenticate_token(store, token)
        except AuthenticationError:
            logger.warning("[WS] Rejected connection with an invalid token")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    await websocket.accept()
    subscriber = SocketSubscriber(websocket, user)
    logger.info(f"[WS] Connected: {user.id if user else 'anonymous'}")
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await subscriber.send_error("Invalid JSON")
                continue
            await handle_message(subscriber, message, store, registry)
    except WebSocketDisconnect:
        pass
    finally:
        topics = registry.drop(subscriber)
        logger.info(f"[WS] Disconnected: {user.id if user else 'anonymous'} | Left {len(topics)} topic(s)")

# ---
# File: statuspage/websocket/topic_registry.py
# Purpose: Process-wide registry of realtime topics and the connections
#          subscribed to them. Owned by the app, injected into the notifier.
# ---

import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

ORGANIZATION_TOPIC_PREFIX = "org-"
STATUS_PAGE_TOPIC_PREFIX = "status-"


def organization_topic(organization_id: str) -> str:
    return f"{ORGANIZATION_TOPIC_PREFIX}{organization_id}"


def status_page_topic(slug: str) -> str:
    return f"{STATUS_PAGE_TOPIC_PREFIX}{slug}"


class TopicRegistry:
    """
    Maps topic keys to the connections subscribed to them.

    All mutation happens on the event loop thread and never awaits, so each
    subscribe/unsubscribe is a single uninterrupted step; publishers iterate
    over a snapshot taken by `subscribers()`.
    """

    def __init__(self):
        # dicts used as insertion-ordered sets
        self._topics: Dict[str, Dict[Any, None]] = {}
        self._connections: Dict[Any, Dict[str, None]] = {}

    def subscribe(self, connection: Any, topic: str) -> bool:
        """Join `topic`. Returns False if the connection was already in it."""
        members = self._topics.setdefault(topic, {})
        if connection in members:
            return False
        members[connection] = None
        self._connections.setdefault(connection, {})[topic] = None
        logger.info(f"[WS] Joined {topic} | Subscribers: {len(members)}")
        return True

    def unsubscribe(self, connection: Any, topic: str) -> bool:
        """Leave `topic`. Leaving a topic never joined is a no-op returning False."""
        members = self._topics.get(topic)
        if not members or connection not in members:
            return False
        del members[connection]
        if not members:
            self._topics.pop(topic, None)
        topics = self._connections.get(connection)
        if topics is not None:
            topics.pop(topic, None)
            if not topics:
                self._connections.pop(connection, None)
        logger.info(f"[WS] Left {topic} | Remaining: {len(members)}")
        return True

    def drop(self, connection: Any) -> List[str]:
        """Remove a connection from every topic it joined."""
        topics = list(self._connections.get(connection, {}))
        for topic in topics:
            self.unsubscribe(connection, topic)
        return topics

    def subscribers(self, topic: str) -> List[Any]:
        return list(self._topics.get(topic, {}))

    def topics_for(self, connection: Any) -> List[str]:
        return list(self._connections.get(connection, {}))

    def stats(self) -> dict:
        return {
            "topics": len(self._topics),
            "connections": len(self._connections),
        }

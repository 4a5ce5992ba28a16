import asyncio

from statuspage.websocket.notifier import RealtimeNotifier
from statuspage.websocket.topic_registry import TopicRegistry, organization_topic, status_page_topic


def test_topic_keys():
    assert organization_topic("42") == "org-42"
    assert status_page_topic("acme") == "status-acme"


def test_subscribe_is_idempotent(registry, connection_factory):
    connection = connection_factory()
    assert registry.subscribe(connection, "org-a")
    assert not registry.subscribe(connection, "org-a")
    assert registry.subscribers("org-a") == [connection]
    assert registry.stats() == {"topics": 1, "connections": 1}


def test_unsubscribe_unknown_topic_is_a_no_op(registry, connection_factory):
    assert not registry.unsubscribe(connection_factory(), "org-a")


def test_drop_leaves_every_topic(registry, connection_factory):
    connection, other = connection_factory("c1"), connection_factory("c2")
    registry.subscribe(connection, "org-a")
    registry.subscribe(connection, "status-a")
    registry.subscribe(other, "org-a")

    assert sorted(registry.drop(connection)) == ["org-a", "status-a"]
    assert registry.subscribers("org-a") == [other]
    assert registry.subscribers("status-a") == []
    assert registry.topics_for(connection) == []


async def test_events_stay_in_their_topic(notifier, registry, connection_factory):
    a, b = connection_factory("a"), connection_factory("b")
    registry.subscribe(a, organization_topic("A"))
    registry.subscribe(b, organization_topic("B"))

    delivered = await notifier.publish(organization_topic("A"), "service-updated", {"serviceId": "s1"})

    assert delivered == 1
    assert a.messages == [{"event": "service-updated", "payload": {"serviceId": "s1"}}]
    assert b.messages == []


async def test_unsubscribed_connection_gets_nothing(notifier, registry, connection_factory):
    connection = connection_factory()
    topic = organization_topic("A")
    registry.subscribe(connection, topic)
    registry.unsubscribe(connection, topic)

    assert await notifier.publish(topic, "incident-created", {}) == 0
    assert connection.messages == []


async def test_events_arrive_in_publish_order(notifier, registry, connection_factory):
    connection = connection_factory()
    registry.subscribe(connection, "org-A")
    for index in range(5):
        await notifier.publish("org-A", "service-updated", {"n": index})
    assert [payload["n"] for payload in connection.payloads("service-updated")] == list(range(5))


async def test_broken_connection_is_dropped_and_others_still_served(
    notifier, registry, connection_factory, broken_connection
):
    healthy = connection_factory()
    registry.subscribe(broken_connection, "org-A")
    registry.subscribe(healthy, "org-A")

    assert await notifier.publish("org-A", "status-changed", {}) == 1
    assert registry.subscribers("org-A") == [healthy]
    assert healthy.events == ["status-changed"]


async def test_slow_connection_is_skipped_but_kept(registry, connection_factory):
    class Stalled:
        async def send_json(self, message):
            await asyncio.sleep(10)

    stalled, healthy = Stalled(), connection_factory()
    registry.subscribe(stalled, "org-A")
    registry.subscribe(healthy, "org-A")
    notifier = RealtimeNotifier(registry, send_timeout=0.01)

    assert await notifier.publish("org-A", "status-changed", {}) == 1
    assert stalled in registry.subscribers("org-A")
    assert healthy.events == ["status-changed"]


async def test_publishing_never_raises_into_the_caller(monkeypatch):
    notifier = RealtimeNotifier(TopicRegistry())

    async def explode(*args):
        raise RuntimeError("registry on fire")

    monkeypatch.setattr(notifier, "publish", explode)

    class Org:
        id = "A"
        slug = "a"

    await notifier.status_changed(Org(), "major_outage", "operational")

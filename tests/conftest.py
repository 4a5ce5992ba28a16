import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from httpx import ASGITransport, AsyncClient
from passlib.context import CryptContext

from statuspage.incidents.incident_services import IncidentService
from statuspage.main import create_app
from statuspage.persistence.memory_store import MemoryStore
from statuspage.services.service_manager import ServiceManager
from statuspage.utils import hash as password_hashing
from statuspage.websocket.notifier import RealtimeNotifier
from statuspage.websocket.topic_registry import TopicRegistry

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Minimum bcrypt cost keeps registration-heavy tests quick."""
    monkeypatch.setattr(password_hashing, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))


class RecordingConnection:
    """Stands in for a websocket: remembers every message sent to it."""

    def __init__(self, name: str = "conn"):
        self.name = name
        self.messages = []

    async def send_json(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def events(self):
        return [message["event"] for message in self.messages]

    def payloads(self, event: str):
        return [message["payload"] for message in self.messages if message["event"] == event]


class BrokenConnection(RecordingConnection):
    async def send_json(self, message: dict) -> None:
        raise ConnectionResetError("peer went away")


@pytest.fixture
def connection_factory():
    return RecordingConnection


@pytest.fixture
def broken_connection():
    return BrokenConnection("broken")


@pytest.fixture
def store():
    return MemoryStore()


class InterleavingStore(MemoryStore):
    """
    No store-wide transaction lock, and every overridden call suspends
    before touching data: concurrent tasks interleave the way they do
    against a read-committed database.
    """

    @asynccontextmanager
    async def transaction(self):
        yield self

    async def get_service(self, service_id):
        await asyncio.sleep(0)
        return await super().get_service(service_id)

    async def update_service(self, service_id, data):
        await asyncio.sleep(0)
        return await super().update_service(service_id, data)

    async def get_incident(self, incident_id):
        await asyncio.sleep(0)
        return await super().get_incident(incident_id)

    async def replace_incident_services(self, incident_id, service_ids):
        # delete, yield, then insert: two unserialized callers end up with both sets
        await super().replace_incident_services(incident_id, [])
        await asyncio.sleep(0)
        kept = self._service_ids_for(incident_id)
        await super().replace_incident_services(incident_id, kept + list(service_ids))


@pytest.fixture
def interleaving_store():
    return InterleavingStore()


@pytest.fixture
def registry():
    return TopicRegistry()


@pytest.fixture
def notifier(registry):
    return RealtimeNotifier(registry, send_timeout=0.5)


@pytest.fixture
def service_manager(store, notifier):
    return ServiceManager(store, notifier)


@pytest.fixture
def incident_service(store, notifier):
    return IncidentService(store, notifier)


_emails = count(1)


@pytest.fixture
def make_user(store):
    async def _make(email=None, first_name="Test", last_name="User"):
        return await store.create_user(
            {
                "email": email or f"user{next(_emails)}@example.com",
                "firstName": first_name,
                "lastName": last_name,
                "passwordHash": password_hashing.hash_password("secret123"),
            }
        )

    return _make


@pytest.fixture
def make_organization(store):
    async def _make(owner, slug, is_public=True, name=None):
        return await store.create_organization(
            {"name": name or slug.title(), "slug": slug, "ownerId": owner.id, "isPublic": is_public}
        )

    return _make


@pytest.fixture
async def owner(make_user):
    return await make_user("owner@example.com", "Olivia", "Owner")


@pytest.fixture
async def organization(make_organization, owner):
    return await make_organization(owner, "acme")


# ---
# HTTP
# ---
@pytest.fixture
def app(store):
    return create_app(store=store)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def register(client):
    """Register through the API; returns (user dict, Authorization headers)."""

    async def _register(email, password="secret123", first_name="Ada", last_name="Lovelace"):
        response = await client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register


@pytest.fixture
def at():
    """at(minutes) -> T0 shifted by that many minutes."""
    return lambda minutes: T0 + timedelta(minutes=minutes)

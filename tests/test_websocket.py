import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from statuspage.main import create_app


@pytest.fixture
def sync_client(store):
    with TestClient(create_app(store=store)) as client:
        yield client


def _signup(client, email):
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": "secret123", "firstName": "Ada", "lastName": "Lovelace"},
    )
    token = response.json()["data"]["token"]
    return token, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def workspace(sync_client):
    token, headers = _signup(sync_client, "ops@acme.dev")
    organization = sync_client.post(
        "/api/organizations", json={"name": "Acme", "slug": "acme"}, headers=headers
    ).json()["data"]["organization"]
    service = sync_client.post(
        f"/api/services/organization/{organization['id']}", json={"name": "API"}, headers=headers
    ).json()["data"]["service"]
    return token, headers, organization, service


def test_members_receive_service_updates(sync_client, workspace):
    token, headers, organization, service = workspace

    with sync_client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"action": "join-organization", "organizationId": organization["id"]})
        assert ws.receive_json() == {"event": "subscribed", "payload": {"topic": f"org-{organization['id']}"}}

        sync_client.patch(f"/api/services/{service['id']}/status", json={"status": "major_outage"}, headers=headers)

        update = ws.receive_json()
        assert update["event"] == "service-updated"
        assert update["payload"]["status"] == "major_outage"
        assert update["payload"]["oldStatus"] == "operational"
        assert ws.receive_json()["event"] == "status-changed"


def test_anonymous_clients_cannot_join_organizations(sync_client, workspace):
    _, _, organization, _ = workspace
    with sync_client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join-organization", "organizationId": organization["id"]})
        message = ws.receive_json()
        assert message["event"] == "error"
        assert message["payload"]["action"] == "join-organization"


def test_outsiders_cannot_join_organizations(sync_client, workspace):
    _, _, organization, _ = workspace
    stranger, _ = _signup(sync_client, "stranger@example.com")
    with sync_client.websocket_connect(f"/ws?token={stranger}") as ws:
        ws.send_json({"action": "join-organization", "organizationId": organization["id"]})
        assert ws.receive_json()["payload"]["message"] == "Access to this organization is denied"


def test_status_page_subscribers_get_public_events(sync_client, workspace):
    _, headers, _, service = workspace
    with sync_client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join-status-page", "slug": "acme"})
        assert ws.receive_json() == {"event": "subscribed", "payload": {"topic": "status-acme"}}

        sync_client.patch(f"/api/services/{service['id']}/status", json={"status": "partial_outage"}, headers=headers)
        assert ws.receive_json()["event"] == "service-updated"
        assert ws.receive_json()["event"] == "status-changed"

        ws.send_json({"action": "join-status-page", "slug": "missing"})
        assert ws.receive_json()["payload"]["message"] == "Status page not found"


def test_ping_and_bad_messages(sync_client):
    with sync_client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"event": "pong", "payload": {}}

        ws.send_text("{not json")
        assert ws.receive_json()["payload"]["message"] == "Invalid JSON"

        ws.send_json({"action": "dance"})
        assert ws.receive_json()["event"] == "error"


def test_invalid_token_is_refused(sync_client):
    with pytest.raises(WebSocketDisconnect):
        with sync_client.websocket_connect("/ws?token=not-a-token") as ws:
            ws.receive_json()

# ---
# File: statuspage/seed.py
# Purpose: Idempotent demo data: an owner and a member, a public demo
#          organization with services and one open incident.
#          Run with: python -m statuspage.seed
# ---

import asyncio

from statuspage.db import create_store
from statuspage.incidents.incident_services import IncidentService
from statuspage.organizations.organization_services import create_organization
from statuspage.persistence.base import Store
from statuspage.persistence.records import IncidentQuery
from statuspage.services.service_manager import ServiceManager
from statuspage.utils.hash import hash_password
from statuspage.websocket.notifier import RealtimeNotifier
from statuspage.websocket.topic_registry import TopicRegistry

DEMO_PASSWORD = "demo1234"
DEMO_SLUG = "demo"
DEMO_USERS = [
    ("owner@demo.statuspage.dev", "Olivia", "Owner"),
    ("member@demo.statuspage.dev", "Max", "Member"),
]
DEMO_SERVICES = [
    {"name": "Website", "url": "https://demo.statuspage.dev", "status": "operational"},
    {"name": "API", "url": "https://api.demo.statuspage.dev", "status": "degraded_performance"},
    {"name": "Database", "status": "operational", "isPublic": False},
]


async def _user(store: Store, email: str, first_name: str, last_name: str):
    user = await store.get_user_by_email(email)
    if user:
        print(f"User already exists: {email}")
        return user
    user = await store.create_user(
        {
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "passwordHash": hash_password(DEMO_PASSWORD),
        }
    )
    print(f"User created: {email}")
    return user


async def seed(store: Store) -> dict:
    notifier = RealtimeNotifier(TopicRegistry())
    services = ServiceManager(store, notifier)
    incidents = IncidentService(store, notifier)

    owner, member = [await _user(store, *fields) for fields in DEMO_USERS]

    organization = await store.get_organization_by_slug(DEMO_SLUG)
    if organization:
        print(f"Organization already exists: {organization.name} ({organization.id})")
    else:
        organization = await create_organization(
            store,
            owner,
            {"name": "Demo Inc", "slug": DEMO_SLUG, "description": "Demo status page"},
        )
        print(f"Organization created: {organization.name} ({organization.id}), access code {organization.accessCode}")

    if not await store.find_membership(member.id, organization.id):
        await store.create_membership({"userId": member.id, "organizationId": organization.id, "role": "member"})
        print(f"Member added: {member.email}")

    existing = await services.list_services(organization.id)
    if not existing:
        for order, data in enumerate(DEMO_SERVICES):
            service = await services.create_service(organization.id, owner.id, {**data, "order": order})
            print(f"Service created: {service.name} ({service.status})")
        existing = await services.list_services(organization.id)

    if not await store.count_incidents(organization.id, IncidentQuery()):
        api = next(service for service in existing if service.name == "API")
        incident = await incidents.create_incident(
            organization.id,
            owner.id,
            title="Elevated API latency",
            description="Some API requests are slower than usual.",
            severity="minor",
            service_ids=[api.id],
        )
        print(f"Incident created: {incident.title}")

    return {"owner": owner, "member": member, "organization": organization, "services": existing}


async def main():
    store = create_store()
    await store.connect()
    try:
        await seed(store)
    finally:
        await store.disconnect()


if __name__ == "__main__":
    asyncio.run(main())

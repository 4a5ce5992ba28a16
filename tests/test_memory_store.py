import pytest

from statuspage.errors import ConflictError
from statuspage.persistence.records import IncidentQuery


async def test_transaction_rolls_back_every_write(store, organization):
    with pytest.raises(RuntimeError):
        async with store.transaction() as tx:
            service = await tx.create_service({"organizationId": organization.id, "name": "API"})
            await tx.create_status_log(
                {"serviceId": service.id, "organizationId": organization.id, "newStatus": "operational"}
            )
            raise RuntimeError("boom")

    assert await store.list_services(organization.id) == []
    assert await store.list_status_logs(organization.id) == []


async def test_transaction_commits_on_success(store, organization):
    async with store.transaction() as tx:
        await tx.create_service({"organizationId": organization.id, "name": "API"})
    assert [service.name for service in await store.list_services(organization.id)] == ["API"]


async def test_unique_email_and_slug(store, make_user, make_organization, owner):
    with pytest.raises(ConflictError):
        await make_user("OWNER@example.com")
    await make_organization(owner, "taken")
    with pytest.raises(ConflictError) as excinfo:
        await make_organization(owner, "taken")
    assert excinfo.value.field == "slug"


async def test_services_ordered_by_order_then_name(store, organization):
    for name, order in [("Zeta", 0), ("Beta", 1), ("Alpha", 1)]:
        await store.create_service({"organizationId": organization.id, "name": name, "order": order})
    assert [service.name for service in await store.list_services(organization.id)] == ["Zeta", "Alpha", "Beta"]


async def test_deleting_an_incident_cascades(store, organization, owner):
    service = await store.create_service({"organizationId": organization.id, "name": "API"})
    incident = await store.create_incident({"organizationId": organization.id, "title": "Down", "createdBy": owner.id})
    await store.replace_incident_services(incident.id, [service.id])
    await store.create_incident_update(
        {"incidentId": incident.id, "title": "Down", "description": "Looking", "status": "investigating"}
    )

    assert (await store.get_incident(incident.id)).serviceIds == [service.id]
    assert await store.delete_incident(incident.id)
    assert await store.list_incident_updates(incident.id) == []
    assert await store.list_service_incidents(service.id) == []


async def test_deleting_an_organization_removes_what_it_owns(store, organization, owner):
    service = await store.create_service({"organizationId": organization.id, "name": "API"})
    await store.create_status_log({"serviceId": service.id, "organizationId": organization.id, "newStatus": "operational"})
    await store.create_incident({"organizationId": organization.id, "title": "Down", "createdBy": owner.id})

    assert await store.delete_organization(organization.id)
    assert await store.get_service(service.id) is None
    assert await store.count_incidents(organization.id, IncidentQuery()) == 0
    assert await store.list_status_logs(organization.id) == []

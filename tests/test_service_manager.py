import asyncio

import pytest

from statuspage.errors import NotFoundError, ValidationError
from statuspage.services.service_manager import ServiceManager
from statuspage.utils.status_utils import ServiceStatus
from statuspage.websocket.topic_registry import organization_topic, status_page_topic


async def _chain(store, organization_id, service_id):
    """Audit entries of one service, oldest first."""
    entries = await store.list_status_logs(organization_id, limit=1000, service_id=service_id)
    return list(reversed(entries))


async def test_creation_starts_the_audit_chain(service_manager, store, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API", "status": "degraded_performance"})

    [entry] = await _chain(store, organization.id, service.id)
    assert entry.oldStatus is None
    assert entry.newStatus == "degraded_performance"
    assert entry.changedBy == owner.id
    assert entry.serviceName == "API"


async def test_status_changes_form_an_unbroken_chain(service_manager, store, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    for status in ["degraded_performance", "major_outage", "operational"]:
        await service_manager.change_status(service.id, status, owner.id)

    chain = await _chain(store, organization.id, service.id)
    assert [(entry.oldStatus, entry.newStatus) for entry in chain] == [
        (None, "operational"),
        ("operational", "degraded_performance"),
        ("degraded_performance", "major_outage"),
        ("major_outage", "operational"),
    ]
    assert (await store.get_service(service.id)).status == chain[-1].newStatus


async def test_concurrent_changes_all_land_in_the_chain(service_manager, store, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    targets = ["degraded_performance", "partial_outage", "major_outage", "operational", "under_maintenance"] * 4

    await asyncio.gather(*(service_manager.change_status(service.id, status, owner.id) for status in targets))

    chain = await _chain(store, organization.id, service.id)
    assert len(chain) == len(targets) + 1
    for previous, current in zip(chain, chain[1:]):
        assert current.oldStatus == previous.newStatus
    assert (await store.get_service(service.id)).status == chain[-1].newStatus


async def test_setting_the_same_status_is_still_logged(service_manager, store, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    change = await service_manager.change_status(service.id, "operational", owner.id)

    assert not change.changed
    assert len(await _chain(store, organization.id, service.id)) == 2


async def test_general_update_logs_only_real_status_changes(service_manager, store, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})

    await service_manager.update_service(service.id, owner.id, {"name": "Public API", "status": "operational"})
    assert len(await _chain(store, organization.id, service.id)) == 1

    change = await service_manager.update_service(service.id, owner.id, {"status": "partial_outage"})
    assert change.changed
    assert change.service.name == "Public API"
    chain = await _chain(store, organization.id, service.id)
    assert (chain[-1].oldStatus, chain[-1].newStatus) == ("operational", "partial_outage")


async def test_invalid_status_is_rejected_before_any_write(service_manager, store, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    with pytest.raises(ValidationError):
        await service_manager.change_status(service.id, "on_fire", owner.id)
    assert (await store.get_service(service.id)).status == "operational"
    assert len(await _chain(store, organization.id, service.id)) == 1


async def test_unknown_service(service_manager, owner):
    with pytest.raises(NotFoundError):
        await service_manager.change_status("missing", "operational", owner.id)


@pytest.mark.parametrize("value", [0, 100.5, "abc", float("nan"), None])
async def test_uptime_must_be_between_1_and_100(service_manager, organization, owner, value):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    with pytest.raises(ValidationError):
        await service_manager.update_uptime(service.id, value)


async def test_uptime_is_rounded(service_manager, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    updated = await service_manager.update_uptime(service.id, "99.987")
    assert updated.uptimePercentage == 99.99


async def test_reorder_sets_order_by_position(service_manager, organization, owner):
    names = ["A", "B", "C"]
    services = [await service_manager.create_service(organization.id, owner.id, {"name": name}) for name in names]

    reordered = await service_manager.reorder(organization.id, [services[2].id, services[0].id, services[1].id])
    assert [(service.name, service.order) for service in reordered] == [("C", 0), ("A", 1), ("B", 2)]


async def test_reorder_rejects_foreign_services(service_manager, make_organization, organization, owner):
    other = await make_organization(owner, "other-org")
    foreign = await service_manager.create_service(other.id, owner.id, {"name": "Elsewhere"})
    with pytest.raises(ValidationError) as excinfo:
        await service_manager.reorder(organization.id, [foreign.id])
    assert foreign.id in excinfo.value.message


async def test_overall_status_scenario(service_manager, organization, owner):
    statuses = ["operational", "degraded_performance", "major_outage"]
    services = [
        await service_manager.create_service(organization.id, owner.id, {"name": f"S{index}", "status": status})
        for index, status in enumerate(statuses)
    ]
    assert await service_manager.overall_status(organization.id) == ServiceStatus.MAJOR_OUTAGE

    await service_manager.change_status(services[2].id, "operational", owner.id)
    assert await service_manager.overall_status(organization.id) == ServiceStatus.DEGRADED_PERFORMANCE


async def test_status_change_is_published(service_manager, registry, connection_factory, organization, owner):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "API"})
    dashboard, page = connection_factory("dashboard"), connection_factory("page")
    registry.subscribe(dashboard, organization_topic(organization.id))
    registry.subscribe(page, status_page_topic(organization.slug))

    await service_manager.change_status(service.id, "major_outage", owner.id)

    for connection in (dashboard, page):
        assert connection.events == ["service-updated", "status-changed"]
        [updated] = connection.payloads("service-updated")
        assert (updated["oldStatus"], updated["status"]) == ("operational", "major_outage")
        [overall] = connection.payloads("status-changed")
        assert overall["overallStatus"]["status"] == "major_outage"


async def test_private_service_stays_off_the_status_page(
    service_manager, registry, connection_factory, organization, owner
):
    service = await service_manager.create_service(organization.id, owner.id, {"name": "DB", "isPublic": False})
    dashboard, page = connection_factory("dashboard"), connection_factory("page")
    registry.subscribe(dashboard, organization_topic(organization.id))
    registry.subscribe(page, status_page_topic(organization.slug))

    await service_manager.change_status(service.id, "major_outage", owner.id)

    assert "service-updated" in dashboard.events
    assert "service-updated" not in page.events
    [overall] = page.payloads("status-changed")
    assert overall["overallStatus"]["status"] == "operational"


async def test_visibility_flip_is_published(service_manager, registry, connection_factory, organization, owner):
    healthy = await service_manager.create_service(organization.id, owner.id, {"name": "Web"})
    broken = await service_manager.create_service(organization.id, owner.id, {"name": "DB", "status": "major_outage"})
    dashboard, page = connection_factory("dashboard"), connection_factory("page")
    registry.subscribe(dashboard, organization_topic(organization.id))
    registry.subscribe(page, status_page_topic(organization.slug))

    await service_manager.update_service(broken.id, owner.id, {"isPublic": False})

    assert page.events == ["service-updated", "status-changed"]
    [gone] = page.payloads("service-updated")
    assert (gone["serviceId"], gone["isPublic"]) == (broken.id, False)
    [overall] = page.payloads("status-changed")
    assert overall["overallStatus"]["status"] == "operational"
    assert dashboard.events == ["service-updated", "status-changed"]

    await service_manager.update_service(healthy.id, owner.id, {"name": "Website"})
    assert page.events == ["service-updated", "status-changed", "service-updated"]

    await service_manager.update_service(broken.id, owner.id, {"name": "Database"})
    assert page.events == ["service-updated", "status-changed", "service-updated"]


async def test_chain_holds_when_the_store_interleaves(interleaving_store, notifier):
    store = interleaving_store
    owner = await store.create_user(
        {"email": "rc@example.com", "firstName": "Rc", "lastName": "Owner", "passwordHash": "x"}
    )
    organization = await store.create_organization({"name": "Rc", "slug": "rc", "ownerId": owner.id})
    manager = ServiceManager(store, notifier)
    service = await manager.create_service(organization.id, owner.id, {"name": "API"})
    targets = ["degraded_performance", "partial_outage", "major_outage", "operational"] * 3

    await asyncio.gather(*(manager.change_status(service.id, status, owner.id) for status in targets))

    chain = await _chain(store, organization.id, service.id)
    assert len(chain) == len(targets) + 1
    broken = [(previous, current) for previous, current in zip(chain, chain[1:]) if current.oldStatus != previous.newStatus]
    assert broken == []
    assert (await store.get_service(service.id)).status == chain[-1].newStatus

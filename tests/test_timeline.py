from datetime import date

import pytest

from statuspage.errors import ValidationError
from statuspage.incidents.timeline import get_timeline, group_by_date


@pytest.fixture
async def api(store, organization):
    return await store.create_service({"organizationId": organization.id, "name": "Payments API"})


async def _incident(store, organization, owner, started_at, title="Incident", **extra):
    return await store.create_incident(
        {
            "organizationId": organization.id,
            "title": title,
            "createdBy": owner.id,
            "startedAt": started_at,
            **extra,
        }
    )


async def _change(store, organization, service, created_at, old="operational", new="degraded_performance"):
    return await store.create_status_log(
        {
            "serviceId": service.id,
            "organizationId": organization.id,
            "oldStatus": old,
            "newStatus": new,
            "createdAt": created_at,
        }
    )


async def test_merges_both_sources_newest_first(store, organization, owner, api, at):
    i1 = await _incident(store, organization, owner, at(10), "first")
    i2 = await _incident(store, organization, owner, at(20), "second")
    i3 = await _incident(store, organization, owner, at(30), "third")
    c1 = await _change(store, organization, api, at(15))
    c2 = await _change(store, organization, api, at(25))

    items = await get_timeline(store, organization.id, limit=5)

    assert [item.id for item in items] == [i3.id, c2.id, i2.id, c1.id, i1.id]
    assert [item.kind for item in items] == [
        "incident",
        "service_status_change",
        "incident",
        "service_status_change",
        "incident",
    ]
    assert items[1].change.serviceName == "Payments API"


async def test_truncates_to_limit(store, organization, owner, api, at):
    for minute in range(0, 60, 10):
        await _incident(store, organization, owner, at(minute))
        await _change(store, organization, api, at(minute + 5))

    items = await get_timeline(store, organization.id, limit=4)
    assert len(items) == 4
    assert [item.timestamp for item in items] == sorted((item.timestamp for item in items), reverse=True)
    assert items[0].timestamp == at(55)


async def test_type_filter(store, organization, owner, api, at):
    await _incident(store, organization, owner, at(10), "outage")
    await _incident(store, organization, owner, at(20), "window", type="maintenance")
    await _change(store, organization, api, at(30))

    assert [item.incident.title for item in await get_timeline(store, organization.id, type_filter="maintenance")] == [
        "window"
    ]
    assert [item.incident.title for item in await get_timeline(store, organization.id, type_filter="incident")] == [
        "outage"
    ]
    changes = await get_timeline(store, organization.id, type_filter="service_change")
    assert [item.kind for item in changes] == ["service_status_change"]


async def test_status_filter_lets_status_changes_through(store, organization, owner, api, at):
    await _incident(store, organization, owner, at(10), "open")
    await _incident(store, organization, owner, at(20), "closed", status="resolved")
    await _change(store, organization, api, at(30))

    items = await get_timeline(store, organization.id, status_filter="resolved")
    assert [item.kind for item in items] == ["service_status_change", "incident"]
    assert items[1].incident.title == "closed"


async def test_search_is_case_insensitive(store, organization, owner, api, at):
    await _incident(store, organization, owner, at(10), "Database slow", description="Replica lag")
    await _incident(store, organization, owner, at(20), "Login errors")
    await _change(store, organization, api, at(30))

    assert [item.incident.title for item in await get_timeline(store, organization.id, search="REPLICA")] == [
        "Database slow"
    ]
    assert [item.kind for item in await get_timeline(store, organization.id, search="payments")] == [
        "service_status_change"
    ]


async def test_rejects_unknown_filters(store, organization):
    with pytest.raises(ValidationError):
        await get_timeline(store, organization.id, type_filter="everything")
    with pytest.raises(ValidationError):
        await get_timeline(store, organization.id, status_filter="finished")


async def test_groups_by_utc_date(store, organization, owner, api, at):
    await _incident(store, organization, owner, at(-13 * 60), "yesterday")
    await _incident(store, organization, owner, at(10), "today")
    await _change(store, organization, api, at(20))

    days = group_by_date(await get_timeline(store, organization.id))

    assert [day.day for day in days] == [date(2024, 5, 1), date(2024, 4, 30)]
    assert [item.kind for item in days[0].items] == ["service_status_change", "incident"]

import pytest

from statuspage.utils.status_utils import (
    ServiceStatus,
    derive_overall_status,
    sort_by_severity,
    status_badge,
    status_priority,
    unknown_statuses,
)


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], ServiceStatus.OPERATIONAL),
        (["operational", "operational"], ServiceStatus.OPERATIONAL),
        (["operational", "under_maintenance"], ServiceStatus.UNDER_MAINTENANCE),
        (["under_maintenance", "degraded_performance"], ServiceStatus.DEGRADED_PERFORMANCE),
        (["degraded_performance", "partial_outage", "operational"], ServiceStatus.PARTIAL_OUTAGE),
        (["operational", "degraded_performance", "major_outage"], ServiceStatus.MAJOR_OUTAGE),
    ],
)
def test_overall_status_is_the_worst_present(statuses, expected):
    assert derive_overall_status(statuses) == expected


def test_overall_status_ignores_order():
    statuses = ["partial_outage", "operational", "under_maintenance", "degraded_performance"]
    assert derive_overall_status(statuses) == derive_overall_status(reversed(statuses))


def test_overall_status_accepts_records_and_dicts():
    class Row:
        status = "degraded_performance"

    assert derive_overall_status([Row(), {"status": "operational"}]) == ServiceStatus.DEGRADED_PERFORMANCE


def test_unknown_status_ranks_as_operational():
    assert status_priority("on_fire") == status_priority("operational")
    assert derive_overall_status(["on_fire", "operational"]) == ServiceStatus.OPERATIONAL
    assert derive_overall_status(["on_fire", "partial_outage"]) == ServiceStatus.PARTIAL_OUTAGE
    assert unknown_statuses([{"status": "on_fire"}, {"status": "operational"}]) == ["on_fire"]


def test_badge_comes_from_the_same_table():
    badge = status_badge("major_outage")
    assert badge == {"status": "major_outage", "label": "Major Outage", "color": "red", "priority": 5}
    assert status_badge(ServiceStatus.OPERATIONAL)["color"] == "green"


def test_sort_by_severity_puts_worst_first():
    services = [{"status": "operational"}, {"status": "major_outage"}, {"status": "degraded_performance"}]
    assert [service["status"] for service in sort_by_severity(services)] == [
        "major_outage",
        "degraded_performance",
        "operational",
    ]

# ---
# File: statuspage/utils/status_utils.py
# Purpose: The one service-status severity table, plus the derivation of an
#          organization's overall status from its services
# ---

from enum import Enum
from typing import Iterable, List, Union

__all__ = [
    "ServiceStatus",
    "IncidentStatus",
    "IncidentSeverity",
    "IncidentType",
    "STATUS_PRIORITY",
    "STATUS_LABELS",
    "STATUS_BADGE_COLORS",
    "status_priority",
    "is_known_status",
    "unknown_statuses",
    "derive_overall_status",
    "status_badge",
    "sort_by_severity",
]


class ServiceStatus(str, Enum):
    OPERATIONAL = "operational"
    UNDER_MAINTENANCE = "under_maintenance"
    DEGRADED_PERFORMANCE = "degraded_performance"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"


class IncidentStatus(str, Enum):
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


class IncidentSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class IncidentType(str, Enum):
    INCIDENT = "incident"
    MAINTENANCE = "maintenance"


# Highest number wins when several services disagree.
STATUS_PRIORITY = {
    ServiceStatus.MAJOR_OUTAGE: 5,
    ServiceStatus.PARTIAL_OUTAGE: 4,
    ServiceStatus.DEGRADED_PERFORMANCE: 3,
    ServiceStatus.UNDER_MAINTENANCE: 2,
    ServiceStatus.OPERATIONAL: 1,
}

STATUS_LABELS = {
    ServiceStatus.MAJOR_OUTAGE: "Major Outage",
    ServiceStatus.PARTIAL_OUTAGE: "Partial Outage",
    ServiceStatus.DEGRADED_PERFORMANCE: "Degraded Performance",
    ServiceStatus.UNDER_MAINTENANCE: "Under Maintenance",
    ServiceStatus.OPERATIONAL: "Operational",
}

STATUS_BADGE_COLORS = {
    ServiceStatus.MAJOR_OUTAGE: "red",
    ServiceStatus.PARTIAL_OUTAGE: "orange",
    ServiceStatus.DEGRADED_PERFORMANCE: "yellow",
    ServiceStatus.UNDER_MAINTENANCE: "blue",
    ServiceStatus.OPERATIONAL: "green",
}

StatusLike = Union[str, ServiceStatus]


def _status_of(item) -> StatusLike:
    # Accepts plain status values, service records/ORM rows and dicts
    if isinstance(item, (str, ServiceStatus)):
        return item
    if isinstance(item, dict):
        return item.get("status")
    return getattr(item, "status", None)


def is_known_status(value) -> bool:
    try:
        ServiceStatus(value)
    except ValueError:
        return False
    return True


# ---
# Priority for a status value. Anything outside the enum (corrupted rows,
# legacy values) ranks as operational instead of raising.
# ---
def status_priority(value) -> int:
    try:
        return STATUS_PRIORITY[ServiceStatus(value)]
    except ValueError:
        return STATUS_PRIORITY[ServiceStatus.OPERATIONAL]


def unknown_statuses(services: Iterable) -> List:
    """Status values in `services` that are not part of ServiceStatus."""
    return [status for status in map(_status_of, services) if not is_known_status(status)]


def derive_overall_status(services: Iterable) -> ServiceStatus:
    """
    Worst status present among `services`.

    Pure and total: an empty collection is operational, and unknown values
    count as operational. Callers that care about data integrity should
    check `unknown_statuses` and log what it finds.
    """
    overall = ServiceStatus.OPERATIONAL
    for status in map(_status_of, services):
        if not is_known_status(status):
            continue
        candidate = ServiceStatus(status)
        if STATUS_PRIORITY[candidate] > STATUS_PRIORITY[overall]:
            overall = candidate
    return overall


def status_badge(value) -> dict:
    """Presentation info for a status badge, driven by the same table as derivation."""
    status = ServiceStatus(value) if is_known_status(value) else ServiceStatus.OPERATIONAL
    return {
        "status": status.value,
        "label": STATUS_LABELS[status],
        "color": STATUS_BADGE_COLORS[status],
        "priority": STATUS_PRIORITY[status],
    }


def sort_by_severity(services: Iterable) -> List:
    """Worst first; stable for services sharing a status."""
    return sorted(services, key=lambda item: status_priority(_status_of(item)), reverse=True)

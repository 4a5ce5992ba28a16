# ---
# File: statuspage/services/status_log.py
# Purpose: Append-only audit trail of service status transitions.
#          Writes only happen inside the transaction that changes the service.
# ---

from typing import List, Optional

from statuspage.errors import ValidationError
from statuspage.persistence.base import Store
from statuspage.persistence.records import StatusLogRecord
from statuspage.utils.status_utils import ServiceStatus, is_known_status

MAX_PAGE_SIZE = 200


async def record_status_change(
    store: Store,
    service_id: str,
    old_status: Optional[str],
    new_status: str,
    actor_id: Optional[str],
    organization_id: str,
) -> StatusLogRecord:
    """
    Append one transition. `old_status` is None for a service's first status.
    Pass the transaction-scoped store so the entry commits with the service row.
    """
    if not is_known_status(new_status):
        raise ValidationError.for_field("newStatus", f"Invalid status value '{new_status}'")
    return await store.create_status_log(
        {
            "serviceId": service_id,
            "organizationId": organization_id,
            "oldStatus": ServiceStatus(old_status).value if is_known_status(old_status) else old_status,
            "newStatus": ServiceStatus(new_status).value,
            "changedBy": actor_id,
        }
    )


async def list_status_changes(
    store: Store,
    organization_id: str,
    limit: int = 50,
    offset: int = 0,
    service_id: Optional[str] = None,
) -> List[StatusLogRecord]:
    """Newest first."""
    if limit < 1 or offset < 0:
        raise ValidationError.for_field("limit", "limit must be positive and offset non-negative")
    return await store.list_status_logs(
        organization_id,
        limit=min(limit, MAX_PAGE_SIZE),
        offset=offset,
        service_id=service_id,
    )

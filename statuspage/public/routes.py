# ---
# File: public/routes.py
# Purpose: Unauthenticated status page routes, served by organization slug
# ---

from fastapi import APIRouter, Depends, Path, Query

from statuspage.deps import get_store
from statuspage.persistence.base import Store
from statuspage.public import status_page as projection
from statuspage.utils.responses import success_response

router = APIRouter(prefix="/api/public/status", tags=["Public"])


@router.get("/{slug}")
async def status_page(slug: str = Path(...), store: Store = Depends(get_store)):
    return success_response(await projection.status_page(store, slug))


@router.get("/{slug}/summary")
async def summary(slug: str = Path(...), store: Store = Depends(get_store)):
    return success_response(await projection.status_summary(store, slug))


@router.get("/{slug}/incidents")
async def incidents(
    slug: str = Path(...),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    store: Store = Depends(get_store),
):
    return success_response(await projection.recent_incidents(store, slug, page=page, limit=limit))


@router.get("/{slug}/incidents/{incidentId}")
async def incident(slug: str = Path(...), incidentId: str = Path(...), store: Store = Depends(get_store)):
    return success_response(await projection.incident_detail(store, slug, incidentId))


@router.get("/{slug}/services/{serviceId}/uptime")
async def service_uptime(
    slug: str = Path(...),
    serviceId: str = Path(...),
    days: int = Query(30, ge=1, le=90),
    store: Store = Depends(get_store),
):
    return success_response(await projection.service_uptime(store, slug, serviceId, days=days))

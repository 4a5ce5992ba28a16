# ---
# File: statuspage/main.py
# Purpose: FastAPI application factory: store, realtime registry and
#          notifier, domain managers, middleware, routers and lifecycle hooks
# ---

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from statuspage import config
from statuspage.auth.routes import router as auth_router
from statuspage.db import create_store
from statuspage.errors import register_exception_handlers
from statuspage.health.routes import router as health_router
from statuspage.incidents.incident_services import IncidentService
from statuspage.incidents.routes import router as incident_router
from statuspage.keepalive import KeepAlivePinger
from statuspage.organizations.routes import router as organization_router
from statuspage.persistence.base import Store
from statuspage.public.routes import router as public_router
from statuspage.services.routes import router as service_router
from statuspage.services.service_manager import ServiceManager
from statuspage.utils.locks import KeyedLock
from statuspage.websocket import ws_router
from statuspage.websocket.notifier import RealtimeNotifier
from statuspage.websocket.topic_registry import TopicRegistry

# ---
# Logging Configuration
# ---
logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


def create_app(store: Optional[Store] = None, keepalive: Optional[KeepAlivePinger] = None) -> FastAPI:
    """
    Build the application. Everything request handlers need is placed on
    app.state here, before startup runs, so the app also works under
    transports that never send lifespan events.

    Run with: uvicorn statuspage.main:create_app --factory
    """
    app = FastAPI(title="Status Page API")

    registry = TopicRegistry()
    notifier = RealtimeNotifier(registry)
    locks = KeyedLock()
    app.state.store = store or create_store()
    app.state.registry = registry
    app.state.notifier = notifier
    app.state.service_manager = ServiceManager(app.state.store, notifier, locks)
    app.state.incident_service = IncidentService(app.state.store, notifier, locks)
    app.state.keepalive = keepalive or KeepAlivePinger(
        config.KEEPALIVE_URL,
        config.KEEPALIVE_INTERVAL_SECONDS,
        config.KEEPALIVE_TIMEOUT_SECONDS,
    )
    app.state.started_at = time.time()

    # ---
    # CORS Middleware for local and deployed frontend access
    # ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---
    # Middleware: log every HTTP request with its status and duration
    # ---
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"[HTTP] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        return response

    # ---
    # Application Lifecycle Events
    # ---
    @app.on_event("startup")
    async def startup():
        logger.info("[STARTUP] Connecting to database...")
        await app.state.store.connect()
        logger.info("[STARTUP] Database connected")
        app.state.keepalive.start()
        logger.info("[STARTUP] All services initialized")

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.keepalive.stop()
        logger.info("[SHUTDOWN] Disconnecting database...")
        await app.state.store.disconnect()
        logger.info("[SHUTDOWN] All services stopped")

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(organization_router)
    app.include_router(service_router)
    app.include_router(incident_router)
    app.include_router(public_router)
    app.include_router(health_router)
    app.include_router(ws_router.router)

    # ---
    # Liveness probe for hosting platforms
    # ---
    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


# ---
# Entrypoint for local development with Uvicorn
# ---
if __name__ == "__main__":
    import uvicorn

    logger.info(f"[RUN] Starting Uvicorn on 0.0.0.0:{config.PORT}")
    uvicorn.run("statuspage.main:create_app", factory=True, host="0.0.0.0", port=config.PORT)

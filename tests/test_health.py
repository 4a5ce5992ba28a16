import httpx
from httpx import ASGITransport, AsyncClient

from statuspage.keepalive import KeepAlivePinger
from statuspage.main import create_app


async def test_liveness(client):
    response = await client.get("/health")
    assert response.json() == {"status": "ok"}


async def test_health_reports_checks(client):
    data = (await client.get("/api/v1/health")).json()
    assert data["service"] == "statuspage-api"
    assert data["status"] == "ok"
    assert data["checks"]["database"] == {"status": "ok"}
    assert data["checks"]["realtime"]["connections"] == 0


async def test_health_is_degraded_when_the_store_fails(store, monkeypatch):
    async def broken_ping():
        raise ConnectionError("database unreachable")

    monkeypatch.setattr(store, "ping", broken_ping)
    app = create_app(store=store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = (await client.get("/api/v1/health")).json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"] == {"status": "error", "error": "database unreachable"}


async def test_keepalive_disabled_without_url(client):
    data = (await client.get("/api/v1/health/keepalive")).json()
    assert data["enabled"] is False


async def test_keepalive_stats_endpoint(store):
    pinger = KeepAlivePinger("https://example.test/health", 600, 10)
    app = create_app(store=store, keepalive=pinger)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        data = (await client.get("/api/v1/health/keepalive")).json()
    assert data["enabled"] is True
    assert data["running"] is False
    assert data["statistics"]["total_pings"] == 0


async def test_ping_once_counts_outcomes():
    replies = iter([httpx.Response(200), httpx.Response(503)])

    def handler(request):
        return next(replies)

    pinger = KeepAlivePinger("https://example.test/health", 600, 10)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await pinger.ping_once(client) is True
        assert await pinger.ping_once(client) is False

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
        assert await pinger.ping_once(client) is False

    assert pinger.stats() == {
        "total_pings": 3,
        "successful_pings": 1,
        "failed_pings": 2,
        "success_rate_percent": 33.33,
    }


async def test_start_and_stop_background_loop():
    hits = []

    def handler(request):
        hits.append(request.url.path)
        return httpx.Response(200)

    pinger = KeepAlivePinger("https://example.test/health", 600, 10, transport=httpx.MockTransport(handler))
    pinger.start()
    assert pinger.running
    await pinger.stop(grace_seconds=1)
    assert not pinger.running
    assert pinger.successful_pings + pinger.failed_pings <= 1


async def test_unhandled_errors_render_the_envelope(store, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(store, "get_organization_by_slug", explode)
    app = create_app(store=store)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/public/status/acme")
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}

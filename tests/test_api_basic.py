from __future__ import annotations

import logging

import httpx
import pytest


@pytest.mark.anyio
async def test_health(api_client: httpx.AsyncClient):
    resp = await api_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()

    assert data["status"] == "healthy"
    assert data["environment"] == "test"
    assert isinstance(data["uptime"], (int, float))
    assert data["timestamp"].endswith("Z")


@pytest.mark.anyio
async def test_ready(api_client: httpx.AsyncClient):
    resp = await api_client.get("/ready")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ready"
    assert set(data) == {"status", "timestamp"}


@pytest.mark.anyio
async def test_probes_are_idempotent(api_client: httpx.AsyncClient, generator):
    uptimes = []
    for _ in range(3):
        health = await api_client.get("/health")
        ready = await api_client.get("/ready")
        assert health.status_code == 200
        assert ready.status_code == 200
        uptimes.append(health.json()["uptime"])

    assert uptimes == sorted(uptimes)
    assert generator.calls == 0


@pytest.mark.anyio
async def test_unknown_route_returns_not_found_envelope(api_client: httpx.AsyncClient):
    resp = await api_client.get("/api/nope")
    assert resp.status_code == 404

    body = resp.json()
    assert body["error"] == "Not found"
    assert body["message"] == "Endpoint /api/nope not found"
    assert body["code"] == "not_found"
    assert body["timestamp"]
    assert body["request_id"] == resp.headers["X-Request-ID"]


@pytest.mark.anyio
async def test_request_id_is_echoed(api_client: httpx.AsyncClient):
    resp = await api_client.get("/ready", headers={"X-Request-ID": "trace-123"})
    assert resp.headers["X-Request-ID"] == "trace-123"

    resp = await api_client.get("/ready")
    assert len(resp.headers["X-Request-ID"]) == 32


@pytest.mark.anyio
async def test_security_headers_present(api_client: httpx.AsyncClient):
    resp = await api_client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert resp.headers["Referrer-Policy"] == "no-referrer"
    assert "default-src 'self'" in resp.headers["Content-Security-Policy"]


@pytest.mark.anyio
async def test_wrong_method_keeps_json_envelope(api_client: httpx.AsyncClient):
    resp = await api_client.get("/api/make-shorter")
    assert resp.status_code == 405
    body = resp.json()
    assert body["code"] == "http_405"
    assert body["request_id"]


@pytest.mark.anyio
async def test_unhandled_error_is_masked_outside_development(client_factory, settings_factory):
    from src.interfaces.api.app import create_app

    app = create_app(settings_factory(environment="production"), text_generator=object())

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    async with client_factory(app=app) as client:
        resp = await client.get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Internal server error"
    assert body["message"] == "An error occurred"
    assert "hunter2" not in resp.text


@pytest.mark.anyio
async def test_unhandled_error_is_detailed_in_development(client_factory, settings_factory):
    from src.interfaces.api.app import create_app

    app = create_app(settings_factory(environment="development"), text_generator=object())

    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    async with client_factory(app=app) as client:
        resp = await client.get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["message"] == "boom"
    assert body["details"] == {"type": "RuntimeError"}


@pytest.mark.anyio
async def test_unhandled_error_response_keeps_middleware_headers(
    client_factory, settings_factory, caplog: pytest.LogCaptureFixture
):
    from src.interfaces.api.app import create_app

    app = create_app(
        settings_factory(environment="production", cors_origin="http://localhost:3000"),
        text_generator=object(),
    )

    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR):
        async with client_factory(app=app) as client:
            resp = await client.get(
                "/boom",
                headers={"Origin": "http://localhost:3000", "X-Request-ID": "trace-500"},
            )

    assert resp.status_code == 500
    assert resp.headers["X-Request-ID"] == "trace-500"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert resp.json()["request_id"] == "trace-500"

    record = next(r for r in caplog.records if r.getMessage() == "unhandled_error")
    assert (record.method, record.path) == ("GET", "/boom")

"""
Best Shot Backend — Middleware Tests
======================================

What we test:
    ✅ Access codes are masked in access log paths
    ✅ Repeated unknown codes from one IP are blocked with 429 + Retry-After
    ✅ The block lifts once the window slides past the failures
    ✅ Non-vote paths and successful lookups are never counted
    ✅ IPs that never return are swept from the failure table
"""

import logging

import pytest
from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient

from bestshot.middleware.logging import RequestLoggingMiddleware, mask_path
from bestshot.middleware.rate_limit import CodeGuessLimitMiddleware


class FakeClock:
    def __init__(self):
        self.now = 5000.0

    def __call__(self):
        return self.now


def build_app(clock, limit=3, window=60):
    app = FastAPI()

    @app.get("/api/vote/{code}")
    async def vote(code: str):
        if code != "GOOD01":
            raise HTTPException(status_code=404)
        return {"ok": True}

    @app.get("/api/admin/missing")
    async def missing():
        raise HTTPException(status_code=404)

    app.add_middleware(CodeGuessLimitMiddleware, limit=limit, window=window, clock=clock)
    return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client_for(clock):
    def _client(**kwargs):
        transport = ASGITransport(app=build_app(clock, **kwargs))
        return AsyncClient(transport=transport, base_url="http://test")
    return _client


def test_mask_path():
    assert mask_path("/api/vote/ABC123") == "/api/vote/{code}"
    assert mask_path("/api/vote/ABC123/submit") == "/api/vote/{code}/submit"
    assert mask_path("/api/admin/participants") == "/api/admin/participants"


class TestCodeGuessLimit:

    @pytest.mark.asyncio
    async def test_blocks_after_limit(self, client_for):
        async with client_for(limit=3) as client:
            for code in ("AAAAAA", "BBBBBB", "CCCCCC"):
                assert (await client.get(f"/api/vote/{code}")).status_code == 404

            response = await client.get("/api/vote/GOOD01")

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"
        assert int(response.headers["retry-after"]) == 61

    @pytest.mark.asyncio
    async def test_block_lifts_after_window(self, client_for, clock):
        async with client_for(limit=2, window=60) as client:
            await client.get("/api/vote/AAAAAA")
            await client.get("/api/vote/BBBBBB")
            assert (await client.get("/api/vote/GOOD01")).status_code == 429

            clock.now += 61
            assert (await client.get("/api/vote/GOOD01")).status_code == 200

    @pytest.mark.asyncio
    async def test_successes_are_not_counted(self, client_for):
        async with client_for(limit=2) as client:
            for _ in range(5):
                assert (await client.get("/api/vote/GOOD01")).status_code == 200

    @pytest.mark.asyncio
    async def test_other_paths_ignored(self, client_for):
        async with client_for(limit=1) as client:
            for _ in range(3):
                assert (await client.get("/api/admin/missing")).status_code == 404
            assert (await client.get("/api/vote/GOOD01")).status_code == 200


@pytest.mark.asyncio
async def test_access_log_hides_code(caplog):
    app = FastAPI()

    @app.get("/api/vote/{code}")
    async def vote(code: str):
        return {"ok": True}

    app.add_middleware(RequestLoggingMiddleware)

    with caplog.at_level(logging.INFO, logger="bestshot.access"):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            await client.get("/api/vote/ZZZ999")

    assert "ZZZ999" not in caplog.text
    assert "/api/vote/{code}" in caplog.text


@pytest.mark.asyncio
async def test_inactive_ips_are_swept(clock):
    inner = FastAPI()

    @inner.get("/api/vote/{code}")
    async def vote(code: str):
        if code != "GOOD01":
            raise HTTPException(status_code=404)
        return {"ok": True}

    limiter = CodeGuessLimitMiddleware(inner, limit=5, window=60, clock=clock, sweep_every=3)

    def client_from(ip):
        transport = ASGITransport(app=limiter, client=(ip, 40000))
        return AsyncClient(transport=transport, base_url="http://test")

    for ip in ("10.0.0.1", "10.0.0.2"):
        async with client_from(ip) as client:
            assert (await client.get("/api/vote/NOPE00")).status_code == 404
    assert limiter.tracked_ips == 2

    # Neither IP comes back; the next sweep forgets both
    clock.now += 61
    async with client_from("10.0.0.3") as client:
        assert (await client.get("/api/vote/GOOD01")).status_code == 200

    assert limiter.tracked_ips == 0

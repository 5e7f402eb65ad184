"""Request id, error body and rate limiter fall-through."""

import pytest


class TestRequestId:
    @pytest.mark.asyncio
    async def test_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Request-Id"]) == 36

    @pytest.mark.asyncio
    async def test_propagated(self, client):
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})
        assert response.headers["X-Request-Id"] == "req-123"


class TestErrors:
    @pytest.mark.asyncio
    async def test_unknown_route_has_error_body(self, client):
        response = await client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_malformed_json_is_400(self, client):
        response = await client.post(
            "/api/v1/pay/confirm", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_without_redis_requests_pass_unthrottled(self, client):
        response = await client.get("/leaderboard-missing")
        assert response.status_code == 404
        assert "X-RateLimit-Limit" not in response.headers

    @pytest.mark.asyncio
    async def test_with_redis_headers_are_set(self, client, monkeypatch):
        from mentora.middleware import rate_limit

        class FakePipeline:
            def __init__(self) -> None:
                self.ops = 0

            def incr(self, key):
                self.ops += 1

            def expire(self, key, seconds):
                self.ops += 1

            async def execute(self):
                return [3, True]

        class FakeRedis:
            def pipeline(self):
                return FakePipeline()

        monkeypatch.setattr(rate_limit, "get_redis", lambda: FakeRedis())
        response = await client.get("/api/v1/leaderboard")
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "97"

    @pytest.mark.asyncio
    async def test_over_limit_is_429(self, client, monkeypatch):
        from mentora.middleware import rate_limit

        class FakePipeline:
            def incr(self, key):
                pass

            def expire(self, key, seconds):
                pass

            async def execute(self):
                return [101, True]

        class FakeRedis:
            def pipeline(self):
                return FakePipeline()

        monkeypatch.setattr(rate_limit, "get_redis", lambda: FakeRedis())
        response = await client.get("/api/v1/leaderboard")
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"

        exempt = await client.get("/health")
        assert exempt.status_code == 200

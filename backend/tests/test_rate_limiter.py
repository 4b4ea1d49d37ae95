from fastapi import FastAPI
from fastapi.testclient import TestClient

from whatsapp_accounting.core.rate_limiter import RateLimiter, RateLimitMiddleware, is_exempt


def test_sliding_window():
    limiter = RateLimiter(requests=2, window=60)

    assert limiter.is_allowed("a", now=1000) == (True, 1)
    assert limiter.is_allowed("a", now=1010) == (True, 0)
    assert limiter.is_allowed("a", now=1020) == (False, 0)
    assert limiter.is_allowed("b", now=1020) == (True, 1)
    assert limiter.is_allowed("a", now=1061) == (True, 0)


def test_webhooks_are_exempt():
    assert is_exempt("/webhook")
    assert is_exempt("/api/whatsapp/meta")
    assert is_exempt("/health")
    assert not is_exempt("/api/customers")


def test_middleware_returns_429():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=RateLimiter(requests=1, window=60))

    @app.get("/api/ping")
    def ping():
        return {"ok": True}

    client = TestClient(app)
    first = client.get("/api/ping")
    second = client.get("/api/ping")

    assert first.status_code == 200
    assert first.headers["X-RateLimit-Remaining"] == "0"
    assert second.status_code == 429
    assert second.headers["Retry-After"] == "60"

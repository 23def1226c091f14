import httpx
import pytest

from apps.orders.http_adapters import (
    BreakerState,
    CircuitBreaker,
    CircuitOpen,
    HttpCatalogClient,
    catalog_breaker,
)


class R:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body or {}
        self.request = None

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError("err", request=None, response=None)


BURGER = {"id": "burger", "name": "Ghost Burger", "price": 12.5, "available": True}


def test_catalog_retries_on_5xx(monkeypatch, settings):
    settings.HTTP_RETRY_MAX = 2
    calls = {"n": 0, "retry_headers": []}

    def fake_get(self, url, headers=None, **kwargs):
        calls["n"] += 1
        calls["retry_headers"].append(headers["X-Retry-Count"])
        return R(500) if calls["n"] == 1 else R(200, BURGER)

    monkeypatch.setattr(httpx.Client, "get", fake_get, raising=True)
    monkeypatch.setattr("time.sleep", lambda *a, **k: None, raising=True)

    product = HttpCatalogClient(base_url="http://x").get_product("burger")
    assert product.price_cents == 1250
    assert calls["n"] == 2
    assert calls["retry_headers"] == ["0", "1"]


def test_catalog_gives_up_after_max_attempts(monkeypatch, settings):
    settings.HTTP_RETRY_MAX = 3
    calls = {"n": 0}

    def fake_get(self, url, headers=None, **kwargs):
        calls["n"] += 1
        return R(503)

    monkeypatch.setattr(httpx.Client, "get", fake_get, raising=True)
    with pytest.raises(httpx.HTTPStatusError):
        HttpCatalogClient(base_url="http://x").get_product("burger")
    assert calls["n"] == 3


def test_catalog_no_retry_on_404(monkeypatch, settings):
    settings.HTTP_RETRY_MAX = 3
    calls = {"n": 0}

    def fake_get(self, url, headers=None, **kwargs):
        calls["n"] += 1
        return R(404)

    monkeypatch.setattr(httpx.Client, "get", fake_get, raising=True)
    assert HttpCatalogClient(base_url="http://x").get_product("nope") is None
    assert calls["n"] == 1


def test_breaker_opens_after_threshold_and_short_circuits(monkeypatch, settings):
    settings.HTTP_RETRY_MAX = 1
    calls = {"n": 0}

    def fake_get(self, url, headers=None, **kwargs):
        calls["n"] += 1
        raise httpx.ConnectError("down")

    monkeypatch.setattr(httpx.Client, "get", fake_get, raising=True)
    client = HttpCatalogClient(base_url="http://x")
    for _ in range(catalog_breaker.fail_threshold):
        with pytest.raises(httpx.ConnectError):
            client.get_product("burger")

    assert catalog_breaker.state == BreakerState.OPEN
    with pytest.raises(CircuitOpen):
        client.get_product("burger")
    assert calls["n"] == catalog_breaker.fail_threshold


def test_breaker_half_open_probe(monkeypatch):
    clock = {"t": 100.0}
    monkeypatch.setattr("time.monotonic", lambda: clock["t"])
    breaker = CircuitBreaker("test", fail_threshold=2, reset_timeout=10)

    breaker.record_failure()
    breaker.record_failure()
    assert breaker.state == BreakerState.OPEN

    clock["t"] += 10
    assert breaker.acquire() == BreakerState.HALF_OPEN
    with pytest.raises(CircuitOpen):
        breaker.acquire()

    breaker.record_failure()
    assert breaker.state == BreakerState.OPEN

    clock["t"] += 10
    breaker.acquire()
    breaker.record_success()
    assert breaker.state == BreakerState.CLOSED


@pytest.mark.django_db
def test_catalog_outage_surfaces_as_503(client, monkeypatch, settings):
    settings.USE_HTTP_ADAPTERS = True
    settings.HTTP_RETRY_MAX = 1

    def fake_get(self, url, headers=None, **kwargs):
        raise httpx.ConnectError("catalog down")

    def fake_post(self, url, json=None, headers=None, **kwargs):
        raise AssertionError("nothing should be published")

    monkeypatch.setattr(httpx.Client, "get", fake_get, raising=True)
    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    r = client.post("/api/orders/", data={"items": [{"productId": "burger", "quantity": 1}]}, content_type="application/json")
    assert r.status_code == 503
    assert r.json()["detail"] == "UPSTREAM_UNAVAILABLE"


@pytest.mark.django_db
def test_realtime_outage_does_not_fail_order_creation(client, monkeypatch, settings):
    settings.USE_HTTP_ADAPTERS = True

    def fake_get(self, url, headers=None, **kwargs):
        return R(200, BURGER)

    def fake_post(self, url, json=None, headers=None, **kwargs):
        raise httpx.ConnectError("realtime down")

    monkeypatch.setattr(httpx.Client, "get", fake_get, raising=True)
    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    r = client.post("/api/orders/", data={"items": [{"productId": "burger", "quantity": 2}]}, content_type="application/json")
    assert r.status_code == 201
    assert r.json()["total"] == 25.0

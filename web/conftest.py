from types import SimpleNamespace

import pytest


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False
    settings.HTTP_RETRY_BACKOFF_BASE = 0.0


@pytest.fixture(autouse=True)
def clear_throttle_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def stubs(monkeypatch):
    """Fresh in-process catalog, notifier and locker for every test.

    ``stubs.events`` collects ``(kind, order)`` for every published event.
    """
    from apps.orders import providers
    from apps.orders.adapters import CatalogStub, InProcessNotifier, LockerStub

    ns = SimpleNamespace(
        catalog=CatalogStub(),
        notifier=InProcessNotifier(),
        locker=LockerStub(),
        events=[],
    )
    ns.notifier.subscribe(lambda kind, order: ns.events.append((kind, order)))
    monkeypatch.setattr(providers, "local_catalog", ns.catalog)
    monkeypatch.setattr(providers, "local_notifier", ns.notifier)
    monkeypatch.setattr(providers, "local_locker", ns.locker)
    return ns


@pytest.fixture(autouse=True)
def reset_breakers():
    from apps.orders.http_adapters import catalog_breaker, realtime_breaker

    catalog_breaker.reset()
    realtime_breaker.reset()
    yield
    catalog_breaker.reset()
    realtime_breaker.reset()

"""Service provider helpers for wiring OrderService with ports.

``get_order_service`` returns an ``OrderService`` backed by the Django
repository. The catalog, notifier and locker ports use the HTTP adapters
when ``settings.USE_HTTP_ADAPTERS`` is truthy, and in-process stubs
otherwise (tests, local development without the catalog and realtime
services).

The in-process notifier is a module-level singleton so subscribers (tests,
a future in-process websocket layer) see events from every request.
"""

from django.conf import settings

from .adapters import CatalogStub, InProcessNotifier, LockerStub
from .codes import OrderCodeGenerator
from .domain import OrderService
from .http_adapters import HttpCatalogClient, HttpLockerClient, HttpNotifier
from .repository import OrderRepository
from .tracking import TrackingConfig

local_notifier = InProcessNotifier()
local_catalog = CatalogStub()
local_locker = LockerStub(getattr(settings, "LOCKER_DEVICE_NAME", "locker-01"))


def get_order_service() -> OrderService:
    """Return a configured OrderService instance."""
    store = OrderRepository()
    codes = OrderCodeGenerator(
        store.code_exists,
        length=getattr(settings, "ORDER_CODE_LENGTH", 4),
        max_attempts=getattr(settings, "ORDER_CODE_MAX_ATTEMPTS", 10),
    )
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        catalog, notifier, locker = HttpCatalogClient(), HttpNotifier(), HttpLockerClient()
    else:
        catalog, notifier, locker = local_catalog, local_notifier, local_locker

    return OrderService(
        catalog=catalog,
        store=store,
        notifier=notifier,
        locker=locker,
        codes=codes,
        persist_retries=getattr(settings, "ORDER_CODE_PERSIST_RETRIES", 1),
    )


def get_tracking_config() -> TrackingConfig:
    return TrackingConfig(
        prepare_secs=getattr(settings, "ORDER_TRACKING_PREPARE_SECS", 20.0),
        ready_secs=getattr(settings, "ORDER_TRACKING_READY_SECS", 60.0),
        poll_secs=getattr(settings, "ORDER_TRACKING_POLL_SECS", 4.0),
    )

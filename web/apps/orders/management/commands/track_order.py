"""Follow an order from the terminal the way the tracking page does.

    python manage.py track_order 4821
    python manage.py track_order 4821 --once --base-url http://localhost:8000/api
"""

import threading

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.orders.client import OrdersApiClient, OrderTracker
from apps.orders.errors import OrderError
from apps.orders.providers import get_tracking_config
from apps.orders.tracking import TrackingConfig, TrackingSnapshot


def render(snap: TrackingSnapshot) -> str:
    bar_width = 20
    filled = int(round(snap.progress / 100 * bar_width))
    bar = "#" * filled + "." * (bar_width - filled)
    line = f"#{snap.order.code} [{bar}] {snap.progress:5.1f}% {snap.display_status.value}"
    if snap.estimated:
        line += f" (estimated; kitchen says {snap.status.value})"
    if snap.stale:
        line += f" [stale: {snap.error}]"
    return line


class Command(BaseCommand):
    help = "Poll an order by its tracking code and print its progress."

    def add_arguments(self, parser):
        parser.add_argument("code")
        parser.add_argument("--base-url", default=getattr(settings, "ORDERS_API_BASE_URL", "http://localhost:8000/api"))
        parser.add_argument("--interval", type=float, default=None, help="Seconds between polls.")
        parser.add_argument("--once", action="store_true", help="Fetch once and exit.")

    def handle(self, *args, **opts):
        config = get_tracking_config()
        if opts["interval"]:
            config = TrackingConfig(config.prepare_secs, config.ready_secs, opts["interval"])
        tracker = OrderTracker(OrdersApiClient(opts["base_url"]), opts["code"], config)

        def show(snap: TrackingSnapshot):
            if snap.order is None:
                self.stderr.write(snap.error or "No data yet.")
            else:
                self.stdout.write(render(snap))

        try:
            if opts["once"]:
                show(tracker.refresh())
                return
            stop = threading.Event()
            try:
                tracker.follow(show, stop)
            except KeyboardInterrupt:
                stop.set()
        except OrderError as e:
            raise CommandError(e.message)

"""Time-based progress estimate for order tracking views.

A tracking view knows the authoritative status from polling, but between
status changes it has nothing to animate. ``simulate_progress`` derives a
cosmetic estimate from ``created_at`` alone; ``reconcile`` combines it with
the authoritative status. The estimate is decorative: it is never written
back and never overrides what the server says.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .domain import Order, OrderStatus, status_rank

PREPARING_FLOOR = 33.0
PREPARING_CEILING = 90.0


@dataclass(frozen=True)
class TrackingConfig:
    """Pacing of the estimate and of the poll loop, in seconds.

    The windows are arbitrary UI pacing, not kitchen service levels.
    """

    prepare_secs: float = 20.0
    ready_secs: float = 60.0
    poll_secs: float = 4.0

    def __post_init__(self):
        if self.prepare_secs <= 0 or self.ready_secs < self.prepare_secs:
            raise ValueError("need 0 < prepare_secs <= ready_secs")
        if self.poll_secs <= 0:
            raise ValueError("poll_secs must be positive")


@dataclass(frozen=True)
class SimulatedProgress:
    status: OrderStatus
    percent: float


@dataclass(frozen=True)
class TrackingSnapshot:
    """What a tracking view renders.

    Attributes:
        order: Last order confirmed by the server, or None if never fetched.
        status: Authoritative status (None without an order).
        display_status: Status to show; ahead of ``status`` only when
            ``estimated`` is True.
        progress: Progress bar percentage, 0-100.
        estimated: True when ``display_status`` comes from the time estimate.
        stale: True when the last refresh failed and ``order`` is older data.
        error: Retryable, user-facing message for the last failed refresh.
    """

    order: Optional[Order]
    status: Optional[OrderStatus]
    display_status: Optional[OrderStatus]
    progress: float
    estimated: bool = False
    stale: bool = False
    error: Optional[str] = None


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def simulate_progress(created_at: datetime, now: datetime, config: TrackingConfig = TrackingConfig()) -> SimulatedProgress:
    """Estimate status and progress from elapsed time since creation.

    ``[0, prepare)`` is PREPARING with progress rising linearly from 33% and
    capped at 90%; ``[prepare, ready]`` is READY at 100%; after that,
    DELIVERED at 100%.
    """
    elapsed = max(0.0, (_aware(now) - _aware(created_at)).total_seconds())
    if elapsed > config.ready_secs:
        return SimulatedProgress(OrderStatus.DELIVERED, 100.0)
    if elapsed > config.prepare_secs:
        return SimulatedProgress(OrderStatus.READY, 100.0)
    span = PREPARING_CEILING - PREPARING_FLOOR
    percent = PREPARING_FLOOR + (elapsed / config.prepare_secs) * span
    return SimulatedProgress(OrderStatus.PREPARING, min(percent, PREPARING_CEILING))


def reconcile(order: Order, now: datetime, config: TrackingConfig = TrackingConfig()) -> TrackingSnapshot:
    """Combine the authoritative order with the time estimate.

    The estimate may run ahead of the server (shown with ``estimated``), but
    it can never pull the display behind the authoritative status, so a
    confirmed DELIVERED stays DELIVERED.
    """
    sim = simulate_progress(order.created_at, now, config)
    if status_rank(sim.status) > status_rank(order.status):
        return TrackingSnapshot(order, order.status, sim.status, sim.percent, estimated=True)
    if order.status == OrderStatus.PREPARING:
        return TrackingSnapshot(order, order.status, order.status, sim.percent)
    return TrackingSnapshot(order, order.status, order.status, 100.0)


EMPTY_SNAPSHOT = TrackingSnapshot(order=None, status=None, display_status=None, progress=0.0)

"""Idempotency keys for order submission.

Creating an order is not naturally idempotent: retrying a POST places a
second order. Clients that may retry (flaky mobile networks, a checkout
button pressed twice) send an ``Idempotency-Key`` header; the first request
claims the key and later stores its response, and replays with the same
payload get that stored response back instead of a new order.
"""

import hashlib
import json
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from .models import IdempotencyKey


class IdempotencyConflict(ValueError):
    """The key was already used with a different payload."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("IDEMPOTENCY_CONFLICT")


@dataclass
class Claim:
    """Result of claiming a key.

    Attributes:
        record: The persisted key row.
        replay: True when the key was claimed earlier by an identical request;
            the caller should answer with ``record.response_*``.
    """

    record: IdempotencyKey
    replay: bool

    @property
    def has_response(self) -> bool:
        return self.record.response_status > 0


def payload_hash(payload) -> str:
    """Return a SHA-256 hex digest of the canonical JSON form of ``payload``."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@transaction.atomic
def claim(key: str, payload) -> Claim:
    """Claim ``key`` for ``payload``.

    A new key is inserted inside a savepoint so a concurrent insert only
    rolls back that block; an existing key is re-read with ``SELECT ... FOR
    UPDATE`` and compared by payload hash.

    Raises:
        IdempotencyConflict: If the key exists with a different payload.
    """
    digest = payload_hash(payload)
    try:
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(key=key, request_hash=digest)
            return Claim(record=rec, replay=False)
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != digest:
            raise IdempotencyConflict(key)
        return Claim(record=rec, replay=True)


def store_response(claim_: Claim, status_code: int, body: dict, order_id=None) -> None:
    """Persist the response produced for a claimed key."""
    rec = claim_.record
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order"])


def release(claim_: Claim) -> None:
    """Forget a claim whose request failed for reasons outside the request.

    The key becomes free again, so a retry with the same payload runs anew
    instead of waiting on a response that will never be stored.
    """
    claim_.record.delete()

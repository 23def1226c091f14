"""API tests for ``PATCH /api/orders/<id>/status/``."""

import pytest

from apps.orders.domain import EventKind, OrderStatus

CREATE_URL = "/api/orders/"


@pytest.fixture
def order(client):
    r = client.post(
        CREATE_URL,
        data={"items": [{"productId": "burger", "quantity": 2}]},
        content_type="application/json",
    )
    assert r.status_code == 201
    return r.json()


def patch(client, order_id, body, role="cook", **headers):
    if role:
        headers["HTTP_X_ACTOR_ROLE"] = role
    return client.patch(f"/api/orders/{order_id}/status/", data=body, content_type="application/json", **headers)


@pytest.mark.django_db
def test_cook_walks_the_lifecycle(client, order, stubs):
    r = patch(client, order["id"], {"status": "READY"})
    assert r.status_code == 200
    assert r.json()["status"] == "READY"
    assert client.get(f"/api/orders/code/{order['code']}/").json()["status"] == "READY"
    assert stubs.locker.unlocked == [order["code"]]

    r = patch(client, order["id"], {"status": "DELIVERED"}, role="administrador")
    assert r.status_code == 200
    assert r.json()["status"] == "DELIVERED"

    changes = [(k, o.status) for k, o in stubs.events if k == EventKind.STATUS_CHANGED]
    assert changes == [
        (EventKind.STATUS_CHANGED, OrderStatus.READY),
        (EventKind.STATUS_CHANGED, OrderStatus.DELIVERED),
    ]


@pytest.mark.django_db
def test_skipping_a_step_is_rejected(client, order):
    r = patch(client, order["id"], {"status": "DELIVERED"})
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_TRANSITION"
    assert client.get(f"/api/orders/code/{order['code']}/").json()["status"] == "PREPARING"


@pytest.mark.django_db
def test_delivered_cannot_change(client, order):
    patch(client, order["id"], {"status": "READY"})
    patch(client, order["id"], {"status": "DELIVERED"})
    for target in ("PREPARING", "READY", "DELIVERED"):
        r = patch(client, order["id"], {"status": target})
        assert r.status_code == 400
        assert r.json()["detail"] == "INVALID_TRANSITION"


@pytest.mark.django_db
def test_repeating_the_current_status_is_ok_and_silent(client, order, stubs):
    patch(client, order["id"], {"status": "ready"})
    r = patch(client, order["id"], {"status": "READY"})
    assert r.status_code == 200
    assert [k for k, _ in stubs.events].count(EventKind.STATUS_CHANGED) == 1


@pytest.mark.django_db
@pytest.mark.parametrize("role", [None, "guest", "customer"])
def test_only_staff_can_change_status(client, order, role):
    r = patch(client, order["id"], {"status": "READY"}, role=role, HTTP_X_ACTOR_ID="c-1")
    assert r.status_code == 403
    assert r.json() == {"detail": "FORBIDDEN"}


@pytest.mark.django_db
def test_unknown_order_is_404(client):
    r = patch(client, "00000000-0000-0000-0000-000000000000", {"status": "READY"})
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


@pytest.mark.django_db
def test_stale_expected_status_is_409(client, order):
    patch(client, order["id"], {"status": "READY"})
    r = patch(client, order["id"], {"status": "DELIVERED", "expectedStatus": "PREPARING"})
    assert r.status_code == 409
    assert r.json()["detail"] == "CONFLICT"


@pytest.mark.django_db
def test_matching_expected_status_applies(client, order):
    r = patch(client, order["id"], {"status": "READY", "expectedStatus": "PREPARING"})
    assert r.status_code == 200


@pytest.mark.django_db
@pytest.mark.parametrize("body", [{}, {"status": "COOKING"}, {"status": 3}])
def test_bad_status_payload(client, order, body):
    r = patch(client, order["id"], body)
    assert r.status_code == 400
    assert r.json()["detail"] == "VALIDATION_ERROR"


@pytest.mark.django_db
def test_unknown_role_is_400(client, order):
    r = patch(client, order["id"], {"status": "READY"}, role="chef")
    assert r.status_code == 400
    assert r.json()["detail"] == "UNKNOWN_ROLE"

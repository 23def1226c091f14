"""API tests for the admin sales analytics endpoint."""

import pytest

CREATE_URL = "/api/orders/"
ANALYTICS_URL = "/api/orders/analytics/"
ADMIN = {"HTTP_X_ACTOR_ROLE": "admin", "HTTP_X_ACTOR_ID": "a-1"}


def create(client, *lines):
    r = client.post(
        CREATE_URL,
        data={"items": [{"productId": p, "quantity": q} for p, q in lines]},
        content_type="application/json",
    )
    assert r.status_code == 201, r.content
    return r.json()


@pytest.mark.django_db
def test_admin_sees_revenue_hours_and_top_products(client):
    first = create(client, ("burger", 2), ("fries", 1))
    create(client, ("fries", 3))

    r = client.get(ANALYTICS_URL, **ADMIN)

    assert r.status_code == 200
    body = r.json()
    assert body["orderCount"] == 2
    assert body["revenue"] == 43.0
    assert len(body["revenueByHour"]) == 24
    assert sum(body["revenueByHour"]) == 43.0
    hour = int(first["createdAt"][11:13])
    assert body["revenueByHour"][hour] > 0
    assert body["topProducts"] == [
        {"name": "Papas Fritas", "quantity": 4},
        {"name": "Ghost Burger", "quantity": 2},
    ]


@pytest.mark.django_db
def test_delivered_orders_still_count(client):
    order = create(client, ("onion-rings", 1))
    for target in ("READY", "DELIVERED"):
        r = client.patch(
            f"/api/orders/{order['id']}/status/",
            data={"status": target},
            content_type="application/json",
            HTTP_X_ACTOR_ROLE="cook",
        )
        assert r.status_code == 200

    body = client.get(ANALYTICS_URL, **ADMIN).json()
    assert (body["orderCount"], body["revenue"]) == (1, 5.99)


@pytest.mark.django_db
def test_empty_store(client):
    body = client.get(ANALYTICS_URL, **ADMIN).json()
    assert body == {"orderCount": 0, "revenue": 0.0, "revenueByHour": [0.0] * 24, "topProducts": []}


@pytest.mark.django_db
@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"HTTP_X_ACTOR_ROLE": "customer", "HTTP_X_ACTOR_ID": "c-1"},
        {"HTTP_X_ACTOR_ROLE": "cook", "HTTP_X_ACTOR_ID": "k-1"},
    ],
)
def test_analytics_is_forbidden_to_non_admins(client, headers):
    r = client.get(ANALYTICS_URL, **headers)
    assert r.status_code == 403
    assert r.json() == {"detail": "FORBIDDEN"}

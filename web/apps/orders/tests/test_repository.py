"""Tests for the Django ORM implementation of the order store."""

from datetime import datetime, timedelta, timezone

import pytest

from apps.orders.domain import Order, OrderItem, OrderStatus
from apps.orders.errors import Conflict, DuplicateCode, NotFound
from apps.orders.repository import OrderRepository

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def draft(code, customer_id=None, created_at=T0):
    return Order(
        id=None,
        code=code,
        items=[OrderItem("burger", "Ghost Burger", 2, 1250), OrderItem("fries", "Papas Fritas", 1, 450)],
        total_cents=2950,
        created_at=created_at,
        customer_id=customer_id,
    )


@pytest.fixture
def repo():
    return OrderRepository()


@pytest.mark.django_db
def test_create_and_read_back(repo):
    saved = repo.create(draft("4821", customer_id="c-1"))
    assert saved.id
    assert repo.get(saved.id) == saved
    assert repo.get_by_code("4821") == saved
    assert [i.product_id for i in saved.items] == ["burger", "fries"]
    assert saved.status == OrderStatus.PREPARING
    assert repo.code_exists("4821") and not repo.code_exists("0000")


@pytest.mark.django_db
def test_duplicate_code_is_rejected(repo):
    repo.create(draft("1234"))
    with pytest.raises(DuplicateCode):
        repo.create(draft("1234"))
    assert len(repo.list()) == 1


@pytest.mark.django_db
@pytest.mark.parametrize("order_id", ["00000000-0000-0000-0000-000000000000", "not-a-uuid"])
def test_get_missing_is_not_found(repo, order_id):
    with pytest.raises(NotFound):
        repo.get(order_id)


@pytest.mark.django_db
def test_get_by_unknown_code_is_not_found(repo):
    repo.create(draft("1111"))
    with pytest.raises(NotFound):
        repo.get_by_code("9999")


@pytest.mark.django_db
def test_update_status_compare_and_swap(repo):
    saved = repo.create(draft("2222"))

    ready = repo.update_status(saved.id, OrderStatus.READY, expected_status=OrderStatus.PREPARING)
    assert ready.status == OrderStatus.READY

    with pytest.raises(Conflict) as e:
        repo.update_status(saved.id, OrderStatus.READY, expected_status=OrderStatus.PREPARING)
    assert e.value.actual == OrderStatus.READY
    assert repo.get(saved.id).status == OrderStatus.READY


@pytest.mark.django_db
def test_update_status_missing_order(repo):
    with pytest.raises(NotFound):
        repo.update_status("00000000-0000-0000-0000-000000000000", OrderStatus.READY)


@pytest.mark.django_db
def test_lists_are_newest_first(repo):
    old = repo.create(draft("0001", customer_id="c-1", created_at=T0))
    new = repo.create(draft("0002", customer_id="c-1", created_at=T0 + timedelta(minutes=1)))
    other = repo.create(draft("0003", customer_id="c-2", created_at=T0 + timedelta(minutes=2)))
    repo.update_status(old.id, OrderStatus.READY)

    assert [o.code for o in repo.list()] == [other.code, new.code, old.code]
    assert [o.code for o in repo.list(OrderStatus.READY)] == [old.code]
    assert [o.code for o in repo.list_by_customer("c-1")] == [new.code, old.code]
    assert repo.list_by_customer("nobody") == []

from collections.abc import Generator

import pytest

from coupon_restrictions import storage
from coupon_restrictions.models import Order, OrderStatus
from coupon_restrictions.storage import CouponStore, CustomerStore


@pytest.fixture(autouse=True)
def _clear_in_memory_stores() -> Generator[None, None, None]:
    storage.reset()
    yield
    storage.reset()


@pytest.fixture
def customers() -> CustomerStore:
    """A store where returning@mailbox.org has one completed order."""
    store = CustomerStore(accounts={}, orders=[])
    store.add_order(Order(orderId=1, email="returning@mailbox.org", status=OrderStatus.COMPLETED))
    return store


@pytest.fixture
def coupons() -> CouponStore:
    return CouponStore(coupons={})

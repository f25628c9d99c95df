"""Shared test setup: environment overrides and model builders."""
import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Must be set before app.core.config is first imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402

from app.models.customer import Customer  # noqa: E402
from app.models.order import Order  # noqa: E402

BASE_TIME = datetime(2025, 3, 14, 9, 30, 0, tzinfo=timezone.utc)


def make_customer(
    customer_id: uuid.UUID | None = None,
    first_name: str = "John",
    last_name: str = "Smith",
    email: str = "john.smith@example.com",
    phone: str = "+380501112233",
    city: str = "Kyiv",
) -> Customer:
    return Customer(
        id=customer_id or uuid.uuid4(),
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        city=city,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def make_order(
    customer: Customer,
    amount: str = "100.50",
    status: str = "NEW",
    payment_method: str | None = "CARD",
    created_at: datetime | None = None,
) -> Order:
    order = Order(
        id=uuid.uuid4(),
        customer_id=customer.id,
        amount=Decimal(amount),
        status=status,
        payment_method=payment_method,
        created_at=created_at or BASE_TIME,
        updated_at=created_at or BASE_TIME,
    )
    order.customer = customer
    return order


class FakeOrderStream:
    """Stand-in for an AsyncScalarResult cursor: async-iterable and closable."""

    def __init__(self, orders, fail_after: int | None = None):
        self._orders = list(orders)
        self._fail_after = fail_after
        self.closed = False
        self.rows_read = 0

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for index, order in enumerate(self._orders):
            if self._fail_after is not None and index == self._fail_after:
                raise ConnectionError("server closed the connection unexpectedly")
            self.rows_read += 1
            yield order

    async def close(self):
        self.closed = True


@pytest.fixture
def customer() -> Customer:
    return make_customer()


@pytest.fixture
def store_orders(customer) -> list[Order]:
    """Two NEW orders and one DONE order, newest first."""
    other = make_customer(first_name="Maria", last_name="Garcia, Jr.", email="maria@example.com")
    return [
        make_order(customer, "100.50", "NEW", "CARD", BASE_TIME + timedelta(hours=2)),
        make_order(other, "7.25", "DONE", "CASH", BASE_TIME + timedelta(hours=1)),
        make_order(customer, "310.00", "NEW", "PAYPAL", BASE_TIME),
    ]


def fake_stream_filtered(orders, fail_after: int | None = None, streams: list | None = None):
    """Build a replacement for order_store.stream_filtered that filters ``orders`` in memory."""
    async def _stream(db, customer_id=None, status=None, payment_method=None):
        matching = [
            o for o in orders
            if (customer_id is None or o.customer_id == customer_id)
            and (status is None or o.status == status.value)
            and (payment_method is None or o.payment_method == payment_method.value)
        ]
        stream = FakeOrderStream(matching, fail_after=fail_after)
        if streams is not None:
            streams.append(stream)
        return stream
    return _stream

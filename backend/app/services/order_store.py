"""Order persistence operations shared by the CRUD routes and the pipelines.

The report pipeline only needs ``stream_filtered``; the import pipeline only
needs ``bulk_insert``, ``find_customer_by_id`` and the enum membership tests.
"""
import enum
import logging
import uuid
from typing import Sequence, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncScalarResult, AsyncSession
from sqlalchemy.orm import joinedload

from app.core.config import settings
from app.core.exceptions import InvalidParameter
from app.models.customer import Customer
from app.models.order import Order, OrderStatus, PaymentMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=enum.Enum)


# ─── Enum membership ───

def is_known_status(value: str) -> bool:
    return value.upper() in OrderStatus.__members__


def is_known_payment_method(value: str) -> bool:
    return value.upper() in PaymentMethod.__members__


def parse_enum(enum_cls: type[E], raw: str | None, field: str) -> E | None:
    """Case-insensitive enum lookup for request input; blank means absent."""
    if raw is None or not raw.strip():
        return None
    try:
        return enum_cls[raw.strip().upper()]
    except KeyError:
        allowed = ", ".join(m.name for m in enum_cls)
        raise InvalidParameter(f"Invalid {field}: '{raw}'. Allowed values: {allowed}")


def require_enum(enum_cls: type[E], raw: str | None, field: str) -> E:
    """Like ``parse_enum``, but a blank value is rejected too."""
    value = parse_enum(enum_cls, raw, field)
    if value is None:
        raise InvalidParameter(f"'{field}' is required")
    return value


# ─── Queries ───

def filtered_orders_query(
    customer_id: uuid.UUID | None = None,
    status: OrderStatus | None = None,
    payment_method: PaymentMethod | None = None,
) -> Select[tuple[Order]]:
    """Orders matching every given filter term; absent terms impose no constraint."""
    stmt = select(Order)
    if customer_id is not None:
        stmt = stmt.where(Order.customer_id == customer_id)
    if status is not None:
        stmt = stmt.where(Order.status == status.value)
    if payment_method is not None:
        stmt = stmt.where(Order.payment_method == payment_method.value)
    return stmt


async def stream_filtered(
    db: AsyncSession,
    customer_id: uuid.UUID | None = None,
    status: OrderStatus | None = None,
    payment_method: PaymentMethod | None = None,
) -> AsyncScalarResult[Order]:
    """Open a server-side cursor over matching orders, newest first.

    The caller owns the returned result and must ``await result.close()``.
    """
    stmt = (
        filtered_orders_query(customer_id, status, payment_method)
        .options(joinedload(Order.customer))
        .order_by(Order.created_at.desc())
        .execution_options(yield_per=settings.REPORT_FETCH_SIZE)
    )
    return await db.stream_scalars(stmt)


async def find_customer_by_id(db: AsyncSession, customer_id: uuid.UUID) -> Customer | None:
    return await db.get(Customer, customer_id)


async def bulk_insert(db: AsyncSession, orders: Sequence[Order]) -> None:
    """Persist one batch in its own transaction.

    Failure propagates; batches committed earlier stay committed.
    """
    db.add_all(orders)
    await db.commit()
    logger.debug("Bulk inserted %d orders", len(orders))

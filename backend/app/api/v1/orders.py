"""Order management API endpoints: paginated list, filtered list and CRUD."""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import NotFound
from app.core.pagination import (
    SortConstraint,
    order_by_clauses,
    parse_sort_params,
    total_pages,
    validate_pageable,
)
from app.db.session import get_session
from app.models.order import Order, OrderStatus, PaymentMethod
from app.schemas.common import MessageResponse
from app.schemas.order import (
    OrderCreate,
    OrderFilter,
    OrderListResponse,
    OrderOut,
    OrderShortListResponse,
    OrderShortOut,
    OrderUpdate,
)
from app.services import order_store

logger = logging.getLogger(__name__)

router = APIRouter()

ORDER_SORT = SortConstraint.allow("status", "paymentMethod", "amount")

ORDER_SORT_COLUMNS = {
    "status": Order.status,
    "paymentMethod": Order.payment_method,
    "amount": Order.amount,
}


async def _get_order_or_404(db: AsyncSession, order_id: uuid.UUID) -> Order:
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.customer))
        .execution_options(populate_existing=True)
    )
    order = (await db.execute(stmt)).scalar_one_or_none()
    if order is None:
        raise NotFound("Order", order_id)
    return order


# ─── List orders ───

@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders, paginated; sortable by status, paymentMethod, amount",
)
async def list_orders(
    db: Annotated[AsyncSession, Depends(get_session)],
    page: str | None = Query(default=None, description="Zero-based page index"),
    size: str | None = Query(default=None, description="Page size (default 5)"),
    sort: list[str] = Query(default=[], description="field[,asc|desc], repeatable"),
):
    pageable = validate_pageable(page, size, parse_sort_params(sort), ORDER_SORT)

    total = (await db.execute(select(func.count()).select_from(Order))).scalar_one()

    stmt = (
        select(Order)
        .options(selectinload(Order.customer))
        .order_by(*order_by_clauses(pageable.sort, ORDER_SORT_COLUMNS), Order.id)
        .offset(pageable.offset)
        .limit(pageable.size)
    )
    orders = (await db.execute(stmt)).scalars().all()

    return OrderListResponse(
        orders=[OrderOut.model_validate(o) for o in orders],
        total_pages=total_pages(total, pageable.size),
    )


# ─── Filtered list ───

@router.post(
    "/_list",
    response_model=OrderShortListResponse,
    summary="Filter orders by customer, status and payment method, paginated",
)
async def filter_orders(
    body: OrderFilter,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    if body.customer_id is not None and await order_store.find_customer_by_id(db, body.customer_id) is None:
        raise NotFound("Customer", body.customer_id)

    query = order_store.filtered_orders_query(
        customer_id=body.customer_id,
        status=order_store.parse_enum(OrderStatus, body.status, "status"),
        payment_method=order_store.parse_enum(PaymentMethod, body.payment_method, "payment method"),
    )
    page = body.page or 0
    size = body.size or settings.DEFAULT_PAGE_SIZE

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    stmt = query.order_by(Order.created_at.desc(), Order.id).offset(page * size).limit(size)
    orders = (await db.execute(stmt)).scalars().all()

    return OrderShortListResponse(
        orders=[OrderShortOut.model_validate(o) for o in orders],
        total_pages=total_pages(total, size),
    )


# ─── Get order ───

@router.get("/{order_id}", response_model=OrderOut, summary="Get order by ID")
async def get_order(
    order_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    return await _get_order_or_404(db, order_id)


# ─── Create order ───

@router.post(
    "",
    response_model=OrderOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an order for an existing customer",
)
async def create_order(
    body: OrderCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    customer = await order_store.find_customer_by_id(db, body.customer_id)
    if customer is None:
        raise NotFound("Customer", body.customer_id)

    order = Order(
        customer_id=customer.id,
        status=order_store.require_enum(OrderStatus, body.status, "status").value,
        payment_method=order_store.require_enum(PaymentMethod, body.payment_method, "payment method").value,
        amount=body.amount,
    )
    order.customer = customer
    db.add(order)
    await db.commit()
    logger.info("Order created: %s for customer %s", order.id, customer.id)
    return order


# ─── Update order ───

@router.put("/{order_id}", response_model=OrderOut, summary="Update status, payment method and amount")
async def update_order(
    order_id: uuid.UUID,
    body: OrderUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    order = await _get_order_or_404(db, order_id)
    order.status = order_store.require_enum(OrderStatus, body.status, "status").value
    order.payment_method = order_store.require_enum(PaymentMethod, body.payment_method, "payment method").value
    order.amount = body.amount
    await db.commit()
    return order


# ─── Delete order ───

@router.delete("/{order_id}", response_model=MessageResponse, summary="Delete an order")
async def delete_order(
    order_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    order = await _get_order_or_404(db, order_id)
    await db.delete(order)
    await db.commit()
    logger.info("Order deleted: %s", order_id)
    return MessageResponse(status=status.HTTP_200_OK, message=f"Order with id '{order_id}' was deleted.")

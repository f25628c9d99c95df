"""Customer management API endpoints: paginated list and CRUD."""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AlreadyExists, NotFound
from app.core.pagination import (
    SortConstraint,
    order_by_clauses,
    parse_sort_params,
    total_pages,
    validate_pageable,
)
from app.db.session import get_session
from app.models.customer import Customer
from app.schemas.common import MessageResponse
from app.schemas.customer import CustomerCreate, CustomerListResponse, CustomerOut, CustomerUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

CUSTOMER_SORT = SortConstraint.allow("firstName", "lastName", "city")

CUSTOMER_SORT_COLUMNS = {
    "firstName": Customer.first_name,
    "lastName": Customer.last_name,
    "city": Customer.city,
}


async def _get_customer_or_404(db: AsyncSession, customer_id: uuid.UUID) -> Customer:
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise NotFound("Customer", customer_id)
    return customer


async def _ensure_email_free(db: AsyncSession, email: str, exclude_id: uuid.UUID | None = None) -> None:
    stmt = select(Customer.id).where(Customer.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Customer.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise AlreadyExists("Customer", "email", email)


# ─── List customers ───

@router.get(
    "",
    response_model=CustomerListResponse,
    summary="List customers, paginated; sortable by firstName, lastName, city",
)
async def list_customers(
    db: Annotated[AsyncSession, Depends(get_session)],
    page: str | None = Query(default=None, description="Zero-based page index"),
    size: str | None = Query(default=None, description="Page size (default 5)"),
    sort: list[str] = Query(default=[], description="field[,asc|desc], repeatable"),
):
    pageable = validate_pageable(page, size, parse_sort_params(sort), CUSTOMER_SORT)

    total = (await db.execute(select(func.count()).select_from(Customer))).scalar_one()

    stmt = (
        select(Customer)
        .order_by(*order_by_clauses(pageable.sort, CUSTOMER_SORT_COLUMNS), Customer.id)
        .offset(pageable.offset)
        .limit(pageable.size)
    )
    customers = (await db.execute(stmt)).scalars().all()

    return CustomerListResponse(
        customers=[CustomerOut.model_validate(c) for c in customers],
        total_pages=total_pages(total, pageable.size),
    )


# ─── Get customer ───

@router.get("/{customer_id}", response_model=CustomerOut, summary="Get customer by ID")
async def get_customer(
    customer_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    return await _get_customer_or_404(db, customer_id)


# ─── Create customer ───

@router.post(
    "",
    response_model=CustomerOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a customer; email must be unique",
)
async def create_customer(
    body: CustomerCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    await _ensure_email_free(db, body.email)

    customer = Customer(**body.model_dump())
    db.add(customer)
    await db.commit()
    logger.info("Customer created: %s", customer.id)
    return customer


# ─── Update customer ───

@router.put("/{customer_id}", response_model=CustomerOut, summary="Replace customer details")
async def update_customer(
    customer_id: uuid.UUID,
    body: CustomerUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    customer = await _get_customer_or_404(db, customer_id)
    if body.email != customer.email:
        await _ensure_email_free(db, body.email, exclude_id=customer_id)

    for field, value in body.model_dump().items():
        setattr(customer, field, value)
    await db.commit()
    return customer


# ─── Delete customer ───

@router.delete("/{customer_id}", response_model=MessageResponse, summary="Delete a customer and their orders")
async def delete_customer(
    customer_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    customer = await _get_customer_or_404(db, customer_id)
    await db.delete(customer)
    await db.commit()
    logger.info("Customer deleted: %s", customer_id)
    return MessageResponse(status=status.HTTP_200_OK, message=f"Customer with id '{customer_id}' was deleted.")

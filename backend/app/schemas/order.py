"""Pydantic schemas for order API endpoints."""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel
from app.schemas.customer import CustomerOut


# ─── Output ───

class OrderOut(CamelModel):
    id: uuid.UUID
    amount: Decimal
    status: str
    payment_method: str | None
    created_at: datetime
    customer: CustomerOut


class OrderShortOut(CamelModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    amount: Decimal
    status: str
    payment_method: str | None
    created_at: datetime


class OrderListResponse(CamelModel):
    orders: list[OrderOut]
    total_pages: int


class OrderShortListResponse(CamelModel):
    orders: list[OrderShortOut]
    total_pages: int


# ─── Create / edit ───

class OrderUpdate(CamelModel):
    status: str
    payment_method: str
    amount: Decimal = Field(gt=0)


class OrderCreate(OrderUpdate):
    customer_id: uuid.UUID


# ─── Filters ───

class OrderFilter(CamelModel):
    """Body of POST /orders/_list. An empty body lists everything."""
    customer_id: uuid.UUID | None = None
    status: str | None = None
    payment_method: str | None = None
    page: int | None = Field(default=None, ge=0)
    size: int | None = Field(default=None, ge=1, le=100)


class ReportFilter(CamelModel):
    """Body of POST /orders/_report. Built once per request, never mutated."""
    model_config = ConfigDict(frozen=True)

    customer_id: uuid.UUID | None = None
    status: str | None = None
    payment_method: str | None = None
    file_type: str | None = "csv"

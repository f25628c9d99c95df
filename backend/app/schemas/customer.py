"""Pydantic schemas for customer API endpoints."""
import uuid

from pydantic import EmailStr, Field

from app.schemas.common import CamelModel


# ─── Output ───

class CustomerOut(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: str
    city: str


class CustomerListResponse(CamelModel):
    customers: list[CustomerOut]
    total_pages: int


# ─── Create / edit ───

class CustomerCreate(CamelModel):
    first_name: str = Field(min_length=3, max_length=100)
    last_name: str = Field(min_length=3, max_length=100)
    email: EmailStr
    phone: str = Field(min_length=3, max_length=50)
    city: str = Field(min_length=3, max_length=255)


class CustomerUpdate(CustomerCreate):
    pass

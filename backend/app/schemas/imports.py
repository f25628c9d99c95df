"""Pydantic schemas for JSON bulk order import."""
from typing import Any

from pydantic import ConfigDict, field_validator

from app.schemas.common import CamelModel


class OrderImportRecord(CamelModel):
    """One element of the uploaded JSON array, before validation.

    Unknown keys (``orderId`` in exported files) are ignored.
    """
    model_config = ConfigDict(extra="ignore")

    customer_id: str | None = None
    amount: float | None = None
    status: str | None = None
    payment_method: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def reject_boolean_amount(cls, value: Any) -> Any:
        # Lax float parsing would turn true/false into 1.0/0.0.
        if isinstance(value, bool):
            raise ValueError("amount must be a number, not a boolean")
        return value


class ImportRowError(CamelModel):
    line_number: int
    reason: str
    details: str


class ImportResult(CamelModel):
    total_records: int
    successful_imports: int
    failed_imports: int
    errors: list[ImportRowError]

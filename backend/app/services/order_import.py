"""Bulk order import from an uploaded JSON array.

The array is decoded one element at a time. Each element is validated on its
own; failures are collected as ``ImportRowError`` entries and never stop the
run. Valid orders are persisted in batches of ``IMPORT_BATCH_SIZE``, each
batch committed in its own transaction.

A failing batch write aborts the import and propagates. Batches committed
before it are not rolled back, so a partially imported file is possible.
"""
import itertools
import logging
import math
import uuid
from decimal import Decimal
from typing import Any, BinaryIO, Iterator

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidInput
from app.models.customer import Customer
from app.models.order import Order, OrderStatus, PaymentMethod
from app.schemas.imports import ImportResult, ImportRowError, OrderImportRecord
from app.services import order_store
from app.services.json_stream import JsonArrayReader

logger = logging.getLogger(__name__)

# ─── Reason codes ───

PARSE_ERROR = "Parse error"
MISSING_CUSTOMER_ID = "Missing customer ID"
INVALID_AMOUNT = "Invalid amount"
MISSING_STATUS = "Missing status"
INVALID_CUSTOMER_ID = "Invalid customer ID format"
CUSTOMER_NOT_FOUND = "Customer not found"
INVALID_STATUS = "Invalid status"
INVALID_PAYMENT_METHOD = "Invalid payment method"


def validate_upload(filename: str | None, size: int | None) -> None:
    """Reject the upload itself before any of it is parsed."""
    if not size:
        raise InvalidInput("Uploaded file is empty")
    if not filename or not filename.lower().endswith(".json"):
        raise InvalidInput("Only JSON files are allowed")
    if size > settings.IMPORT_MAX_FILE_SIZE:
        limit_mb = settings.IMPORT_MAX_FILE_SIZE // (1024 * 1024)
        raise InvalidInput(f"File size exceeds maximum allowed size of {limit_mb}MB")


def _take(elements: Iterator[Any], count: int) -> list[Any]:
    return list(itertools.islice(elements, count))


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "record"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class OrderImporter:
    """Single-use importer; one instance per uploaded file."""

    def __init__(self, db: AsyncSession, batch_size: int | None = None):
        self._db = db
        self._batch_size = batch_size or settings.IMPORT_BATCH_SIZE
        self._pending: list[Order] = []
        self._errors: list[ImportRowError] = []
        self._customers: dict[uuid.UUID, Customer | None] = {}
        self.batches_written = 0

    def _reject(self, line_number: int, reason: str, details: str) -> None:
        self._errors.append(ImportRowError(line_number=line_number, reason=reason, details=details))
        logger.warning("Import record %d rejected: %s (%s)", line_number, reason, details)

    async def _customer(self, customer_id: uuid.UUID) -> Customer | None:
        if customer_id not in self._customers:
            self._customers[customer_id] = await order_store.find_customer_by_id(self._db, customer_id)
        return self._customers[customer_id]

    async def _to_order(self, element: Any, line_number: int) -> Order | None:
        """Validate one array element; None means it was rejected and recorded."""
        try:
            record = OrderImportRecord.model_validate(element)
        except ValidationError as exc:
            self._reject(line_number, PARSE_ERROR, _describe(exc))
            return None

        if record.customer_id is None or not record.customer_id.strip():
            self._reject(line_number, MISSING_CUSTOMER_ID, "customerId is required")
            return None

        if record.amount is None or not math.isfinite(record.amount) or record.amount <= 0:
            self._reject(line_number, INVALID_AMOUNT, f"Amount must be positive, got: {record.amount}")
            return None

        if record.status is None or not record.status.strip():
            self._reject(line_number, MISSING_STATUS, "status is required")
            return None

        try:
            customer_id = uuid.UUID(record.customer_id.strip())
        except ValueError:
            self._reject(line_number, INVALID_CUSTOMER_ID, f"Expected UUID, got: {record.customer_id}")
            return None

        customer = await self._customer(customer_id)
        if customer is None:
            self._reject(line_number, CUSTOMER_NOT_FOUND, f"No customer with ID: {customer_id}")
            return None

        if not order_store.is_known_status(record.status.strip()):
            self._reject(line_number, INVALID_STATUS, f"Unknown status: {record.status}")
            return None

        payment_method = (record.payment_method or "").strip()
        if not payment_method or not order_store.is_known_payment_method(payment_method):
            self._reject(line_number, INVALID_PAYMENT_METHOD, f"Unknown payment method: {record.payment_method}")
            return None

        return Order(
            customer_id=customer.id,
            amount=Decimal(str(record.amount)),
            status=OrderStatus[record.status.strip().upper()].value,
            payment_method=PaymentMethod[payment_method.upper()].value,
        )

    async def _flush(self) -> None:
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        await order_store.bulk_insert(self._db, batch)
        self.batches_written += 1

    async def run(self, stream: BinaryIO) -> ImportResult:
        total = successful = 0
        elements = iter(JsonArrayReader(stream, chunk_size=settings.IMPORT_READ_CHUNK_SIZE))

        # The upload may have spilled to disk; blocking reads run in the threadpool,
        # one batch worth of elements per hop.
        while chunk := await run_in_threadpool(_take, elements, self._batch_size):
            for element in chunk:
                total += 1
                order = await self._to_order(element, total)
                if order is None:
                    continue
                successful += 1
                self._pending.append(order)
                if len(self._pending) >= self._batch_size:
                    await self._flush()

        await self._flush()

        return ImportResult(
            total_records=total,
            successful_imports=successful,
            failed_imports=total - successful,
            errors=self._errors,
        )


async def import_orders(
    db: AsyncSession,
    stream: BinaryIO,
    filename: str | None,
    size: int | None,
) -> ImportResult:
    """Validate the upload, then import every element of its JSON array."""
    validate_upload(filename, size)
    logger.info("Importing orders from %s (%s bytes)", filename, size)

    result = await OrderImporter(db).run(stream)

    logger.info(
        "Import completed: %d total, %d successful, %d failed",
        result.total_records, result.successful_imports, result.failed_imports,
    )
    return result

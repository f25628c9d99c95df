"""Streaming order report generation.

Orders are pulled from a server-side cursor one at a time and handed to a
format-specific writer, so memory use does not grow with the result size.
The cursor is closed on every exit path, and a writer that does not finish
is discarded along with any temporary files it holds.
"""
import enum
import logging
from typing import AsyncIterator, BinaryIO

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ReportGenerationFailed, UnsupportedFormat
from app.models.order import Order, OrderStatus, PaymentMethod
from app.schemas.order import ReportFilter
from app.services import order_store
from app.services.report_writers import CsvReportWriter, ReportWriter, XlsxReportWriter

logger = logging.getLogger(__name__)


class ReportFileType(str, enum.Enum):
    CSV = "csv"
    XLSX = "xlsx"

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @classmethod
    def from_value(cls, value: str | None) -> "ReportFileType":
        """Resolve a request value; absent or blank means CSV."""
        if value is None or not value.strip():
            return cls.CSV
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise UnsupportedFormat(f"Invalid file type: '{value}'. Allowed values: {allowed}")


_MEDIA_TYPES = {
    ReportFileType.CSV: "text/csv",
    ReportFileType.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def create_writer(file_type: ReportFileType, sink: BinaryIO) -> ReportWriter:
    if file_type is ReportFileType.CSV:
        return CsvReportWriter(sink)
    if file_type is ReportFileType.XLSX:
        return XlsxReportWriter(sink, window_size=settings.XLSX_ROW_WINDOW)
    raise UnsupportedFormat(f"Unsupported file type: {file_type}")


async def write_report(orders: AsyncIterator[Order], writer: ReportWriter) -> int:
    """Write the header, then one row per order in iteration order. Returns the row count."""
    writer.write_header()
    rows = 0
    async for order in orders:
        writer.write_order(order)
        rows += 1
    writer.close()
    return rows


async def generate_report(db: AsyncSession, report_filter: ReportFilter, sink: BinaryIO) -> int:
    """Write every order matching ``report_filter`` to ``sink``, newest first.

    Args:
        db: Async session; the cursor is opened on it and closed before returning.
        report_filter: Optional customer/status/payment filters and the file type.
        sink: Binary destination. After a failure its contents must be discarded.

    Returns:
        Number of data rows written (header excluded).

    Raises:
        UnsupportedFormat: file type is unknown; nothing has been written.
        InvalidParameter: status or payment method filter is not a known value.
        ReportGenerationFailed: the query or the write failed part-way.
    """
    file_type = ReportFileType.from_value(report_filter.file_type)
    status = order_store.parse_enum(OrderStatus, report_filter.status, "status")
    payment_method = order_store.parse_enum(PaymentMethod, report_filter.payment_method, "payment method")

    logger.info(
        "Generating %s report with filters: customer_id=%s, status=%s, payment_method=%s",
        file_type.value, report_filter.customer_id, status, payment_method,
    )

    writer = create_writer(file_type, sink)
    orders = None
    try:
        orders = await order_store.stream_filtered(
            db,
            customer_id=report_filter.customer_id,
            status=status,
            payment_method=payment_method,
        )
        rows = await write_report(orders, writer)
    except Exception as exc:
        writer.discard()
        logger.error("%s report generation failed: %s", file_type.value, exc, exc_info=True)
        raise ReportGenerationFailed(f"Failed to generate {file_type.value} report: {exc}") from exc
    finally:
        if orders is not None:
            await orders.close()

    logger.info("%s report generated: %d rows", file_type.value, rows)
    return rows

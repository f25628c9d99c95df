"""Row-at-a-time order report writers (CSV and XLSX).

Both writers take a binary sink, emit a fixed header row followed by one row
per order, and never hold more than a small window of rows in memory.
"""
import csv
import io
import logging
import os
from datetime import datetime
from typing import Any, BinaryIO, Protocol

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from app.models.order import Order

logger = logging.getLogger(__name__)

REPORT_HEADERS = (
    "Order ID",
    "Customer ID",
    "Customer Name",
    "Email",
    "Amount",
    "Status",
    "Payment Method",
    "Created At",
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

AMOUNT_COLUMN = REPORT_HEADERS.index("Amount")


def format_timestamp(value: datetime | None) -> str:
    """Render in the local system time zone; naive values are taken as local."""
    if value is None:
        return ""
    return value.astimezone().strftime(TIMESTAMP_FORMAT)


def order_row(order: Order) -> list[Any]:
    """Report column values for one order; amount is left unformatted."""
    customer = order.customer
    return [
        str(order.id),
        str(customer.id),
        customer.full_name,
        customer.email,
        order.amount,
        order.status,
        order.payment_method or "",
        format_timestamp(order.created_at),
    ]


class ReportWriter(Protocol):
    def write_header(self) -> None: ...

    def write_order(self, order: Order) -> None: ...

    def close(self) -> None: ...

    def discard(self) -> None: ...


# ─── CSV ───

class CsvReportWriter:
    """Standard CSV: fields holding a comma, quote or newline are quoted, quotes doubled."""

    def __init__(self, sink: BinaryIO, encoding: str = "utf-8"):
        self._sink = sink
        self._encoding = encoding
        self._line = io.StringIO()
        self._writer = csv.writer(self._line, lineterminator="\n")

    def _emit(self, values: list[Any] | tuple[str, ...]) -> None:
        self._writer.writerow(values)
        self._sink.write(self._line.getvalue().encode(self._encoding))
        self._line.seek(0)
        self._line.truncate()

    def write_header(self) -> None:
        self._emit(REPORT_HEADERS)

    def write_order(self, order: Order) -> None:
        row = order_row(order)
        row[AMOUNT_COLUMN] = str(row[AMOUNT_COLUMN])
        self._emit(row)

    def close(self) -> None:
        self._sink.flush()

    def discard(self) -> None:
        """Release the line buffer; the sink belongs to the caller."""
        self._line.close()


# ─── XLSX ───

_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_HEADER_FONT = Font(bold=True, size=11)
_HEADER_FILL = PatternFill(fill_type="solid", start_color="FFC0C0C0", end_color="FFC0C0C0")
_HEADER_ALIGNMENT = Alignment(horizontal="center")


class XlsxReportWriter:
    """Single-sheet "Orders" workbook built with openpyxl's write-only mode.

    Appended rows are held in a window of ``window_size`` rows and flushed to
    the worksheet (which spools them to a temporary file) whenever the window
    fills. ``close`` flushes the remainder and writes the zipped workbook to
    the sink. A write-only workbook can only be saved once.
    """

    SHEET_TITLE = "Orders"

    def __init__(self, sink: BinaryIO, window_size: int = 100):
        self._sink = sink
        self._window_size = window_size
        self._window: list[list[Any]] = []
        self._workbook = Workbook(write_only=True)
        self._sheet = self._workbook.create_sheet(title=self.SHEET_TITLE)
        self.rows_flushed = 0

    @property
    def buffered_rows(self) -> int:
        return len(self._window)

    def _cell(self, value: Any, header: bool = False) -> Any:
        cell = WriteOnlyCell(self._sheet, value=value)
        cell.border = _BORDER
        if header:
            cell.font = _HEADER_FONT
            cell.fill = _HEADER_FILL
            cell.alignment = _HEADER_ALIGNMENT
        return cell

    def _append(self, cells: list[Any]) -> None:
        self._window.append(cells)
        if len(self._window) >= self._window_size:
            self.flush()

    def flush(self) -> None:
        for cells in self._window:
            self._sheet.append(cells)
        self.rows_flushed += len(self._window)
        self._window = []

    def write_header(self) -> None:
        self._append([self._cell(title, header=True) for title in REPORT_HEADERS])

    def write_order(self, order: Order) -> None:
        cells = []
        for column, value in enumerate(order_row(order)):
            if column == AMOUNT_COLUMN:
                value = float(value)
            cells.append(self._cell(value))
        self._append(cells)

    def close(self) -> None:
        self.flush()
        self._workbook.save(self._sink)
        logger.debug("XLSX workbook saved (%d rows)", self.rows_flushed)

    def discard(self) -> None:
        """Abandon an unfinished workbook and remove the sheet's spool file.

        Nothing is written to the sink. Safe to call after a failed ``close``.
        """
        self._window = []
        writer = self._sheet._writer
        if writer is None:
            return
        if not self._sheet.closed:
            try:
                self._sheet.close()
            except Exception as exc:
                logger.warning("Could not close XLSX sheet spool cleanly: %s", exc)
        if os.path.exists(writer.out):
            writer.cleanup()
        logger.debug("XLSX workbook discarded after %d rows", self.rows_flushed)

"""Tests for report generation: filtering, cursor lifecycle and failures."""
import csv
import glob
import io
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from openpyxl import load_workbook
from sqlalchemy.dialects import postgresql

from app.core.exceptions import InvalidParameter, ReportGenerationFailed, UnsupportedFormat
from app.models.order import OrderStatus, PaymentMethod
from app.schemas.order import ReportFilter
from app.services import order_store
from app.services.report import ReportFileType, generate_report
from app.services.report_writers import CsvReportWriter, XlsxReportWriter
from conftest import fake_stream_filtered


def _lines(sink: io.BytesIO) -> list[list[str]]:
    return list(csv.reader(io.StringIO(sink.getvalue().decode("utf-8"))))


# ─── File type resolution ─────────────────────────────────────────────────────

@pytest.mark.parametrize("value", [None, "", "  ", "csv", "CSV"])
def test_file_type_defaults_to_csv(value):
    assert ReportFileType.from_value(value) is ReportFileType.CSV


def test_file_type_xlsx():
    file_type = ReportFileType.from_value("xlsx")
    assert file_type is ReportFileType.XLSX
    assert file_type.extension == ".xlsx"
    assert file_type.media_type.endswith("spreadsheetml.sheet")


def test_unknown_file_type_lists_allowed_values():
    with pytest.raises(UnsupportedFormat) as exc_info:
        ReportFileType.from_value("pdf")
    assert "pdf" in exc_info.value.message
    assert "csv, xlsx" in exc_info.value.message


# ─── Query construction ───────────────────────────────────────────────────────

def test_filtered_query_without_filters_has_no_where_clause():
    sql = str(order_store.filtered_orders_query().compile(dialect=postgresql.dialect()))
    assert "WHERE" not in sql


def test_filtered_query_combines_terms_with_and(customer):
    stmt = order_store.filtered_orders_query(
        customer_id=customer.id, status=OrderStatus.NEW, payment_method=PaymentMethod.CARD,
    )
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "orders.customer_id =" in sql
    assert "orders.status =" in sql
    assert "orders.payment_method =" in sql
    assert sql.count(" AND ") == 2


@pytest.mark.asyncio
async def test_stream_filtered_uses_server_side_cursor_newest_first():
    db = MagicMock()
    db.stream_scalars = AsyncMock(return_value="cursor")

    result = await order_store.stream_filtered(db, status=OrderStatus.DONE)

    assert result == "cursor"
    stmt = db.stream_scalars.call_args.args[0]
    assert stmt.get_execution_options()["yield_per"] == 50
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "ORDER BY orders.created_at DESC" in sql
    assert "JOIN customers" in sql


def test_parse_enum_is_case_insensitive():
    assert order_store.parse_enum(OrderStatus, "new", "status") is OrderStatus.NEW
    assert order_store.parse_enum(PaymentMethod, " google_pay ", "payment method") is PaymentMethod.GOOGLE_PAY
    assert order_store.parse_enum(OrderStatus, "", "status") is None


def test_parse_enum_rejects_unknown_value():
    with pytest.raises(InvalidParameter, match="Invalid status: 'SHIPPED'"):
        order_store.parse_enum(OrderStatus, "SHIPPED", "status")


def test_require_enum_rejects_blank_value():
    with pytest.raises(InvalidParameter, match="'payment method' is required"):
        order_store.require_enum(PaymentMethod, "  ", "payment method")
    assert order_store.require_enum(PaymentMethod, "cash", "payment method") is PaymentMethod.CASH


# ─── generate_report ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_csv_report_contains_only_matching_orders(store_orders):
    streams = []
    sink = io.BytesIO()
    with patch.object(order_store, "stream_filtered", fake_stream_filtered(store_orders, streams=streams)):
        rows = await generate_report(MagicMock(), ReportFilter(status="NEW"), sink)

    lines = _lines(sink)
    assert rows == 2
    assert len(lines) == 3
    assert all(line[5] == "NEW" for line in lines[1:])
    assert [line[0] for line in lines[1:]] == [str(store_orders[0].id), str(store_orders[2].id)]
    assert streams[0].closed


@pytest.mark.asyncio
async def test_report_filter_by_customer_and_payment_method(store_orders, customer):
    sink = io.BytesIO()
    report_filter = ReportFilter(customer_id=customer.id, payment_method="paypal")
    with patch.object(order_store, "stream_filtered", fake_stream_filtered(store_orders)):
        rows = await generate_report(MagicMock(), report_filter, sink)

    lines = _lines(sink)
    assert rows == 1
    assert lines[1][1] == str(customer.id)
    assert lines[1][6] == "PAYPAL"


@pytest.mark.asyncio
async def test_empty_result_yields_header_only(store_orders):
    sink = io.BytesIO()
    with patch.object(order_store, "stream_filtered", fake_stream_filtered(store_orders)):
        rows = await generate_report(MagicMock(), ReportFilter(status="CANCELED"), sink)
    assert rows == 0
    assert len(_lines(sink)) == 1


@pytest.mark.asyncio
async def test_xlsx_report(store_orders):
    sink = io.BytesIO()
    with patch.object(order_store, "stream_filtered", fake_stream_filtered(store_orders)):
        rows = await generate_report(MagicMock(), ReportFilter(file_type="xlsx"), sink)

    sink.seek(0)
    sheet = load_workbook(sink)["Orders"]
    assert rows == 3
    assert sheet.max_row == 4


@pytest.mark.asyncio
async def test_unsupported_format_fails_before_query():
    stream = AsyncMock()
    sink = io.BytesIO()
    with patch.object(order_store, "stream_filtered", stream):
        with pytest.raises(UnsupportedFormat):
            await generate_report(MagicMock(), ReportFilter(file_type="pdf"), sink)
    stream.assert_not_called()
    assert sink.getvalue() == b""


@pytest.mark.asyncio
async def test_invalid_status_filter_fails_before_query():
    stream = AsyncMock()
    with patch.object(order_store, "stream_filtered", stream):
        with pytest.raises(InvalidParameter):
            await generate_report(MagicMock(), ReportFilter(status="SHIPPED"), io.BytesIO())
    stream.assert_not_called()


@pytest.mark.asyncio
async def test_cursor_failure_mid_stream_closes_cursor(store_orders):
    streams = []
    fake = fake_stream_filtered(store_orders, fail_after=1, streams=streams)
    with patch.object(order_store, "stream_filtered", fake):
        with pytest.raises(ReportGenerationFailed) as exc_info:
            await generate_report(MagicMock(), ReportFilter(), io.BytesIO())

    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert exc_info.value.status_code == 500
    assert streams[0].rows_read == 1
    assert streams[0].closed


@pytest.mark.asyncio
async def test_query_failure_is_wrapped():
    failing = AsyncMock(side_effect=RuntimeError("relation \"orders\" does not exist"))
    with patch.object(order_store, "stream_filtered", failing):
        with pytest.raises(ReportGenerationFailed, match="Failed to generate csv report"):
            await generate_report(MagicMock(), ReportFilter(), io.BytesIO())


@pytest.mark.parametrize("file_type,writer_cls", [("csv", CsvReportWriter), ("xlsx", XlsxReportWriter)])
@pytest.mark.asyncio
async def test_writer_failure_mid_report_closes_cursor(store_orders, file_type, writer_cls):
    streams = []
    failing_write = MagicMock(side_effect=[None, OSError("No space left on device")])
    with patch.object(order_store, "stream_filtered", fake_stream_filtered(store_orders, streams=streams)), \
            patch.object(writer_cls, "write_order", failing_write):
        with pytest.raises(ReportGenerationFailed) as exc_info:
            await generate_report(MagicMock(), ReportFilter(file_type=file_type), io.BytesIO())

    assert isinstance(exc_info.value.__cause__, OSError)
    assert failing_write.call_count == 2
    assert streams[0].rows_read == 2
    assert streams[0].closed


@pytest.mark.asyncio
async def test_failed_xlsx_report_removes_spool_file(store_orders):
    spool_pattern = os.path.join(tempfile.gettempdir(), "openpyxl.*")
    before = set(glob.glob(spool_pattern))
    streams = []
    # 150 rows in: the first 100-row window has already been spooled to disk.
    fake = fake_stream_filtered(store_orders * 60, fail_after=150, streams=streams)
    sink = io.BytesIO()
    with patch.object(order_store, "stream_filtered", fake):
        with pytest.raises(ReportGenerationFailed):
            await generate_report(MagicMock(), ReportFilter(file_type="xlsx"), sink)

    assert streams[0].closed
    assert set(glob.glob(spool_pattern)) - before == set()
    assert sink.getvalue() == b""

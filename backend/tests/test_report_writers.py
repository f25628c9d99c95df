"""Tests for the CSV and XLSX report writers."""
import csv
import io
import os
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from app.services.report_writers import (
    REPORT_HEADERS,
    TIMESTAMP_FORMAT,
    CsvReportWriter,
    XlsxReportWriter,
    format_timestamp,
    order_row,
)
from conftest import BASE_TIME, make_customer, make_order


def _csv_rows(payload: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(payload.decode("utf-8"))))


# ─── Row mapping ──────────────────────────────────────────────────────────────

def test_order_row_columns(customer):
    order = make_order(customer, "42.10", "PROCESSING", "APPLE_PAY")
    row = order_row(order)
    assert row == [
        str(order.id),
        str(customer.id),
        "John Smith",
        "john.smith@example.com",
        Decimal("42.10"),
        "PROCESSING",
        "APPLE_PAY",
        BASE_TIME.astimezone().strftime(TIMESTAMP_FORMAT),
    ]


def test_missing_payment_method_renders_empty(customer):
    row = order_row(make_order(customer, payment_method=None))
    assert row[6] == ""


def test_format_timestamp_shape():
    rendered = format_timestamp(BASE_TIME)
    assert len(rendered) == len("2025-03-14 09:30:00")
    assert rendered[4] == "-" and rendered[10] == " " and rendered[13] == ":"
    assert format_timestamp(None) == ""


# ─── CSV ──────────────────────────────────────────────────────────────────────

def test_csv_header_only_for_empty_report():
    sink = io.BytesIO()
    writer = CsvReportWriter(sink)
    writer.write_header()
    writer.close()
    assert _csv_rows(sink.getvalue()) == [list(REPORT_HEADERS)]


def test_csv_quotes_fields_with_commas_and_quotes():
    customer = make_customer(first_name='Anna "Ann"', last_name="Smith, Jr.", email="a@example.com")
    sink = io.BytesIO()
    writer = CsvReportWriter(sink)
    writer.write_header()
    writer.write_order(make_order(customer, "10.00"))
    writer.close()

    raw = sink.getvalue().decode("utf-8")
    assert '"Anna ""Ann"" Smith, Jr."' in raw

    rows = _csv_rows(sink.getvalue())
    assert len(rows) == 2
    assert rows[1][2] == 'Anna "Ann" Smith, Jr.'


def test_csv_round_trip_preserves_every_field(store_orders):
    sink = io.BytesIO()
    writer = CsvReportWriter(sink)
    writer.write_header()
    for order in store_orders:
        writer.write_order(order)
    writer.close()

    rows = _csv_rows(sink.getvalue())
    assert len(rows) == 1 + len(store_orders)
    for order, row in zip(store_orders, rows[1:]):
        assert row[0] == str(order.id)
        assert row[3] == order.customer.email
        assert Decimal(row[4]) == order.amount
        assert row[5] == order.status


def test_csv_amount_keeps_scale(customer):
    sink = io.BytesIO()
    writer = CsvReportWriter(sink)
    writer.write_order(make_order(customer, "310.00"))
    writer.close()
    assert _csv_rows(sink.getvalue())[0][4] == "310.00"


# ─── XLSX ─────────────────────────────────────────────────────────────────────

def _xlsx(orders, window_size: int = 100):
    sink = io.BytesIO()
    writer = XlsxReportWriter(sink, window_size=window_size)
    writer.write_header()
    for order in orders:
        writer.write_order(order)
    writer.close()
    sink.seek(0)
    return writer, load_workbook(sink)


def test_xlsx_single_orders_sheet_with_header(store_orders):
    _, workbook = _xlsx(store_orders)
    assert workbook.sheetnames == ["Orders"]
    sheet = workbook["Orders"]
    header = [cell.value for cell in sheet[1]]
    assert header == list(REPORT_HEADERS)
    assert sheet.max_row == 1 + len(store_orders)


def test_xlsx_header_styling():
    _, workbook = _xlsx([])
    cell = workbook["Orders"]["A1"]
    assert cell.font.b is True
    assert cell.fill.fill_type == "solid"
    assert cell.border.left.style == "thin"
    assert cell.border.bottom.style == "thin"


def test_xlsx_data_cells_bordered_and_amount_numeric(store_orders):
    _, workbook = _xlsx(store_orders)
    sheet = workbook["Orders"]
    assert sheet["A2"].border.top.style == "thin"
    assert not sheet["A2"].font.b
    amount = sheet["E2"].value
    assert isinstance(amount, float)
    assert amount == pytest.approx(100.50)
    assert sheet["C3"].value == "Maria Garcia, Jr."


def test_xlsx_window_bounds_buffered_rows(customer):
    sink = io.BytesIO()
    writer = XlsxReportWriter(sink, window_size=3)
    writer.write_header()
    for _ in range(10):
        writer.write_order(make_order(customer))
        assert writer.buffered_rows < 3
    assert writer.rows_flushed == 9
    writer.close()
    assert writer.buffered_rows == 0
    assert writer.rows_flushed == 11

    sink.seek(0)
    assert load_workbook(sink)["Orders"].max_row == 11


def test_xlsx_discard_removes_spool_file(customer):
    sink = io.BytesIO()
    writer = XlsxReportWriter(sink, window_size=2)
    writer.write_header()
    writer.write_order(make_order(customer))
    spool = writer._sheet._writer.out
    assert os.path.exists(spool)

    writer.discard()

    assert not os.path.exists(spool)
    assert writer.buffered_rows == 0
    assert sink.getvalue() == b""


def test_xlsx_discard_before_first_flush_is_noop(customer):
    writer = XlsxReportWriter(io.BytesIO(), window_size=100)
    writer.write_header()
    writer.discard()
    assert writer.buffered_rows == 0

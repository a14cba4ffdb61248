"""Shared test fixtures."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any

import openpyxl
import pytest
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill


def to_bytes(wb: Workbook) -> bytes:
    buf = BytesIO()
    wb.save(buf)
    wb.close()
    return buf.getvalue()


def load(data: bytes) -> Workbook:
    return openpyxl.load_workbook(BytesIO(data))


def cell_values(data: bytes) -> dict[str, dict[str, Any]]:
    """Every non-empty cell value, keyed by sheet then coordinate."""
    wb = load(data)
    values = {
        ws.title: {c.coordinate: c.value for row in ws.iter_rows() for c in row if c.value is not None}
        for ws in wb.worksheets
    }
    wb.close()
    return values


@pytest.fixture()
def title_workbook() -> bytes:
    """One sheet named Sheet1 with A1 = 'Old Title'."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Sheet1"
    ws["A1"] = "Old Title"
    return to_bytes(wb)


@pytest.fixture()
def data_workbook() -> bytes:
    """One sheet named Data spanning A1:C3."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    ws.append(["Name", "Value", "Total"])
    ws.append(["Alpha", 100, 5])
    ws.append(["Beta", 200, "=B2+B3"])
    return to_bytes(wb)


@pytest.fixture()
def styled_workbook() -> bytes:
    """Two sheets with a bold, filled header cell."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Report"
    ws["A1"] = "Header"
    ws["A1"].font = Font(bold=True)
    ws["A1"].fill = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
    ws["B2"] = 42
    summary = wb.create_sheet("Summary")
    summary["A1"] = "=Report!B2*2"
    return to_bytes(wb)


@pytest.fixture()
def title_file(tmp_path: Path, title_workbook: bytes) -> Path:
    path = tmp_path / "book.xlsx"
    path.write_bytes(title_workbook)
    return path


@pytest.fixture()
def data_file(tmp_path: Path, data_workbook: bytes) -> Path:
    path = tmp_path / "data.xlsx"
    path.write_bytes(data_workbook)
    return path

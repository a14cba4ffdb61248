"""openpyxl-backed workbook codec: bytes to Workbook and back."""

from __future__ import annotations

from io import BytesIO
from typing import Any, Sequence
from zipfile import ZIP_DEFLATED, ZIP_STORED, ZipFile

import openpyxl
from openpyxl.workbook import Workbook
from openpyxl.writer.excel import ExcelWriter

from xledit.contracts.common import DecodeError
from xledit.contracts.plans import DEFAULT_SHEET

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def decode(data: bytes) -> Workbook:
    """Parse xlsx bytes into a Workbook. Raises DecodeError."""
    if not data:
        raise DecodeError("Cannot open workbook: empty buffer")
    try:
        return openpyxl.load_workbook(BytesIO(data))
    except Exception as e:
        raise DecodeError(f"Cannot open workbook: {e}") from e


def rebuild_plain(wb: Workbook) -> Workbook:
    """Copy sheet names and cell values/formulas into a fresh, unstyled workbook."""
    plain = Workbook()
    plain.remove(plain.active)
    for ws in wb.worksheets:
        target = plain.create_sheet(title=ws.title)
        for row in ws.iter_rows():
            for cell in row:
                if cell.value is not None:
                    target.cell(row=cell.row, column=cell.column, value=cell.value)
    if not plain.worksheets:
        plain.create_sheet(DEFAULT_SHEET)
    return plain


def encode(wb: Workbook, *, compression: bool = True, preserve_styles: bool = True) -> bytes:
    """Serialize a workbook to xlsx bytes.

    ``compression`` selects deflate vs. stored zip members. Without
    ``preserve_styles`` the workbook is first rebuilt from its cell grid
    alone, dropping fonts, fills, number formats, and sheet-level settings.
    """
    if not preserve_styles:
        wb = rebuild_plain(wb)
    buf = BytesIO()
    mode = ZIP_DEFLATED if compression else ZIP_STORED
    with ZipFile(buf, "w", mode, allowZip64=True) as archive:
        ExcelWriter(wb, archive).write_data()
    return buf.getvalue()


def create_blank(sheet_name: str = DEFAULT_SHEET) -> bytes:
    """Bytes of a new workbook holding one empty sheet."""
    wb = Workbook()
    wb.active.title = sheet_name
    return encode(wb)


def create_template(
    headers: Sequence[str],
    sample_row: Sequence[Any] | None = None,
    sheet_name: str = DEFAULT_SHEET,
) -> bytes:
    """Bytes of a new workbook with a header row and an optional sample row."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.append(list(headers))
    if sample_row:
        ws.append(list(sample_row))
    return encode(wb)

"""Workbook diff logic: compare two workbook buffers cell by cell."""

from __future__ import annotations

from typing import Any

from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from xledit.adapters.openpyxl_codec import decode
from xledit.contracts.responses import DiffResult
from xledit.io.fileops import fingerprint


def _cell_map(ws: Worksheet) -> dict[tuple[int, int], Any]:
    """Non-empty cells keyed by 1-based (row, column)."""
    cells: dict[tuple[int, int], Any] = {}
    for row in ws.iter_rows():
        for cell in row:
            if cell.value is not None:
                cells[(cell.row, cell.column)] = cell.value
    return cells


def diff_workbooks(
    data_a: bytes,
    data_b: bytes,
    sheet_filter: str | None = None,
) -> DiffResult:
    """Compare two workbooks. Formula cells compare by their formula text."""
    wb_a = decode(data_a)
    wb_b = decode(data_b)

    sheets_a = set(wb_a.sheetnames)
    sheets_b = set(wb_b.sheetnames)

    sheets_added = sorted(sheets_b - sheets_a)
    sheets_removed = sorted(sheets_a - sheets_b)
    sheets_common = sorted(sheets_a & sheets_b)

    if sheet_filter:
        missing_in: list[str] = []
        if sheet_filter not in sheets_a:
            missing_in.append("file_a")
        if sheet_filter not in sheets_b:
            missing_in.append("file_b")
        if missing_in:
            raise ValueError(f"Sheet '{sheet_filter}' not found in {', '.join(missing_in)}")
        sheets_common = [sheet_filter]

    cell_changes: list[dict[str, Any]] = []

    for sname in sheets_common:
        cells_a = _cell_map(wb_a[sname])
        cells_b = _cell_map(wb_b[sname])
        for row, col in sorted(cells_a.keys() | cells_b.keys()):
            val_a = cells_a.get((row, col))
            val_b = cells_b.get((row, col))
            if val_a == val_b and type(val_a) is type(val_b):
                continue
            if val_a is None:
                change_type = "added"
            elif val_b is None:
                change_type = "removed"
            else:
                change_type = "modified"
            cell_changes.append({
                "sheet": sname,
                "ref": f"{get_column_letter(col)}{row}",
                "change_type": change_type,
                "before": val_a,
                "after": val_b,
            })

    wb_a.close()
    wb_b.close()

    total = len(cell_changes) + len(sheets_added) + len(sheets_removed)
    return DiffResult(
        fingerprint_a=fingerprint(data_a),
        fingerprint_b=fingerprint(data_b),
        identical=total == 0,
        sheets_added=sheets_added,
        sheets_removed=sheets_removed,
        cell_changes=cell_changes,
        total_changes=total,
    )

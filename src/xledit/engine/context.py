"""WorkbookContext: wraps one decoded workbook for the duration of a call."""

from __future__ import annotations

from typing import Any

from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from xledit.adapters.coordinates import cell_ref, parse_cell
from xledit.adapters.openpyxl_codec import decode
from xledit.contracts.common import SheetNotFound
from xledit.contracts.responses import SheetMeta, WorkbookMeta
from xledit.io.fileops import fingerprint


class WorkbookContext:
    """Wraps an openpyxl workbook decoded from bytes.

    Every call decodes its own copy; instances are never shared.
    """

    def __init__(self, data: bytes) -> None:
        self.size = len(data)
        self.fp = fingerprint(data)
        self.wb: Workbook = decode(data)

    @property
    def sheetnames(self) -> list[str]:
        return self.wb.sheetnames

    def resolve_sheet(self, name: str) -> tuple[Worksheet, str]:
        """Find a sheet by exact name, then case-insensitively.

        Returns the worksheet and the name actually matched.
        """
        if name in self.wb.sheetnames:
            return self.wb[name], name
        folded = name.casefold()
        for actual in self.wb.sheetnames:
            if actual.casefold() == folded:
                return self.wb[actual], actual
        raise SheetNotFound(name, self.wb.sheetnames)

    def get_workbook_meta(self) -> WorkbookMeta:
        sheets: list[SheetMeta] = []
        for idx, ws in enumerate(self.wb.worksheets):
            sheets.append(SheetMeta(
                name=ws.title,
                index=idx,
                visible=ws.sheet_state,
                used_range=ws.dimensions or None,
                max_row=ws.max_row,
                max_column=ws.max_column,
            ))
        return WorkbookMeta(fingerprint=self.fp, size=self.size, sheets=sheets)

    def read_cell(self, sheet_name: str, ref: str) -> dict[str, Any]:
        """Read a cell value and its type."""
        ws, actual = self.resolve_sheet(sheet_name)
        coord = parse_cell(ref)
        normalized = cell_ref(coord.row, coord.col)
        cell = ws.cell(row=coord.row + 1, column=coord.col + 1)
        val = cell.value
        formula_text = None
        if val is None:
            val_type = "empty"
        elif cell.data_type == "f":
            val_type = "formula"
            formula_text = val if isinstance(val, str) else getattr(val, "text", str(val))
        elif isinstance(val, bool):
            val_type = "bool"
        elif isinstance(val, (int, float)):
            val_type = "number"
        elif isinstance(val, str):
            val_type = "text"
        else:
            val_type = type(val).__name__

        return {
            "ref": f"{actual}!{normalized}",
            "value": val if formula_text is None else formula_text,
            "type": val_type,
            "formula": formula_text,
            "number_format": cell.number_format,
        }

    def close(self) -> None:
        self.wb.close()

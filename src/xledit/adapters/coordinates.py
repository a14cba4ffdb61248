"""A1 notation helpers: cell references to zero-based coordinates and back."""

from __future__ import annotations

import re
from typing import NamedTuple

from openpyxl.utils import column_index_from_string, get_column_letter, range_boundaries

from xledit.contracts.common import InvalidCellReference

CELL_REF_RE = re.compile(r"^([A-Za-z]+)([0-9]+)$")

MAX_ROW = 1_048_576
MAX_COL = 16_384


class CellCoordinate(NamedTuple):
    """Zero-based (row, col) position of a cell."""

    row: int
    col: int


def column_index(letters: str) -> int:
    """Zero-based column index for column letters (A -> 0, Z -> 25, AA -> 26)."""
    return column_index_from_string(letters.upper()) - 1


def column_letters(index: int) -> str:
    """Column letters for a zero-based column index."""
    return get_column_letter(index + 1)


def parse_cell(ref: str) -> CellCoordinate:
    """Parse an A1-style reference into a zero-based coordinate.

    Raises InvalidCellReference for anything outside the sheet grid.
    """
    m = CELL_REF_RE.match(ref.strip()) if isinstance(ref, str) else None
    if not m:
        raise InvalidCellReference(str(ref))
    row = int(m.group(2))
    if row < 1 or row > MAX_ROW:
        raise InvalidCellReference(ref)
    try:
        col = column_index(m.group(1))
    except ValueError:
        raise InvalidCellReference(ref) from None
    # openpyxl knows columns up to ZZZ; Excel stops at XFD.
    if col >= MAX_COL:
        raise InvalidCellReference(ref)
    return CellCoordinate(row=row - 1, col=col)


def cell_ref(row: int, col: int) -> str:
    """A1-style reference for a zero-based coordinate."""
    return f"{column_letters(col)}{row + 1}"


def covers(dimension: str, coord: CellCoordinate) -> bool:
    """Whether an ``A1:C3`` style range contains the coordinate."""
    min_col, min_row, max_col, max_row = range_boundaries(dimension)
    return min_row - 1 <= coord.row <= max_row - 1 and min_col - 1 <= coord.col <= max_col - 1

"""Spreadsheet mutator: apply edit intents to workbook bytes."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Protocol

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from xledit.adapters.coordinates import CellCoordinate, cell_ref, covers, parse_cell
from xledit.adapters.openpyxl_codec import encode
from xledit.contracts.common import ChangeRecord, EncodeError, InvalidCellReference
from xledit.contracts.plans import (
    BooleanValue,
    CellValue,
    EditIntent,
    EditPlan,
    FormulaValue,
    NumberValue,
    TextValue,
)
from xledit.contracts.responses import EditResult
from xledit.engine.context import WorkbookContext
from xledit.observe.events import NULL_EMITTER, EventEmitter

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


class Encoder(Protocol):
    def __call__(self, wb: Workbook, *, compression: bool, preserve_styles: bool) -> bytes: ...


def infer_cell_value(raw: str) -> CellValue:
    """Type a raw value: number, then boolean, then formula, else text."""
    text = raw.strip()
    if _NUMERIC.match(text):
        return NumberValue(value=float(text) if "." in text else int(text))
    lowered = text.lower()
    if lowered in ("true", "false"):
        return BooleanValue(value=lowered == "true")
    if text.startswith("="):
        return FormulaValue(formula=text)
    return TextValue(value=raw)


def coerce_intents(edits: Iterable[EditIntent | Mapping[str, Any]]) -> list[EditIntent]:
    """Accept EditIntent objects or plain ``{sheet, cell, value}`` mappings."""
    intents: list[EditIntent] = []
    for edit in edits:
        if isinstance(edit, EditIntent):
            intents.append(edit)
            continue
        if not isinstance(edit, Mapping):
            raise TypeError(f"Edit must be an EditIntent or a mapping, got {type(edit).__name__}")
        cell = edit.get("cell")
        if not isinstance(cell, str):
            raise InvalidCellReference(str(cell))
        intents.append(EditIntent(sheet=edit.get("sheet"), cell=cell, value=edit.get("value")))
    return intents


def write_cell(ws: Worksheet, coord: CellCoordinate, typed: CellValue) -> ChangeRecord:
    """Write a typed value at coord, creating the cell if absent."""
    expanded = not covers(ws.calculate_dimension(), coord)
    cell = ws.cell(row=coord.row + 1, column=coord.col + 1)
    before = cell.value
    after = typed.excel_value()
    if isinstance(typed, TextValue):
        after = ILLEGAL_CHARACTERS_RE.sub("", after)
    # A formula replaces the literal outright; no cached result is kept.
    cell.value = after
    if isinstance(typed, TextValue):
        # "#N/A" and the other error literals would otherwise bind as type "e".
        cell.data_type = "s"
    # openpyxl spans the sheet dimension over its cell map, so the cell
    # created above is inside the used-range from here on.
    used_range = ws.calculate_dimension()
    return ChangeRecord(
        type="cell.set",
        target=f"{ws.title}!{cell_ref(coord.row, coord.col)}",
        before=before,
        after=after,
        impact={"cells": 1, "value_type": typed.kind, "used_range": used_range, "expanded": expanded},
    )


def _checked(data: bytes) -> bytes:
    if not data:
        raise ValueError("Generated buffer is empty")
    return data


def encode_with_fallback(
    wb: Workbook,
    *,
    encoder: Encoder | None = None,
    events: EventEmitter | None = None,
) -> tuple[bytes, bool]:
    """Serialize with styles; on failure retry once from the bare cell grid.

    Returns the bytes and whether the fallback path produced them.
    """
    encoder = encoder or encode
    events = events or NULL_EMITTER
    try:
        return _checked(encoder(wb, compression=True, preserve_styles=True)), False
    except Exception as primary:
        events.emit("encode.fallback", {"error": str(primary)})
        try:
            data = _checked(encoder(wb, compression=True, preserve_styles=False))
        except Exception as fallback:
            raise EncodeError(str(primary), str(fallback)) from fallback
        return data, True


def apply_edits_report(
    source: bytes,
    edits: Iterable[EditIntent | Mapping[str, Any]],
    *,
    encoder: Encoder | None = None,
    events: EventEmitter | None = None,
) -> EditResult:
    """Apply edits in order and report what changed.

    The batch is all-or-nothing: an unknown sheet or a malformed cell
    reference on any intent raises before anything is encoded.
    """
    events = events or NULL_EMITTER
    intents = coerce_intents(edits)
    ctx = WorkbookContext(source)
    try:
        changes: list[ChangeRecord] = []
        resolved: dict[str, str] = {}
        for intent in intents:
            ws, actual = ctx.resolve_sheet(intent.sheet)
            if actual != intent.sheet:
                resolved[intent.sheet] = actual
            coord = parse_cell(intent.cell)
            change = write_cell(ws, coord, infer_cell_value(intent.value))
            changes.append(change)
            events.emit("edit.applied", {"target": change.target, "type": change.impact["value_type"]})
        data, fallback_used = encode_with_fallback(ctx.wb, encoder=encoder, events=events)
    finally:
        ctx.close()

    events.emit("encode.done", {"bytes": len(data), "fallback": fallback_used})
    return EditResult(
        data=data,
        changes=changes,
        resolved_sheets=resolved,
        fallback_used=fallback_used,
    )


def apply_edits(
    source: bytes,
    edits: Iterable[EditIntent | Mapping[str, Any]],
    *,
    encoder: Encoder | None = None,
    events: EventEmitter | None = None,
) -> bytes:
    """Apply edits to xlsx bytes and return the new xlsx bytes."""
    return apply_edits_report(source, edits, encoder=encoder, events=events).data


def apply_plan(source: bytes, plan: EditPlan, **kwargs: Any) -> bytes:
    return apply_edits(source, plan.edits, **kwargs)

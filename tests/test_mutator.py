"""Tests for the spreadsheet mutator."""

from __future__ import annotations

import io
import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from conftest import cell_values, load
from xledit.adapters.openpyxl_codec import encode
from xledit.contracts.common import (
    DecodeError,
    EncodeError,
    InvalidCellReference,
    SheetNotFound,
)
from xledit.contracts.plans import (
    BooleanValue,
    EditIntent,
    FormulaValue,
    NumberValue,
    TextValue,
)
from xledit.diff.differ import diff_workbooks
from xledit.engine.interpreter import parse
from xledit.engine.mutator import (
    apply_edits,
    apply_edits_report,
    apply_plan,
    coerce_intents,
    encode_with_fallback,
    infer_cell_value,
)
from xledit.observe.events import EventEmitter


# ---------------------------------------------------------------------------
# type inference
# ---------------------------------------------------------------------------
class TestInferCellValue:
    def test_integer(self):
        typed = infer_cell_value("42")
        assert isinstance(typed, NumberValue)
        assert typed.value == 42
        assert isinstance(typed.value, int)

    def test_float(self):
        typed = infer_cell_value("-3.5")
        assert isinstance(typed, NumberValue)
        assert typed.value == -3.5

    def test_surrounding_whitespace(self):
        assert infer_cell_value(" 7 ").excel_value() == 7

    @pytest.mark.parametrize("raw, expected", [("true", True), ("FALSE", False), ("True", True)])
    def test_boolean(self, raw, expected):
        typed = infer_cell_value(raw)
        assert isinstance(typed, BooleanValue)
        assert typed.value is expected

    def test_formula(self):
        typed = infer_cell_value("=SUM(A1:A2)")
        assert isinstance(typed, FormulaValue)
        assert typed.excel_value() == "=SUM(A1:A2)"

    @pytest.mark.parametrize("raw", ["Sales Report", "1e5", "100%", "12.", "yes"])
    def test_text(self, raw):
        typed = infer_cell_value(raw)
        assert isinstance(typed, TextValue)
        assert typed.value == raw

    @given(st.integers(min_value=-10**12, max_value=10**12))
    def test_integers_infer_as_numbers(self, n):
        assert infer_cell_value(str(n)).excel_value() == n


def test_coerce_intents_accepts_mappings():
    intents = coerce_intents([{"sheet": None, "cell": "a1", "value": 3}, EditIntent(cell="B1")])
    assert intents == [EditIntent(sheet="Sheet1", cell="A1", value="3"), EditIntent(cell="B1")]


def test_coerce_intents_rejects_non_string_cell():
    with pytest.raises(InvalidCellReference):
        coerce_intents([{"sheet": "Sheet1", "cell": None, "value": "x"}])


def test_coerce_intents_rejects_other_types():
    with pytest.raises(TypeError):
        coerce_intents(["A1=3"])


# ---------------------------------------------------------------------------
# applying edits
# ---------------------------------------------------------------------------
class TestApplyEdits:
    def test_writes_text(self, title_workbook):
        out = apply_edits(title_workbook, [EditIntent(cell="A1", value="New Title")])
        assert load(out)["Sheet1"]["A1"].value == "New Title"

    def test_typed_values(self, data_workbook):
        edits = [
            {"sheet": "Data", "cell": "D1", "value": "100"},
            {"sheet": "Data", "cell": "D2", "value": "true"},
            {"sheet": "Data", "cell": "D3", "value": "=SUM(B2:B3)"},
            {"sheet": "Data", "cell": "D4", "value": "3.25"},
            {"sheet": "Data", "cell": "D5", "value": "hello"},
        ]
        ws = load(apply_edits(data_workbook, edits))["Data"]
        assert ws["D1"].value == 100
        assert ws["D1"].data_type == "n"
        assert ws["D2"].value is True
        assert ws["D2"].data_type == "b"
        assert ws["D3"].value == "=SUM(B2:B3)"
        assert ws["D3"].data_type == "f"
        assert ws["D4"].value == 3.25
        assert ws["D5"].value == "hello"
        assert ws["D5"].data_type == "s"

    def test_formula_replaces_number(self, data_workbook):
        out = apply_edits(data_workbook, [{"sheet": "Data", "cell": "C2", "value": "=B2*2"}])
        cell = load(out)["Data"]["C2"]
        assert cell.data_type == "f"
        assert cell.value == "=B2*2"

    def test_case_insensitive_sheet(self, data_workbook):
        report = apply_edits_report(data_workbook, [{"sheet": "data", "cell": "A1", "value": "x"}])
        assert report.resolved_sheets == {"data": "Data"}
        assert load(report.data)["Data"]["A1"].value == "x"
        assert report.changes[0].target == "Data!A1"

    def test_exact_sheet_not_reported(self, data_workbook):
        report = apply_edits_report(data_workbook, [{"sheet": "Data", "cell": "A1", "value": "x"}])
        assert report.resolved_sheets == {}
        assert report.fallback_used is False

    def test_unknown_sheet(self, data_workbook):
        with pytest.raises(SheetNotFound) as exc_info:
            apply_edits(data_workbook, [{"sheet": "Missing", "cell": "A1", "value": "x"}])
        assert exc_info.value.sheet == "Missing"
        assert exc_info.value.available == ["Data"]
        assert exc_info.value.code == "ERR_SHEET_NOT_FOUND"

    def test_batch_fails_as_a_whole(self, data_workbook):
        edits = [
            {"sheet": "Data", "cell": "A1", "value": "ok"},
            {"sheet": "Nope", "cell": "A2", "value": "bad"},
        ]
        with pytest.raises(SheetNotFound):
            apply_edits_report(data_workbook, edits)

    def test_invalid_cell(self, title_workbook):
        with pytest.raises(InvalidCellReference):
            apply_edits(title_workbook, [EditIntent(cell="1A", value="x")])

    def test_range_expands(self, data_workbook):
        report = apply_edits_report(data_workbook, [{"sheet": "Data", "cell": "Z100", "value": "far"}])
        assert report.changes[0].impact["used_range"] == "A1:Z100"
        ws = load(report.data)["Data"]
        assert ws.dimensions == "A1:Z100"
        assert ws["Z100"].value == "far"
        assert report.changes[0].impact["expanded"] is True

    def test_write_inside_range_does_not_expand(self, data_workbook):
        report = apply_edits_report(data_workbook, [{"sheet": "Data", "cell": "B2", "value": "7"}])
        assert report.changes[0].impact["expanded"] is False
        assert report.changes[0].impact["used_range"] == "A1:C3"

    def test_change_record(self, title_workbook):
        report = apply_edits_report(title_workbook, [EditIntent(cell="A1", value="New Title")])
        change = report.changes[0]
        assert change.type == "cell.set"
        assert change.target == "Sheet1!A1"
        assert change.before == "Old Title"
        assert change.after == "New Title"
        assert change.impact["value_type"] == "text"

    def test_illegal_characters_stripped(self, title_workbook):
        out = apply_edits(title_workbook, [EditIntent(cell="A1", value="a\x01b")])
        assert load(out)["Sheet1"]["A1"].value == "ab"

    @pytest.mark.parametrize("literal", ["#N/A", "#DIV/0!", "#REF!"])
    def test_error_literal_stays_text(self, title_workbook, literal):
        out = apply_edits(title_workbook, [EditIntent(cell="A1", value=literal)])
        cell = load(out)["Sheet1"]["A1"]
        assert cell.data_type == "s"
        assert cell.value == literal

    def test_round_trip_without_edits(self, styled_workbook):
        out = apply_edits(styled_workbook, [])
        assert cell_values(out) == cell_values(styled_workbook)
        assert load(out).sheetnames == ["Report", "Summary"]
        assert load(out)["Report"]["A1"].font.bold is True

    def test_round_trip_keeps_used_range(self, data_workbook):
        out = apply_edits(data_workbook, [])
        assert load(out)["Data"].dimensions == "A1:C3"
        assert cell_values(out) == cell_values(data_workbook)

    def test_idempotent(self, data_workbook):
        edits = [
            {"sheet": "Data", "cell": "A1", "value": "Label"},
            {"sheet": "Data", "cell": "E5", "value": "=A2&B2"},
        ]
        once = apply_edits(data_workbook, edits)
        twice = apply_edits(data_workbook, edits)
        assert cell_values(once) == cell_values(twice)

    def test_later_edit_wins(self, title_workbook):
        out = apply_edits(title_workbook, [
            EditIntent(cell="A1", value="first"),
            EditIntent(cell="A1", value="second"),
        ])
        assert load(out)["Sheet1"]["A1"].value == "second"

    def test_corrupt_source(self):
        with pytest.raises(DecodeError):
            apply_edits(b"not a workbook", [])

    def test_empty_source(self):
        with pytest.raises(DecodeError):
            apply_edits(b"", [])

    def test_events(self, title_workbook):
        stream = io.StringIO()
        apply_edits(title_workbook, [EditIntent(cell="A1", value="x")], events=EventEmitter(enabled=True, stream=stream))
        events = [json.loads(line)["event"] for line in stream.getvalue().splitlines()]
        assert events == ["edit.applied", "encode.done"]


def test_end_to_end(title_workbook):
    plan = parse("I'll change cell A1 to 'New Title'")
    out = apply_plan(title_workbook, plan)
    assert load(out)["Sheet1"]["A1"].value == "New Title"

    result = diff_workbooks(title_workbook, out)
    assert result.total_changes == 1
    change = result.cell_changes[0]
    assert change["ref"] == "A1"
    assert change["change_type"] == "modified"
    assert (change["before"], change["after"]) == ("Old Title", "New Title")


# ---------------------------------------------------------------------------
# encode fallback
# ---------------------------------------------------------------------------
def _styles_fail(wb, *, compression, preserve_styles):
    if preserve_styles:
        raise RuntimeError("style table is broken")
    return encode(wb, compression=compression, preserve_styles=preserve_styles)


def _styles_empty(wb, *, compression, preserve_styles):
    if preserve_styles:
        return b""
    return encode(wb, compression=compression, preserve_styles=preserve_styles)


def _always_fail(wb, *, compression, preserve_styles):
    raise RuntimeError(f"boom styles={preserve_styles}")


class TestEncodeFallback:
    def test_fallback_on_error(self, styled_workbook):
        stream = io.StringIO()
        report = apply_edits_report(
            styled_workbook,
            [{"sheet": "Report", "cell": "B2", "value": "43"}],
            encoder=_styles_fail,
            events=EventEmitter(enabled=True, stream=stream),
        )
        assert report.fallback_used is True
        wb = load(report.data)
        assert wb.sheetnames == ["Report", "Summary"]
        assert wb["Report"]["B2"].value == 43
        assert wb["Report"]["A1"].value == "Header"
        assert not wb["Report"]["A1"].font.bold
        assert wb["Summary"]["A1"].value == "=Report!B2*2"

        events = [json.loads(line) for line in stream.getvalue().splitlines()]
        fallback = [e for e in events if e["event"] == "encode.fallback"]
        assert fallback[0]["data"]["error"] == "style table is broken"

    def test_fallback_on_empty_buffer(self, title_workbook):
        report = apply_edits_report(title_workbook, [EditIntent(cell="A1", value="x")], encoder=_styles_empty)
        assert report.fallback_used is True
        assert load(report.data)["Sheet1"]["A1"].value == "x"

    def test_both_paths_fail(self, title_workbook):
        with pytest.raises(EncodeError) as exc_info:
            apply_edits(title_workbook, [EditIntent(cell="A1", value="x")], encoder=_always_fail)
        err = exc_info.value
        assert err.primary == "boom styles=True"
        assert err.fallback == "boom styles=False"
        assert str(err) == (
            "Failed to create workbook bytes: boom styles=True, "
            "fallback also failed: boom styles=False"
        )

    def test_primary_path(self, title_workbook):
        wb = load(title_workbook)
        data, fallback_used = encode_with_fallback(wb)
        assert fallback_used is False
        assert data[:2] == b"PK"

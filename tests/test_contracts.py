"""Tests for plan and value models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from xledit.contracts.plans import (
    BooleanValue,
    CellValue,
    EditIntent,
    EditPlan,
    FormulaValue,
    describe_edits,
)


class TestEditIntent:
    def test_defaults(self):
        intent = EditIntent(cell="a1")
        assert intent.sheet == "Sheet1"
        assert intent.cell == "A1"
        assert intent.value == ""

    def test_blank_sheet_defaults(self):
        assert EditIntent(sheet="  ", cell="A1").sheet == "Sheet1"

    @pytest.mark.parametrize(
        "value, expected",
        [(5, "5"), (2.0, "2"), (2.5, "2.5"), (True, "true"), (False, "false"), (None, "")],
    )
    def test_json_scalars_become_text(self, value, expected):
        assert EditIntent(cell="A1", value=value).value == expected

    def test_frozen(self):
        intent = EditIntent(cell="A1")
        with pytest.raises(ValidationError):
            intent.value = "x"


class TestEditPlan:
    def test_requires_edits(self):
        with pytest.raises(ValidationError):
            EditPlan(edits=[])

    def test_description_filled(self):
        plan = EditPlan(edits=[EditIntent(cell="B2", value="7")])
        assert plan.description == "Update cell B2 in sheet 'Sheet1' to value '7'"

    def test_description_kept(self):
        plan = EditPlan(description="custom", edits=[EditIntent(cell="B2")])
        assert plan.description == "custom"

    def test_json_round_trip(self):
        plan = EditPlan(edits=[EditIntent(sheet="Data", cell="C3", value="=A1")])
        assert EditPlan.model_validate_json(plan.model_dump_json()) == plan


def test_describe_edits_one_sheet():
    edits = [EditIntent(cell="A1"), EditIntent(cell="B1")]
    assert describe_edits(edits) == "Update 2 cells in sheet 'Sheet1' (A1, B1)"


def test_cell_value_discriminator():
    adapter = TypeAdapter(CellValue)
    assert isinstance(adapter.validate_python({"kind": "formula", "formula": "=A1"}), FormulaValue)
    assert adapter.validate_python({"kind": "boolean", "value": True}) == BooleanValue(value=True)
    with pytest.raises(ValidationError):
        adapter.validate_python({"kind": "date", "value": "2024-01-01"})

"""Edit plan models and typed cell values."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_SHEET = "Sheet1"


class EditIntent(BaseModel):
    """One "set this cell to this value" instruction, not yet type-coerced."""

    model_config = ConfigDict(frozen=True)

    sheet: str = DEFAULT_SHEET
    cell: str
    value: str = ""

    @field_validator("sheet", mode="before")
    @classmethod
    def _default_sheet(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_SHEET
        return v

    @field_validator("cell", mode="before")
    @classmethod
    def _upper_cell(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("value", mode="before")
    @classmethod
    def _raw_text(cls, v: Any) -> Any:
        # Structured input may carry JSON scalars; keep the raw text form.
        if v is None:
            return ""
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        if isinstance(v, (int, float)):
            return repr(v)
        return v


def describe_edits(edits: list[EditIntent]) -> str:
    """Build the human-readable summary of a batch of intents."""
    if len(edits) == 1:
        e = edits[0]
        return f"Update cell {e.cell} in sheet '{e.sheet}' to value '{e.value}'"
    sheets = list(dict.fromkeys(e.sheet for e in edits))
    cells = ", ".join(e.cell for e in edits)
    if len(sheets) == 1:
        return f"Update {len(edits)} cells in sheet '{sheets[0]}' ({cells})"
    names = ", ".join(f"'{s}'" for s in sheets)
    return f"Update {len(edits)} cells across sheets {names} ({cells})"


class EditPlan(BaseModel):
    """An ordered, non-empty batch of edit intents plus a summary."""

    description: str = ""
    edits: list[EditIntent] = Field(min_length=1)

    @model_validator(mode="after")
    def _fill_description(self) -> "EditPlan":
        if not self.description:
            self.description = describe_edits(self.edits)
        return self


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: int | float

    def excel_value(self) -> Any:
        return self.value


class BooleanValue(BaseModel):
    kind: Literal["boolean"] = "boolean"
    value: bool

    def excel_value(self) -> Any:
        return self.value


class FormulaValue(BaseModel):
    kind: Literal["formula"] = "formula"
    formula: str

    def excel_value(self) -> Any:
        return self.formula


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    value: str

    def excel_value(self) -> Any:
        return self.value


CellValue = Annotated[
    Union[NumberValue, BooleanValue, FormulaValue, TextValue],
    Field(discriminator="kind"),
]

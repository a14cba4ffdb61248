"""Pydantic models for plans, responses, and the error taxonomy."""

from xledit.contracts.common import (
    ChangeRecord,
    DecodeError,
    EncodeError,
    ErrorDetail,
    InvalidCellReference,
    Metrics,
    ParseFailure,
    PolicyViolation,
    ResponseEnvelope,
    SheetNotFound,
    Target,
    WarningDetail,
    XlEditError,
)
from xledit.contracts.plans import (
    BooleanValue,
    CellValue,
    EditIntent,
    EditPlan,
    FormulaValue,
    NumberValue,
    TextValue,
)
from xledit.contracts.responses import (
    ApplyResult,
    DiffResult,
    EditResult,
    SheetMeta,
    WorkbookMeta,
)

__all__ = [
    "ApplyResult",
    "BooleanValue",
    "CellValue",
    "ChangeRecord",
    "DecodeError",
    "DiffResult",
    "EditIntent",
    "EditPlan",
    "EditResult",
    "EncodeError",
    "ErrorDetail",
    "FormulaValue",
    "InvalidCellReference",
    "Metrics",
    "NumberValue",
    "ParseFailure",
    "PolicyViolation",
    "ResponseEnvelope",
    "SheetMeta",
    "SheetNotFound",
    "Target",
    "TextValue",
    "WarningDetail",
    "WorkbookMeta",
    "XlEditError",
]

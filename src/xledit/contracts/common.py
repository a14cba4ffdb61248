"""Common Pydantic models: response envelope, errors, warnings, metrics.

Also holds the exception taxonomy raised by the interpreter and mutator.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

EXAMPLE_INSTRUCTION = "I'll change cell A1 to 'Sales Report'"


class XlEditError(Exception):
    """Base class for errors surfaced to the caller of the edit pipeline."""

    code = "ERR_INTERNAL"

    def details(self) -> dict[str, Any] | None:
        return None


class ParseFailure(XlEditError):
    """No line of the instruction text matched a known edit pattern."""

    code = "ERR_PARSE_FAILED"

    def __init__(self, message: str | None = None) -> None:
        self.example = EXAMPLE_INSTRUCTION
        super().__init__(
            message
            or f"Could not find a cell edit in the instructions. "
            f"Please rephrase, for example: {EXAMPLE_INSTRUCTION}"
        )

    def details(self) -> dict[str, Any]:
        return {"example": self.example}


class DecodeError(XlEditError):
    """Raised when the source bytes are not a readable workbook container."""

    code = "ERR_WORKBOOK_CORRUPT"


class SheetNotFound(XlEditError):
    code = "ERR_SHEET_NOT_FOUND"

    def __init__(self, sheet: str, available: list[str]) -> None:
        self.sheet = sheet
        self.available = list(available)
        names = ", ".join(f"'{n}'" for n in self.available) or "none"
        super().__init__(f"Sheet '{sheet}' not found in the workbook. Available sheets: {names}")

    def details(self) -> dict[str, Any]:
        return {"sheet": self.sheet, "available": self.available}


class InvalidCellReference(XlEditError):
    code = "ERR_RANGE_INVALID"

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"Invalid cell reference: {ref!r}")

    def details(self) -> dict[str, Any]:
        return {"ref": self.ref}


class EncodeError(XlEditError):
    """Both the primary and the fallback serialization failed."""

    code = "ERR_ENCODE_FAILED"

    def __init__(self, primary: str, fallback: str) -> None:
        self.primary = primary
        self.fallback = fallback
        super().__init__(
            f"Failed to create workbook bytes: {primary}, fallback also failed: {fallback}"
        )

    def details(self) -> dict[str, Any]:
        return {"primary": self.primary, "fallback": self.fallback}


class PolicyViolation(XlEditError):
    """Raised when a plan breaks the configured edit policy."""

    code = "ERR_POLICY_VIOLATION"

    def __init__(self, violations: list[dict[str, Any]]) -> None:
        self.violations = violations
        if violations and violations[0].get("type") == "protected_sheet":
            self.code = "ERR_PROTECTED_SHEET"
        super().__init__("; ".join(v["message"] for v in violations) or "Policy violation")

    def details(self) -> dict[str, Any]:
        return {"violations": self.violations}


class Target(BaseModel):
    """Identifies the target workbook/sheet/cell for a command."""

    file: str | None = None
    sheet: str | None = None
    ref: str | None = None


class WarningDetail(BaseModel):
    """Structured warning."""

    code: str
    message: str
    path: str | None = None


class ErrorDetail(BaseModel):
    """Structured error."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class Metrics(BaseModel):
    """Execution metrics."""

    duration_ms: int = 0


class ChangeRecord(BaseModel):
    """Describes a single cell change made (or projected) by an edit."""

    type: str
    target: str
    before: Any | None = None
    after: Any | None = None
    impact: dict[str, Any] | None = None
    warnings: list[WarningDetail] = Field(default_factory=list)


class ResponseEnvelope(BaseModel):
    """Standard response envelope returned by every command."""

    ok: bool = True
    command: str = ""
    target: Target = Field(default_factory=Target)
    result: Any = None
    changes: list[ChangeRecord] = Field(default_factory=list)
    warnings: list[WarningDetail] = Field(default_factory=list)
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)

"""Response envelopes for CLI commands and the error-code to exit-code table."""

from __future__ import annotations

import sys
from typing import Any

import orjson

from xledit.contracts.common import (
    DecodeError,
    EncodeError,
    ErrorDetail,
    InvalidCellReference,
    Metrics,
    ParseFailure,
    ResponseEnvelope,
    SheetNotFound,
    Target,
    XlEditError,
)

EXIT_CODES = {
    "success": 0,
    "validation": 10,
    "protection": 20,
    "io": 50,
    "internal": 90,
}

# Codes raised by the edit pipeline itself.
ERROR_CATEGORIES = {
    ParseFailure.code: "validation",
    SheetNotFound.code: "validation",
    InvalidCellReference.code: "validation",
    DecodeError.code: "io",
    EncodeError.code: "internal",
    "ERR_PROTECTED_SHEET": "protection",
    "ERR_POLICY_VIOLATION": "protection",
}

# Codes produced by the CLI layer, matched by substring.
VALIDATION_CODE_MARKERS = ("PLAN_INVALID", "INVALID_ARGUMENT", "USAGE", "RANGE")
IO_CODE_MARKERS = ("FILE_EXISTS", "NOT_FOUND", "ERR_IO", "LOCK")


def success_envelope(
    command: str,
    result: Any,
    *,
    target: Target | None = None,
    changes: list | None = None,
    warnings: list | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=True,
        command=command,
        target=target or Target(),
        result=result,
        changes=changes or [],
        warnings=warnings or [],
        metrics=Metrics(duration_ms=duration_ms),
    )


def error_envelope(
    command: str,
    code: str,
    message: str,
    *,
    target: Target | None = None,
    details: dict | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=False,
        command=command,
        target=target or Target(),
        errors=[ErrorDetail(code=code, message=message, details=details)],
        metrics=Metrics(duration_ms=duration_ms),
    )


def envelope_for_error(
    command: str,
    exc: XlEditError,
    *,
    target: Target | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    """Error envelope carrying the exception's code and identifying details."""
    return error_envelope(
        command,
        exc.code,
        str(exc),
        target=target,
        details=exc.details(),
        duration_ms=duration_ms,
    )


def output_json(envelope: ResponseEnvelope) -> str:
    data = envelope.model_dump(mode="json")
    return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode()


def print_response(envelope: ResponseEnvelope) -> None:
    sys.stdout.write(output_json(envelope) + "\n")


def category_for(code: str) -> str:
    """Exit category of an error code; unknown codes are internal."""
    code = code.upper()
    if code in ERROR_CATEGORIES:
        return ERROR_CATEGORIES[code]
    if any(marker in code for marker in VALIDATION_CODE_MARKERS):
        return "validation"
    if any(marker in code for marker in IO_CODE_MARKERS):
        return "io"
    return "internal"


def exit_code_for(envelope: ResponseEnvelope) -> int:
    """Exit code for an envelope, decided by its first error."""
    if envelope.ok:
        return EXIT_CODES["success"]
    if not envelope.errors:
        return EXIT_CODES["internal"]
    return EXIT_CODES[category_for(envelope.errors[0].code)]

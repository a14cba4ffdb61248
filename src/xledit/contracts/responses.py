"""Command-specific result models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from xledit.contracts.common import ChangeRecord


class SheetMeta(BaseModel):
    """Metadata for a single worksheet."""

    name: str
    index: int
    visible: str = "visible"  # visible / hidden / veryHidden
    used_range: str | None = None
    max_row: int = 0
    max_column: int = 0


class WorkbookMeta(BaseModel):
    """Metadata returned by ``inspect``."""

    fingerprint: str
    size: int = 0
    sheets: list[SheetMeta] = Field(default_factory=list)


class EditResult(BaseModel):
    """Outcome of applying a batch of edits."""

    data: bytes
    changes: list[ChangeRecord] = Field(default_factory=list)
    # requested sheet name -> sheet actually written (case-insensitive match)
    resolved_sheets: dict[str, str] = Field(default_factory=dict)
    fallback_used: bool = False


class ApplyResult(BaseModel):
    """Result of the ``apply`` command."""

    applied: bool = False
    dry_run: bool = False
    description: str = ""
    output_path: str | None = None
    edits_applied: int = 0
    resolved_sheets: dict[str, str] = Field(default_factory=dict)
    fallback_used: bool = False
    fingerprint_before: str = ""
    fingerprint_after: str | None = None


class DiffResult(BaseModel):
    """Cell-level comparison of two workbooks."""

    fingerprint_a: str
    fingerprint_b: str
    identical: bool = True
    sheets_added: list[str] = Field(default_factory=list)
    sheets_removed: list[str] = Field(default_factory=list)
    cell_changes: list[dict[str, Any]] = Field(default_factory=list)
    total_changes: int = 0

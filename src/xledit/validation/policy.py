"""Policy engine: load and enforce xledit-policy.yaml rules."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from xledit.contracts.plans import DEFAULT_SHEET, EditPlan
from xledit.io.fileops import read_text_safe

POLICY_FILENAME = "xledit-policy.yaml"


class Policy:
    """Represents a loaded policy configuration."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        data = data or {}
        self.default_sheet: str = data.get("default_sheet") or DEFAULT_SHEET
        self.protected_sheets: list[str] = list(data.get("protected_sheets") or [])
        self.max_edits: int | None = data.get("max_edits")

    @classmethod
    def load(cls, path: str | Path) -> "Policy":
        """Load policy from a YAML file."""
        data = yaml.safe_load(read_text_safe(path)) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Policy file {path} must contain a mapping")
        return cls(data)

    @classmethod
    def load_from_dir(cls, directory: str | Path) -> "Policy | None":
        """Try to load xledit-policy.yaml from a directory. Returns None if not found."""
        path = Path(directory) / POLICY_FILENAME
        if path.exists():
            return cls.load(path)
        return None


def check_plan_policy(policy: Policy, plan: EditPlan) -> list[dict[str, Any]]:
    """Check a plan against policy rules. Returns list of violations."""
    violations: list[dict[str, Any]] = []

    # Sheet names resolve case-insensitively, so protection does too.
    protected = {name.casefold() for name in policy.protected_sheets}
    for edit in plan.edits:
        if edit.sheet.casefold() in protected:
            violations.append({
                "type": "protected_sheet",
                "severity": "error",
                "target": f"{edit.sheet}!{edit.cell}",
                "message": f"Edit of {edit.cell} targets protected sheet '{edit.sheet}'",
            })

    if policy.max_edits is not None and len(plan.edits) > policy.max_edits:
        violations.append({
            "type": "mutation_threshold",
            "severity": "error",
            "message": f"Plan has {len(plan.edits)} edits, exceeding threshold of {policy.max_edits}",
        })

    return violations

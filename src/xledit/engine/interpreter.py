"""Instruction interpreter: free text to an EditPlan.

Each line of the input is tried against an ordered list of matcher
functions; the first matcher that recognises the line wins. Lines that no
matcher recognises are skipped, so explanatory prose may sit between edit
directives.
"""

from __future__ import annotations

import re
from typing import Callable, NamedTuple

import orjson
from pydantic import ValidationError

from xledit.contracts.common import ParseFailure
from xledit.contracts.plans import DEFAULT_SHEET, EditIntent, EditPlan, describe_edits
from xledit.observe.events import NULL_EMITTER, EventEmitter


class LineMatch(NamedTuple):
    """A recognised edit on one line; ``start`` is the cell's offset in the line."""

    cell: str
    value: str
    start: int


Matcher = Callable[[str], "LineMatch | None"]

_CELL = r"(?P<cell>[A-Za-z]+[0-9]+)"
_APOSTROPHES = "'’‘`´"

# ---------------------------------------------------------------------------
# value extraction
# ---------------------------------------------------------------------------
_SINGLE_QUOTED = re.compile("[‘']([^'‘’]*)['’]")
_DOUBLE_QUOTED = re.compile('[“"]([^"“”]*)["”]')
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?(?![\w%/:\-]|[.,]\d)")


def _formula_token(text: str) -> str | None:
    """Scan a leading ``=`` formula up to the first space outside parentheses.

    Spaces inside parentheses or string literals belong to the formula.
    Returns None when the parentheses never balance.
    """
    depth = 0
    quoted = False
    for i, ch in enumerate(text):
        if ch == '"':
            quoted = not quoted
        elif quoted:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                return text[:i]
        elif ch.isspace() and depth == 0:
            return text[:i]
    if depth or quoted:
        return None
    return text


def extract_value(text: str) -> str | None:
    """Pull the value out of the text following ``to``.

    Precedence: single-quoted, double-quoted, formula, bare number, then
    the trimmed rest of the line.
    """
    text = text.strip()
    if not text:
        return None
    for pattern in (_SINGLE_QUOTED, _DOUBLE_QUOTED):
        m = pattern.match(text)
        if m:
            return m.group(1)
    if text.startswith("="):
        formula = _formula_token(text)
        if formula:
            return formula.rstrip(".,;")
    m = _NUMBER.match(text)
    if m:
        return m.group(0)
    return text


# ---------------------------------------------------------------------------
# matchers, in priority order
# ---------------------------------------------------------------------------
_CANONICAL = re.compile(
    rf"\bI(?:[{_APOSTROPHES}]ll|\s+will)\s+change\s+cell\s+{_CELL}\s+to\s+(?P<rest>.*)$",
    re.IGNORECASE,
)
_IMPERATIVE = re.compile(
    rf"\b(?:change|update|modify)\s+cell\s+{_CELL}\s+to\s+(?P<rest>.*)$",
    re.IGNORECASE,
)
_COLON = re.compile(
    r"^\s*(?:[-*•]\s*|\d+[.)]\s*)?(?:cell\s+)?"
    r"(?P<cell>[A-Za-z]{1,3}[0-9]+)\s*:(?![A-Za-z]{1,3}[0-9])\s*(?P<rest>.*)$",
    re.IGNORECASE,
)
_PUT = re.compile(
    r"\bput\s+(?P<value>'[^']*'|\"[^\"]*\"|.+?)\s+in(?:to)?\s+(?:cell\s+)?"
    r"(?P<cell>[A-Za-z]+[0-9]+)\b",
    re.IGNORECASE,
)
_SET = re.compile(
    rf"\bset\s+(?:cell\s+)?{_CELL}\s+to\s+(?P<rest>.*)$",
    re.IGNORECASE,
)
_ROW = re.compile(
    r"\b(?:add|put|set)\s+(?:value\s+)?(?P<value>'[^']*'|\"[^\"]*\"|.+?)\s+"
    r"(?:to|in|at)\s+row\s+(?P<row>[1-9][0-9]*)\b",
    re.IGNORECASE,
)


def _from_rest(m: re.Match[str] | None) -> LineMatch | None:
    if not m:
        return None
    value = extract_value(m.group("rest"))
    if value is None:
        return None
    return LineMatch(m.group("cell").upper(), value, m.start("cell"))


def match_canonical(line: str) -> LineMatch | None:
    """``I'll change cell A1 to 'Sales Report'`` / ``I will change cell ...``."""
    return _from_rest(_CANONICAL.search(line))


def match_imperative(line: str) -> LineMatch | None:
    """``change cell B5 to 100``."""
    return _from_rest(_IMPERATIVE.search(line))


def match_colon(line: str) -> LineMatch | None:
    """``C3: =SUM(C1:C2)``."""
    return _from_rest(_COLON.match(line))


def match_placement(line: str) -> LineMatch | None:
    """``put 'Total' in C5`` / ``set D1 to 42``."""
    m = _PUT.search(line)
    if m:
        value = extract_value(m.group("value"))
        if value is not None:
            return LineMatch(m.group("cell").upper(), value, m.start("cell"))
    return _from_rest(_SET.search(line))


def match_row_placement(line: str) -> LineMatch | None:
    """``add 'Widget' to row 7`` targets column A of that row."""
    m = _ROW.search(line)
    if not m:
        return None
    value = extract_value(m.group("value"))
    if value is None:
        return None
    return LineMatch(f"A{m.group('row')}", value, m.start("row"))


MATCHERS: tuple[Matcher, ...] = (
    match_canonical,
    match_imperative,
    match_colon,
    match_placement,
    match_row_placement,
)


def match_line(line: str) -> LineMatch | None:
    """First successful matcher wins."""
    for matcher in MATCHERS:
        found = matcher(line)
        if found is not None:
            return found
    return None


# ---------------------------------------------------------------------------
# sheet qualifier
# ---------------------------------------------------------------------------
_SHEET = re.compile(
    r"\b(?:in|on)\s+(?:the\s+)?(?:sheet|tab)\s+"
    r"(?:'(?P<single>[^']+)'|\"(?P<double>[^\"]+)\"|(?P<bare>[^\s,;:'\"]+))",
    re.IGNORECASE,
)


def sheet_qualifier(prefix: str) -> str | None:
    """Sheet named by the last ``in sheet 'X'`` in the text before the cell."""
    found = None
    for m in _SHEET.finditer(prefix):
        found = m.group("single") or m.group("double") or m.group("bare")
    return found.strip() if found else None


# ---------------------------------------------------------------------------
# plan assembly
# ---------------------------------------------------------------------------
def _pre_analyzed(text: str, default_sheet: str) -> EditPlan | None:
    """Decode a plan that an upstream component already serialized."""
    stripped = text.strip()
    if not stripped.startswith("{") or "edits" not in stripped:
        return None
    try:
        data = orjson.loads(stripped)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    raw_edits = data.get("edits")
    if not isinstance(raw_edits, list) or not raw_edits:
        return None
    try:
        edits = [
            EditIntent(
                sheet=item.get("sheet") or default_sheet,
                cell=item.get("cell"),
                value=item.get("value"),
            )
            for item in raw_edits
        ]
        return EditPlan(description=str(data.get("description") or ""), edits=edits)
    except (AttributeError, ValidationError):
        return None


def parse(
    text: str,
    *,
    default_sheet: str = DEFAULT_SHEET,
    events: EventEmitter | None = None,
) -> EditPlan:
    """Interpret instruction text as an EditPlan.

    Raises ParseFailure when no line contains a recognisable edit.
    """
    events = events or NULL_EMITTER
    plan = _pre_analyzed(text, default_sheet)
    if plan is not None:
        events.emit("plan.parsed", {"source": "structured", "edits": len(plan.edits)})
        return plan

    edits: list[EditIntent] = []
    for line in text.splitlines():
        found = match_line(line)
        if found is None:
            continue
        sheet = sheet_qualifier(line[: found.start]) or default_sheet
        edits.append(EditIntent(sheet=sheet, cell=found.cell, value=found.value))

    if not edits:
        raise ParseFailure()

    plan = EditPlan(description=describe_edits(edits), edits=edits)
    events.emit("plan.parsed", {"source": "text", "edits": len(edits)})
    return plan


def try_parse(text: str, *, default_sheet: str = DEFAULT_SHEET) -> EditPlan | None:
    """Like parse, but returns None instead of raising ParseFailure."""
    try:
        return parse(text, default_sheet=default_sheet)
    except ParseFailure:
        return None

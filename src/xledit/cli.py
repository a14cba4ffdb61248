"""xledit command line: parse, apply, inspect, read, create, and diff workbooks."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional

import orjson
import typer
from pydantic import ValidationError

import xledit
from xledit.contracts.common import ParseFailure, PolicyViolation, Target, WarningDetail, XlEditError
from xledit.contracts.plans import EditPlan
from xledit.contracts.responses import ApplyResult
from xledit.engine.dispatcher import (
    envelope_for_error,
    error_envelope,
    exit_code_for,
    print_response,
    success_envelope,
)
from xledit.io.fileops import read_text_safe, write_output
from xledit.observe.events import EventEmitter, Timer

# ---------------------------------------------------------------------------
# App & subcommand groups
# ---------------------------------------------------------------------------

_MAIN_HELP = """\
Apply natural-language cell edits to Excel workbooks (.xlsx).

**Recommended workflow:**  inspect → parse → apply → diff

1. `xledit inspect -f data.xlsx` (discover sheets and used ranges)
2. `xledit parse --text "I'll change cell A1 to 'Sales Report'"` (preview the edit plan)
3. `xledit apply -f data.xlsx --text "I'll change cell A1 to 'Sales Report'"`
4. `xledit diff --file-a data.xlsx --file-b edited_<stamp>_data.xlsx`

**Every command** returns a JSON `ResponseEnvelope`:
`{"ok": bool, "command": "...", "result": {...}, "errors": [...], "warnings": [...], "metrics": {"duration_ms": N}}`

**Recognised instructions** (one per line, prose lines are ignored):
- `I'll change cell A1 to 'Sales Report'` (preferred)
- `change cell B5 to 100`
- `C3: =SUM(C1:C2)`
- `put 'Total' in D1` / `set D2 to true`
- prefix `in sheet 'Data'` to target a sheet other than Sheet1

**Exit codes:** 0=success, 10=validation, 20=policy, 50=io, 90=internal
"""

_CELL_EPILOG = """\
**Examples:**

`xledit cell get -f data.xlsx --ref "Sheet1!B2"`

**Ref format:** always include the sheet name: `SheetName!CellRef` (e.g. `Sheet1!B2`).
"""


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(xledit.__version__)
        raise typer.Exit()


app = typer.Typer(
    name="xledit",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

cell_app = typer.Typer(
    name="cell", help="Read individual cell values.",
    epilog=_CELL_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)

app.add_typer(cell_app)


@app.callback(invoke_without_command=True)
def main_callback(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
) -> None:
    if version:
        _version_callback(True)


# Type aliases for common options
FilePath = Annotated[str, typer.Option("--file", "-f", help="Path to .xlsx workbook file")]
TextOpt = Annotated[Optional[str], typer.Option("--text", "-t", help="Instruction text (newline-separated edits)")]
TextFileOpt = Annotated[Optional[str], typer.Option("--text-file", help="Read instruction text from a file")]
PolicyOpt = Annotated[Optional[str], typer.Option("--policy", help="Path to xledit-policy.yaml (default: ./xledit-policy.yaml if present)")]
EventsFlag = Annotated[bool, typer.Option("--events", help="Emit NDJSON lifecycle events on stderr")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _emit(envelope, code=None):
    print_response(envelope)
    raise typer.Exit(code if code is not None else exit_code_for(envelope))


def _read_source(file: str, cmd: str) -> bytes:
    """Read workbook bytes, or emit an error envelope."""
    path = Path(file)
    if not path.is_file():
        _emit(error_envelope(cmd, "ERR_WORKBOOK_NOT_FOUND", f"File not found: {file}", target=Target(file=file)))
    return path.read_bytes()


def _write_or_emit(cmd: str, target: Path, data: bytes) -> None:
    """Write an output workbook under its sidecar lock, or emit an error envelope."""
    import portalocker

    try:
        write_output(target, data)
    except portalocker.LockException:
        _emit(error_envelope(
            cmd, "ERR_LOCK_HELD", f"Another process is writing {target}",
            target=Target(file=str(target)),
        ))
    except OSError as e:
        _emit(error_envelope(cmd, "ERR_IO_WRITE", f"Cannot write {target}: {e}", target=Target(file=str(target))))


def _load_policy(cmd: str, policy_path: str | None):
    """Explicit --policy file, else xledit-policy.yaml in cwd, else defaults."""
    import yaml

    from xledit.validation.policy import Policy

    try:
        if policy_path:
            return Policy.load(policy_path)
        return Policy.load_from_dir(Path.cwd()) or Policy()
    except (OSError, ValueError, yaml.YAMLError) as e:
        _emit(error_envelope(cmd, "ERR_INVALID_ARGUMENT", f"Cannot load policy: {e}"))


def _instruction_text(cmd: str, text: str | None, text_file: str | None) -> str:
    if text is not None and text_file is not None:
        _emit(error_envelope(cmd, "ERR_USAGE", "Use either --text or --text-file, not both"))
    if text_file is not None:
        try:
            return read_text_safe(text_file)
        except OSError as e:
            _emit(error_envelope(cmd, "ERR_IO_READ", f"Cannot read {text_file}: {e}"))
    if text is None:
        _emit(error_envelope(cmd, "ERR_USAGE", "Provide instructions with --text or --text-file"))
    return text


def _load_plan_file(plan_path: str) -> EditPlan:
    """Load an edit plan JSON file.

    Accepts a raw plan, a bare list of edits, or the envelope printed by
    ``xledit parse``.
    """
    try:
        data = orjson.loads(read_text_safe(plan_path))
    except (OSError, orjson.JSONDecodeError) as e:
        raise ValueError(f"Cannot parse plan: {e}") from e

    if isinstance(data, dict) and {"ok", "command", "result"}.issubset(data):
        data = data.get("result")
    if isinstance(data, list):
        data = {"edits": data}
    if not isinstance(data, dict) or "edits" not in data:
        raise ValueError("Plan file must contain an object with an 'edits' list")

    try:
        return EditPlan.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Cannot parse plan: {e}") from e


# ---------------------------------------------------------------------------
# xledit version
# ---------------------------------------------------------------------------
@app.command()
def version():
    """Print the xledit version.

    Example: `xledit version`
    """
    env = success_envelope("version", {"version": xledit.__version__})
    _emit(env)


# ---------------------------------------------------------------------------
# xledit parse
# ---------------------------------------------------------------------------
@app.command("parse")
def parse_cmd(
    text: TextOpt = None,
    text_file: TextFileOpt = None,
    policy_path: PolicyOpt = None,
):
    """Interpret instruction text as an edit plan without touching a workbook.

    Example: `xledit parse --text "I'll change cell A1 to 'Header'"`

    The printed envelope can be passed to `xledit apply --plan`.
    """
    from xledit.engine.interpreter import parse

    instructions = _instruction_text("parse", text, text_file)
    policy = _load_policy("parse", policy_path)

    with Timer() as t:
        try:
            plan = parse(instructions, default_sheet=policy.default_sheet)
        except ParseFailure as e:
            _emit(envelope_for_error("parse", e))

    env = success_envelope("parse", plan.model_dump(mode="json"), duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# xledit apply
# ---------------------------------------------------------------------------
@app.command("apply")
def apply_cmd(
    file: FilePath,
    text: TextOpt = None,
    text_file: TextFileOpt = None,
    plan_path: Annotated[Optional[str], typer.Option("--plan", help="Path to an edit plan JSON file")] = None,
    out: Annotated[Optional[str], typer.Option("--out", "-o", help="Output path (default: edited_<stamp>_<name> next to the source)")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Apply in memory and report changes without writing")] = False,
    policy_path: PolicyOpt = None,
    events: EventsFlag = False,
):
    """Apply edits to a workbook and write the result as a new file. Mutating.

    Edits come from instruction text (`--text` / `--text-file`) or from a
    structured plan (`--plan`). The source file is never overwritten.

    Example: `xledit apply -f data.xlsx --text "I'll change cell B5 to 100"`

    Example: `xledit apply -f data.xlsx --plan plan.json --out data_v2.xlsx`
    """
    from xledit.engine.interpreter import parse
    from xledit.engine.mutator import apply_edits_report
    from xledit.io.fileops import edited_path, fingerprint
    from xledit.validation.policy import check_plan_policy

    emitter = EventEmitter(enabled=events)
    policy = _load_policy("apply", policy_path)

    if plan_path is not None:
        if text is not None or text_file is not None:
            _emit(error_envelope("apply", "ERR_USAGE", "Use either --plan or instruction text, not both"))
        try:
            plan = _load_plan_file(plan_path)
        except ValueError as e:
            _emit(error_envelope("apply", "ERR_PLAN_INVALID", str(e), target=Target(file=file)))
    else:
        instructions = _instruction_text("apply", text, text_file)
        try:
            plan = parse(instructions, default_sheet=policy.default_sheet, events=emitter)
        except ParseFailure as e:
            _emit(envelope_for_error("apply", e, target=Target(file=file)))

    violations = check_plan_policy(policy, plan)
    if violations:
        _emit(envelope_for_error("apply", PolicyViolation(violations), target=Target(file=file)))

    source = _read_source(file, "apply")
    with Timer() as t:
        try:
            report = apply_edits_report(source, plan.edits, events=emitter)
        except XlEditError as e:
            _emit(envelope_for_error("apply", e, target=Target(file=file)))

        output_path = None
        if not dry_run:
            output_path = Path(out) if out else edited_path(file)
            if output_path.resolve() == Path(file).resolve():
                _emit(error_envelope(
                    "apply", "ERR_USAGE", "Output path must differ from the source workbook",
                    target=Target(file=file),
                ))
            _write_or_emit("apply", output_path, report.data)

    result = ApplyResult(
        applied=not dry_run,
        dry_run=dry_run,
        description=plan.description,
        output_path=str(output_path) if output_path else None,
        edits_applied=len(report.changes),
        resolved_sheets=report.resolved_sheets,
        fallback_used=report.fallback_used,
        fingerprint_before=fingerprint(source),
        fingerprint_after=fingerprint(report.data),
    )
    warnings = []
    if report.resolved_sheets:
        for requested, actual in report.resolved_sheets.items():
            warnings.append(WarningDetail(
                code="WARN_SHEET_CASE_MISMATCH",
                message=f"Sheet '{requested}' matched '{actual}' case-insensitively",
            ))
    if report.fallback_used:
        warnings.append(WarningDetail(
            code="WARN_STYLES_DROPPED",
            message="Workbook was re-serialized without styles after the primary write failed",
        ))

    env = success_envelope(
        "apply",
        result.model_dump(mode="json"),
        target=Target(file=file),
        changes=report.changes,
        warnings=warnings,
        duration_ms=t.elapsed_ms,
    )
    _emit(env)


# ---------------------------------------------------------------------------
# xledit inspect
# ---------------------------------------------------------------------------
@app.command("inspect")
def inspect_cmd(file: FilePath):
    """List sheets, visibility, and used ranges of a workbook.

    Example: `xledit inspect -f data.xlsx`
    """
    from xledit.engine.context import WorkbookContext

    source = _read_source(file, "inspect")
    with Timer() as t:
        try:
            ctx = WorkbookContext(source)
        except XlEditError as e:
            _emit(envelope_for_error("inspect", e, target=Target(file=file)))
        meta = ctx.get_workbook_meta()
        ctx.close()

    env = success_envelope("inspect", meta.model_dump(mode="json"), target=Target(file=file), duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# xledit cell get
# ---------------------------------------------------------------------------
@cell_app.command("get")
def cell_get_cmd(
    file: FilePath,
    ref: Annotated[str, typer.Option("--ref", help="Cell reference as SheetName!Cell (e.g. Sheet1!B2)")],
):
    """Read a single cell's value, type, and formula.

    Sheet names match case-insensitively, as they do for edits.

    Example: `xledit cell get -f data.xlsx --ref "Sheet1!B2"`
    """
    from xledit.engine.context import WorkbookContext

    if "!" not in ref:
        env = error_envelope("cell.get", "ERR_RANGE_INVALID", "Ref must include sheet name (e.g. Sheet1!B2)", target=Target(file=file))
        _emit(env)

    sheet_name, cell_ref = ref.rsplit("!", 1)
    sheet_name = sheet_name.strip("'")

    source = _read_source(file, "cell.get")
    with Timer() as t:
        try:
            ctx = WorkbookContext(source)
            result = ctx.read_cell(sheet_name, cell_ref)
        except XlEditError as e:
            _emit(envelope_for_error("cell.get", e, target=Target(file=file, ref=ref)))
        ctx.close()

    env = success_envelope("cell.get", result, target=Target(file=file, ref=ref), duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# xledit create
# ---------------------------------------------------------------------------
@app.command("create")
def create_cmd(
    out: Annotated[str, typer.Option("--out", "-o", help="Path of the new workbook")],
    sheet: Annotated[str, typer.Option("--sheet", "-s", help="Name of the single sheet")] = "Sheet1",
    headers: Annotated[Optional[str], typer.Option("--headers", help="Comma-separated header row")] = None,
    sample: Annotated[Optional[str], typer.Option("--sample", help="Comma-separated sample row (typed like edit values)")] = None,
):
    """Create a blank workbook, or a template with headers and a sample row.

    Example: `xledit create --out blank.xlsx`

    Example: `xledit create --out sales.xlsx --sheet Sales --headers Region,Units --sample North,10`
    """
    from xledit.adapters.openpyxl_codec import create_blank, create_template
    from xledit.engine.mutator import infer_cell_value
    from xledit.io.fileops import fingerprint

    target = Path(out)
    if target.exists():
        _emit(error_envelope("create", "ERR_FILE_EXISTS", f"File already exists: {out}", target=Target(file=out)))
    if sample and not headers:
        _emit(error_envelope("create", "ERR_USAGE", "--sample requires --headers", target=Target(file=out)))

    with Timer() as t:
        if headers:
            header_row = [h.strip() for h in headers.split(",")]
            sample_row: list[Any] | None = None
            if sample:
                sample_row = [infer_cell_value(v).excel_value() for v in sample.split(",")]
            data = create_template(header_row, sample_row, sheet_name=sheet)
        else:
            data = create_blank(sheet)
        _write_or_emit("create", target, data)

    result = {"path": str(target), "sheet": sheet, "fingerprint": fingerprint(data)}
    env = success_envelope("create", result, target=Target(file=out, sheet=sheet), duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# xledit diff
# ---------------------------------------------------------------------------
@app.command("diff")
def diff_cmd(
    file_a: Annotated[str, typer.Option("--file-a", help="First (before) workbook path")],
    file_b: Annotated[str, typer.Option("--file-b", help="Second (edited/after) workbook path")],
    sheet: Annotated[Optional[str], typer.Option("--sheet", "-s", help="Limit comparison to one sheet")] = None,
):
    """Compare two workbook files cell by cell.

    Example: `xledit diff --file-a data.xlsx --file-b edited_20260101T000000Z_data.xlsx`
    """
    from xledit.diff.differ import diff_workbooks

    data_a = _read_source(file_a, "diff")
    data_b = _read_source(file_b, "diff")
    with Timer() as t:
        try:
            result = diff_workbooks(data_a, data_b, sheet_filter=sheet)
        except XlEditError as e:
            _emit(envelope_for_error("diff", e))
        except ValueError as e:
            _emit(error_envelope("diff", "ERR_SHEET_NOT_FOUND", str(e)))

    env = success_envelope("diff", result.model_dump(mode="json"), duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------
def main() -> None:
    try:
        app()
    except SystemExit:
        raise
    except Exception as exc:
        # Catch-all: any unhandled exception gets wrapped in a proper JSON
        # error envelope so machine consumers never see raw tracebacks.
        env = error_envelope(
            "unknown",
            "ERR_INTERNAL",
            str(exc),
        )
        print_response(env)
        raise SystemExit(90) from exc


if __name__ == "__main__":
    main()

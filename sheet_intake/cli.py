from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from sheet_intake import __version__ as TOOL_VERSION
from sheet_intake.config import IntakeConfig, default_config_payload, load_config
from sheet_intake.contracts import build_run_summary, wrap_payload
from sheet_intake.errors import ConfigError, IntakeError
from sheet_intake.fingerprint import fingerprint
from sheet_intake.log import log_summary, setup_logging
from sheet_intake.mapping import suggest_column_mapping, to_customer_records
from sheet_intake.parser import ParsedTable, parse_workbook
from sheet_intake.reconcile import JsonRecordSource, ReconciliationReport, analyze_for_tenant

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_DUPLICATES_FOUND = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SheetIntakeArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (IntakeError, ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def load_intake_config(args: argparse.Namespace) -> IntakeConfig:
    config = load_config(args.config) if getattr(args, "config", None) else IntakeConfig()
    options = config.parse_options
    if getattr(args, "sheet_name", None):
        options = replace(options, preferred_sheet_name=args.sheet_name)
    if getattr(args, "preview_rows", None) is not None:
        options = replace(options, max_preview_rows=args.preview_rows)
    if getattr(args, "keep_empty_rows", False):
        options = replace(options, skip_empty_rows=False)
    return IntakeConfig(parse_options=options, header_patterns=config.header_patterns)


def read_input(args: argparse.Namespace) -> tuple[Path, bytes]:
    input_path = Path(args.input)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    return input_path, input_path.read_bytes()


def parse_input(args: argparse.Namespace) -> tuple[Path, ParsedTable, IntakeConfig]:
    config = load_intake_config(args)
    input_path, data = read_input(args)
    table = parse_workbook(
        data,
        config.parse_options,
        file_name=input_path.name,
        patterns=config.header_patterns,
    )
    return input_path, table, config


def render_parse_text(table: ParsedTable) -> str:
    lines = [
        "sheet-intake parse",
        f"Sheet: {table.selected_sheet_name}",
        f"Header row: {table.header_row_index + 1}",
        f"Skipped metadata rows: {table.skipped_metadata_row_count}",
        f"Columns: {', '.join(table.headers)}",
        f"Rows: {table.total_rows}",
        f"Fingerprint: {table.column_fingerprint}",
    ]
    if table.removed_columns:
        lines.append(f"Removed sparse columns: {', '.join(table.removed_columns)}")
    for profile in table.column_info:
        lines.append(f"  {profile.header}: {profile.detected_type.value}")
    return "\n".join(lines) + "\n"


def render_reconcile_text(report: ReconciliationReport) -> str:
    summary = report.summary
    lines = [
        "sheet-intake reconcile",
        f"Rows: {summary.total_rows}",
        f"Duplicates within file: {summary.duplicates_in_file}",
        f"Matches existing customers: {summary.duplicates_in_database}",
        f"New customers: {summary.unique_new}",
    ]
    for index, match in sorted(report.in_file.items()):
        lines.append(f"  row {index + 1}: repeats row {match.matched_row + 1}")
    for index, match in sorted(report.in_database.items()):
        lines.append(f"  row {index + 1}: {match.match_type.value} match with {match.existing_navn or match.existing_id}")
    return "\n".join(lines) + "\n"


def emit_payload(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    text = json_dumps(payload)
    if args.output:
        output_path = Path(args.output)
        if output_path.exists():
            raise CliError(f"Refusing to overwrite existing output: {output_path}", EXIT_COMMAND_ERROR)
        write_text(output_path, text)
        emit_human(f"Output written: {output_path}", quiet=args.quiet)
    if args.json:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = SheetIntakeArgumentParser(prog="sheet-intake", description="Spreadsheet intake and customer duplicate checks.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse = subparsers.add_parser("parse", help="Parse a workbook into a clean table.")
    parse.add_argument("input", help="Input file path")
    parse.add_argument("--sheet", dest="sheet_name", help="Preferred sheet name")
    parse.add_argument("--preview-rows", dest="preview_rows", type=int, help="Sample values kept per column")
    parse.add_argument("--keep-empty-rows", dest="keep_empty_rows", action="store_true", help="Keep fully empty data rows")
    parse.add_argument("--config", help="JSON config path")
    parse.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parse.add_argument("--output", help="Write the JSON payload to this path")
    parse.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parse.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    reconcile = subparsers.add_parser("reconcile", help="Parse a workbook and check it for duplicate customers.")
    reconcile.add_argument("input", help="Input file path")
    reconcile.add_argument("--existing", required=True, help="JSON file with existing customers")
    reconcile.add_argument("--tenant", help="Tenant id when the existing file is keyed by tenant")
    reconcile.add_argument("--sheet", dest="sheet_name", help="Preferred sheet name")
    reconcile.add_argument("--config", help="JSON config path")
    reconcile.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    reconcile.add_argument("--output", help="Write the JSON payload to this path")
    reconcile.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    reconcile.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    fp = subparsers.add_parser("fingerprint", help="Print the column fingerprint of a header list.")
    fp.add_argument("headers", nargs="+", help="Header names")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write the default config file.")
    config_init.add_argument("path", help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_parse(args: argparse.Namespace) -> int:
    setup_logging(verbose=args.verbose)
    try:
        input_path, table, _ = parse_input(args)
        summary = build_run_summary(
            command="parse",
            input_file=str(input_path),
            output_file=args.output,
            metrics={
                "total_rows": table.total_rows,
                "column_count": table.column_count,
                "removed_columns": len(table.removed_columns),
            },
        )
        emit_payload(args, wrap_payload("sheet_intake.parse", table.to_dict(), summary))
        if not args.json:
            emit_human(render_parse_text(table).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except (CliError, ConfigError, IntakeError, ImportError, OSError) as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_reconcile(args: argparse.Namespace) -> int:
    setup_logging(verbose=args.verbose)
    try:
        input_path, table, config = parse_input(args)
        mapping = suggest_column_mapping(table.headers, config.header_patterns)
        if not any(item.target_field in {"navn", "adresse"} for item in mapping):
            raise CliError("No name or address column could be identified in the upload.", EXIT_PARSE_FAILED)
        records = to_customer_records(table, mapping)

        existing_path = Path(args.existing)
        if not existing_path.exists():
            raise CliError(f"File not found: {existing_path}", EXIT_COMMAND_ERROR)
        report = analyze_for_tenant(records, JsonRecordSource(existing_path), args.tenant)

        summary = build_run_summary(
            command="reconcile",
            input_file=str(input_path),
            output_file=args.output,
            metrics=report.summary.to_dict(),
        )
        body = {
            "mapping": [item.to_dict() for item in mapping],
            "selectedSheetName": table.selected_sheet_name,
            **report.to_dict(),
        }
        emit_payload(args, wrap_payload("sheet_intake.reconcile", body, summary))
        if not args.json:
            emit_human(render_reconcile_text(report).rstrip(), quiet=args.quiet)
        log_summary(
            f"{report.summary.unique_new} new, {report.summary.to_update} to update, "
            f"{report.summary.duplicates_in_file} repeated in file"
        )
        if report.summary.duplicates_in_file or report.summary.duplicates_in_database:
            return EXIT_DUPLICATES_FOUND
        return EXIT_SUCCESS
    except (CliError, ConfigError, IntakeError, ImportError, OSError, ValueError) as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_fingerprint(args: argparse.Namespace) -> int:
    print(fingerprint(args.headers))
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, json_dumps(default_config_payload()) + "\n")
    eprint(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "parse":
            return run_parse(args)
        if args.command == "reconcile":
            return run_reconcile(args)
        if args.command == "fingerprint":
            return run_fingerprint(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())

"""
Country bulk import from the command line.

Validates a CSV/Excel file against the countries table, shows the
classification summary, asks for confirmation and commits in batches.
Ctrl+C during the commit stops after the current batch.

Usage:
    # Validate and import, asking before any write
    python scripts/import_countries.py data/countries.csv

    # Create-only, batches of 25, no prompt, keep an audit log
    python scripts/import_countries.py data/countries.xlsx \
        --mode create_only --batch-size 25 --yes --report import_report.json

    # Dry run
    python scripts/import_countries.py data/countries.csv --validate-only
"""

import argparse
import json
import os
import signal
import sys
from pathlib import Path

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
load_dotenv(os.path.join(_root_dir, ".env"))

from config import configure_logging, settings
from exceptions import AppError
from integrations.telegram import TelegramNotifier
from models.country_import import (
    ImportMode,
    ImportOptions,
    ImportOutcome,
    ImportProgress,
    ImportReport,
    ImportRun,
)
from services.country_service import get_country_service
from services.import_pipeline import ImportPipeline

MAX_ISSUES_SHOWN = 25


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bulk import countries from CSV or Excel")
    parser.add_argument("file", help="Path to .csv, .xlsx or .xls file")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in ImportMode],
        default=ImportMode.CREATE_AND_UPDATE.value,
    )
    parser.add_argument("--batch-size", type=int, default=settings.import_batch_size)
    parser.add_argument("--delimiter", default=",")
    parser.add_argument("--skip-duplicates", action="store_true",
                        help="Skip rows whose code already exists instead of updating them")
    parser.add_argument("--no-partial", action="store_true",
                        help="Abort the whole commit if any row has errors")
    parser.add_argument("--validate-only", action="store_true")
    parser.add_argument("--yes", action="store_true", help="Commit without asking")
    parser.add_argument("--report", help="Write the JSON run report to this path")
    return parser.parse_args(argv)


def print_progress(progress: ImportProgress) -> None:
    print(f"  [{progress.percentage:3d}%] {progress.stage.value:<10} {progress.current_step}")


def print_validation(run: ImportRun) -> None:
    stats = run.statistics
    print()
    print("=" * 60)
    print("VALIDATION SUMMARY")
    print("=" * 60)
    print(f"  Total records:     {stats.total_records}")
    print(f"  Valid:             {stats.valid_records}")
    print(f"  With errors:       {stats.invalid_records}")
    print(f"  Duplicates:        {stats.duplicate_records}")
    print(f"  New:               {stats.new_records}")
    print(f"  Updates:           {stats.update_records}")

    if run.issues:
        print()
        print(f"Issues ({len(run.issues)}):")
        for issue in run.issues[:MAX_ISSUES_SHOWN]:
            hint = f" ({issue.suggestion})" if issue.suggestion else ""
            print(f"  row {issue.row:>4} {issue.severity.value:<7} {issue.field}: {issue.message}{hint}")
        if len(run.issues) > MAX_ISSUES_SHOWN:
            print(f"  ... and {len(run.issues) - MAX_ISSUES_SHOWN} more")


def print_report(report: ImportReport) -> None:
    stats = report.statistics
    print()
    print("=" * 60)
    print(f"IMPORT {report.outcome.value.upper()}")
    print("=" * 60)
    if report.error:
        print(f"  {report.error}")
    print(f"  Committed: {stats.processed_records}")
    print(f"  Skipped:   {stats.skipped_records}")

    failed = [r for r in report.commit_results if not r.success]
    for result in failed[:MAX_ISSUES_SHOWN]:
        print(f"  row {result.record.original_row_index:>4} {result.record.code}: {result.error}")


def write_report(report: ImportReport, path: str) -> None:
    Path(path).write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
    print(f"\nReport written to {path}")


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging()

    try:
        options = ImportOptions(
            mode=ImportMode(args.mode),
            batch_size=args.batch_size,
            skip_duplicates=args.skip_duplicates,
            allow_partial_import=not args.no_partial,
            validate_only=args.validate_only,
        )
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        print(f"\nInvalid options: {problems}")
        return 1

    try:
        content = Path(args.file).read_bytes()
    except OSError as e:
        print(f"\nCannot read {args.file}: {e.strerror or e}")
        return 1

    pipeline = ImportPipeline(
        get_country_service(),
        options=options,
        progress_sink=print_progress,
        notifier=TelegramNotifier(),
    )

    try:
        run = pipeline.validate_file(content, Path(args.file).name, delimiter=args.delimiter)
    except AppError as e:
        print(f"\nImport failed: {e.message}")
        if args.report:
            write_report(pipeline.report(), args.report)
        return 1

    print_validation(run)

    if not options.commits_enabled:
        print("\nValidation only, nothing written.")
        if args.report:
            write_report(pipeline.report(), args.report)
        return 0

    if not args.yes:
        answer = input("\nCommit these records? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted, nothing written.")
            return 0

    # Ctrl+C cancels at the next batch boundary
    signal.signal(signal.SIGINT, lambda signum, frame: pipeline.cancel())

    report = pipeline.confirm()
    print_report(report)

    if args.report:
        write_report(report, args.report)

    return 0 if report.outcome == ImportOutcome.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())

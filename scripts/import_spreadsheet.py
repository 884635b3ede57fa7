"""
Import one or more spreadsheets into a collection from the command line.

Files are processed in order against one master data snapshot; each
file's change-set is folded into the snapshot before the next file, so
a later file updates rows added by an earlier one instead of
duplicating them.

Usage:
    python scripts/import_spreadsheet.py bomRecords bom_2024.xlsx bom_extra.csv
    python scripts/import_spreadsheet.py issuePlanEntries plan.xlsx --period-id P-2024-01
    python scripts/import_spreadsheet.py machines assets.xlsx --dry-run
"""

import argparse
import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

from exceptions import AppError
from models.imports import ImportTarget, PersistStatus, SkipReason
from services.import_service import get_import_service


def print_progress(current: int, total: int, batch: int, batches: int) -> None:
    print(f"  Uploading batch {batch}/{batches}: {current}/{total} records", end="\r")


def main():
    parser = argparse.ArgumentParser(
        description="Bulk import spreadsheets into a maintenance collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Targets: " + ", ".join(t.value for t in ImportTarget),
    )
    parser.add_argument(
        "target",
        help="Import target (collection key)",
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="CSV or Excel files, imported in the order given",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Reconcile and report only, write nothing",
    )
    parser.add_argument(
        "--period-id",
        help="Issue plan period applied to every row",
    )
    parser.add_argument(
        "--updated-by",
        help="User recorded on every row",
    )
    args = parser.parse_args()

    context = {}
    if args.period_id:
        context["periodId"] = args.period_id
    if args.updated_by:
        context["updatedBy"] = args.updated_by

    service = get_import_service()

    try:
        target = ImportTarget(args.target)
    except ValueError:
        print(f"ERROR: Unknown target '{args.target}'")
        sys.exit(2)

    print(f"Loading master data for {target.value}...")
    master = service.load_master_data(target)

    failures = 0
    for path in args.files:
        print("=" * 60)
        print(f"FILE: {path}")
        print("=" * 60)

        try:
            report = service.import_file(
                path,
                target,
                filename=os.path.basename(path),
                context=context or None,
                dry_run=args.dry_run,
                master_data=master,
                on_progress=print_progress,
            )
        except AppError as e:
            print(f"ERROR [{e.code}]: {e.message}")
            failures += 1
            continue

        print(f"\nHeader row: {report.header_row + 1}")
        print(f"Rows read:  {report.rows_read}")
        print(f"Added:      {report.added}")
        print(f"Updated:    {report.updated}")
        duplicates = sum(1 for s in report.skipped if s.reason == SkipReason.DUPLICATE_ROW)
        print(f"Skipped:    {len(report.skipped) - duplicates}")
        print(f"Duplicates: {duplicates}")
        print()
        print(report.message)

        if not report.success:
            failures += 1

        # Written (or, in a dry run, would-be) records feed the next file
        if report.outcome is None or report.outcome.status != PersistStatus.ERROR:
            master = master.with_records(target.value, report.change_set.records())

    print("=" * 60)
    print(f"Done: {len(args.files) - failures}/{len(args.files)} files imported")
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()

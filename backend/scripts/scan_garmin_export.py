#!/usr/bin/env python3
"""One-off: scan a Garmin Connect data export ZIP (or activities CSV) locally and print what an import would do.
Usage: python scripts/scan_garmin_export.py path/to/export.zip [target_days]"""
import json
import sys
import zipfile
from pathlib import Path

from pepmetrics.services.garmin_csv import parse_garmin_activity_csv
from pepmetrics.services.garmin_file_scanner import get_data_type_summary, scan_zip_for_garmin_files
from pepmetrics.services.garmin_json import parse_garmin_export_zip


def show_zip(path: Path, target_days: int) -> None:
    with zipfile.ZipFile(path) as archive:
        scan = scan_zip_for_garmin_files(archive, target_days=target_days)
    print(f"=== Scan (last {target_days} days) ===")
    print(f"Files: {scan.total_files} total, {scan.relevant_files} relevant, {scan.skipped_files} skipped")
    for line in get_data_type_summary(scan.data_types):
        print(" -", line)
    for info in scan.files:
        print(f"   {info.type.value:<16} {info.size:>10}  {info.filename}")
    print()

    result = parse_garmin_export_zip(path.read_bytes(), target_days=target_days)
    print("=== Merged daily summaries ===")
    print(json.dumps(result.summary.model_dump(mode="json"), indent=2))
    for day in result.daily_data[:5]:
        print(json.dumps(day.model_dump(mode="json", exclude_none=True), default=str))
    if result.errors:
        print("Errors:")
        for e in result.errors:
            print(" -", e)


def show_csv(path: Path) -> None:
    result = parse_garmin_activity_csv(path.read_text(encoding="utf-8-sig", errors="replace"))
    print("=== Activities CSV ===")
    print(json.dumps(result.summary.model_dump(mode="json"), indent=2))
    for activity in result.activities[:5]:
        print(json.dumps(activity.model_dump(mode="json", exclude={"raw_data"}), default=str))
    for e in result.errors[:10]:
        print(f" - row {e.row}: {e.message}")


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    path = Path(sys.argv[1])
    target_days = int(sys.argv[2]) if len(sys.argv) > 2 else 90
    if path.suffix.lower() == ".csv":
        show_csv(path)
    else:
        show_zip(path, target_days)


if __name__ == "__main__":
    main()

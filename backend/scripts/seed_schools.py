#!/usr/bin/env python3
"""
Seed the schools DB from a CSV file.

Usage:
  python scripts/seed_schools.py
  python scripts/seed_schools.py --csv data/my_schools.csv --db data/schools.db

CSV columns: name, address, lat, lng. Rows that duplicate an existing school
(same name, or within ~100 m) are skipped, so the script can be re-run safely.
"""
import argparse
import csv
import sys
from pathlib import Path

backend = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend))

from src.data.schools_repo import create_school, find_duplicate, init_db


def seed_from_csv(csv_path: Path, db_path: Path) -> tuple[int, int]:
    """Insert rows from csv_path into db_path. Returns (inserted, skipped)."""
    init_db(db_path)
    inserted = skipped = 0
    with open(csv_path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            name = (row.get("name") or "").strip()
            address = (row.get("address") or "").strip()
            try:
                lat = float(row.get("lat", ""))
                lng = float(row.get("lng", ""))
            except (TypeError, ValueError):
                skipped += 1
                continue
            if not name or not address or not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
                skipped += 1
                continue
            if find_duplicate(db_path, name, lat, lng) is not None:
                skipped += 1
                continue
            create_school(db_path, name=name, address=address, lat=lat, lng=lng)
            inserted += 1
    return inserted, skipped


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed schools (and init schools DB)")
    parser.add_argument(
        "--csv",
        default=backend / "data" / "schools_seed.csv",
        type=Path,
        help="CSV with columns: name, address, lat, lng",
    )
    parser.add_argument(
        "--db",
        default=backend / "data" / "schools.db",
        type=Path,
        help="Path to schools SQLite DB",
    )
    args = parser.parse_args()

    if not args.csv.exists():
        print(f"Error: CSV not found: {args.csv}", file=sys.stderr)
        return 1

    inserted, skipped = seed_from_csv(args.csv, args.db)
    print(f"Seeded {inserted} schools into {args.db} ({skipped} skipped)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

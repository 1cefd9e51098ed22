"""
Seed states, categories, statistics and import templates from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging

from db.seed import seed_reference_data
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed reference data for CSV imports.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be inserted and roll back.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    with SessionLocal() as db:
        inserted = seed_reference_data(db)
        if args.dry_run:
            db.rollback()
        else:
            db.commit()

    print(json.dumps({"dry_run": args.dry_run, "inserted": inserted}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

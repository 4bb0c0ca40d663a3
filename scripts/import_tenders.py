#!/usr/bin/env python3
"""Import tenders from a JSON file (list of portal tender objects) into the database."""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError

from tenderwatch.utils.env import load_env_if_present

load_env_if_present()

from tenderwatch.api.schemas.tender import TenderSnapshot
from tenderwatch.db.crud.tenders import upsert_tender
from tenderwatch.db.session import SessionLocal, init_db

DATE_FMT = "%Y-%m-%d %H:%M:%S"


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Upsert tenders from a JSON file. Objects are keyed by 'id' or '_id'.",
        epilog="Example: python scripts/import_tenders.py data/tenders.json",
    )
    p.add_argument("path", help="JSON file holding a list of tenders (or {'tenders': [...]})")
    p.add_argument("--dry-run", action="store_true", help="Validate only, do not write")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    ts = datetime.now().strftime(DATE_FMT)

    path = Path(args.path)
    if not path.is_file():
        print(f"{ts} [ERROR] File not found: {path}")
        return 1
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("tenders", [])

    init_db()
    db = SessionLocal()
    created = updated = errors = 0
    try:
        for i, raw in enumerate(payload):
            try:
                snap = TenderSnapshot.model_validate(raw)
            except ValidationError as e:
                errors += 1
                print(f"{ts} [WARN] Item {i} skipped: {e.error_count()} validation errors")
                continue
            if not snap.id:
                errors += 1
                print(f"{ts} [WARN] Item {i} skipped: no id")
                continue
            if args.dry_run:
                continue
            _, was_created = upsert_tender(db, snap, commit=False)
            if was_created:
                created += 1
            else:
                updated += 1
        if not args.dry_run:
            db.commit()
    finally:
        db.close()

    print(f"{ts} [INFO] Tenders: {created} created, {updated} updated, {errors} skipped")
    if args.dry_run:
        print(f"{ts} [INFO] Dry run: no changes persisted")
    return 0


if __name__ == "__main__":
    sys.exit(main())

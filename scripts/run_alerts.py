#!/usr/bin/env python3
"""Run the alert matcher and/or the digest pass once (same jobs the scheduler runs)."""
import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tenderwatch.utils.env import load_env_if_present

load_env_if_present()

from tenderwatch.core.logging import setup_logging
from tenderwatch.db.session import SessionLocal, init_db
from tenderwatch.services.alert_matcher import run_alert_matcher, run_digests

DATE_FMT = "%Y-%m-%d %H:%M:%S"


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Match active alerts against recent tenders and send due digests.",
        epilog="Example: python scripts/run_alerts.py --since-hours 48",
    )
    p.add_argument("--since-hours", type=float, default=None, help="Only tenders updated in the last N hours (default: MATCH_LOOKBACK_HOURS)")
    p.add_argument("--skip-match", action="store_true", help="Do not run the matcher")
    p.add_argument("--skip-digests", action="store_true", help="Do not run the digest pass")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    setup_logging()
    ts = datetime.now().strftime(DATE_FMT)
    now = datetime.now(timezone.utc)
    since = now - timedelta(hours=args.since_hours) if args.since_hours is not None else None

    init_db()
    db = SessionLocal()
    errors = 0
    try:
        if not args.skip_match:
            result = run_alert_matcher(db, since=since, now=now)
            errors += result["errors"]
            print(
                f"{ts} [INFO] Alerts: {result['alerts_processed']}, tenders: {result['tenders_scanned']}, "
                f"new matches: {result['new_matches']}, emails: {result['emails_sent']}, "
                f"queued: {result['queued_for_digest']}"
            )
            for item in result["details"]:
                line = f"  - {item['alert_name']}: {item['new_matches']} new"
                if item.get("error"):
                    line += f" (error: {item['error']})"
                print(line)
        if not args.skip_digests:
            digest = run_digests(db, now=now)
            errors += digest["errors"]
            print(f"{ts} [INFO] Digests sent: {digest['digests_sent']} ({digest['matches_notified']} matches)")
    finally:
        db.close()

    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())

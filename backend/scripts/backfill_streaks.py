"""
Rebuild a user's streak row from their chant entries.

Replays every entry in the order it was recorded through the same streak
rules the API applies, so the result matches what live ingestion would have
produced. Safe to run multiple times (idempotent).

Usage:
    cd backend
    SUPABASE_URL=... SUPABASE_SERVICE_KEY=... python scripts/backfill_streaks.py <user_id> [--dry-run]
"""
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path so we can import engine modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chant_tracker.db import get_client, get_streak, get_user, upsert_streak
from chant_tracker.engine.dates import parse_timestamp, to_utc_date, utc_today
from chant_tracker.engine.streak import StreakState, replay


PAGE_SIZE = 1000  # Supabase row limit per request


def fetch_all_entries(db, user_id: str) -> list[dict]:
    """Fetch all chant entries for a user in pages."""
    entries = []
    offset = 0
    while True:
        res = (
            db.table("chant_entries")
            .select("occurred_on, rounds, recorded_at")
            .eq("user_id", user_id)
            .order("recorded_at")
            .range(offset, offset + PAGE_SIZE - 1)
            .execute()
        )
        batch = res.data or []
        entries.extend(batch)
        print(f"  fetched {len(entries)} entries...", end="\r")
        if len(batch) < PAGE_SIZE:
            break
        offset += PAGE_SIZE
    print(f"  fetched {len(entries)} entries total          ")
    return entries


def compute_backfill(entries: list[dict], today) -> StreakState | None:
    ordered = sorted(entries, key=lambda e: parse_timestamp(e["recorded_at"]))
    return replay((to_utc_date(e["occurred_on"]) for e in ordered), today)


def run(user_id: str, dry_run: bool = False):
    print(f"\n🔍 Rebuilding streak for user: {user_id[:8]}...\n")

    db = get_client()

    user = get_user(db, user_id)
    if not user:
        print(f"❌ User not found: {user_id}")
        sys.exit(1)
    print(f"  Name: {user.get('display_name') or '(none)'}")

    current = StreakState.from_row(get_streak(db, user_id)) or StreakState()
    print(f"\n  Current streak: {current.to_row()}")

    print(f"\n  Fetching entries...")
    entries = fetch_all_entries(db, user_id)
    if not entries:
        print("  No entries found — nothing to backfill.")
        return

    rebuilt = compute_backfill(entries, utc_today())
    for k, v in rebuilt.to_row().items():
        current_val = current.to_row()[k]
        marker = " ✅" if v == current_val else f" 📈 (was {current_val})"
        print(f"    {k}: {v}{marker}")

    if dry_run:
        print("\n  DRY RUN — no changes written.")
        return

    upsert_streak(db, {"user_id": user_id, **rebuilt.to_row()})
    print(f"\n✅ Streak updated!\n")


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--dry-run"]
    dry = "--dry-run" in sys.argv

    if not args:
        print("Usage: python scripts/backfill_streaks.py <user_id> [--dry-run]")
        sys.exit(1)

    run(args[0], dry_run=dry)

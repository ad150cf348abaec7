"""
Public leaderboard — read-only aggregation over users, entries and streaks.
"""
from supabase import Client

from .db import list_entry_rounds, list_streaks, list_users

BEADS_PER_ROUND = 108


def build_leaderboard(db: Client, limit: int = 50) -> list[dict]:
    """Users ranked by total beads (rounds × 108). Phone numbers are not exposed."""
    totals: dict[str, int] = {}
    for row in list_entry_rounds(db):
        uid = str(row["user_id"])
        totals[uid] = totals.get(uid, 0) + (row.get("rounds") or 0)

    streaks = {str(r["user_id"]): r for r in list_streaks(db)}

    result = []
    for user in list_users(db):
        uid = str(user["user_id"])
        streak = streaks.get(uid, {})
        total_rounds = totals.get(uid, 0)
        result.append({
            "user_id": uid,
            "display_name": user.get("display_name"),
            "total_rounds": total_rounds,
            "total_beads": total_rounds * BEADS_PER_ROUND,
            "current_streak": streak.get("current_streak", 0),
            "longest_streak": streak.get("longest_streak", 0),
        })

    result.sort(key=lambda r: r["total_beads"], reverse=True)
    return result[:limit]

import os
import logging
from functools import lru_cache
from supabase import create_client, Client

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


@lru_cache(maxsize=1)
def get_client() -> Client:
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_KEY"]
    return create_client(url, key)


def close_client(db: Client) -> None:
    """Close the PostgREST HTTP session behind a client."""
    db.postgrest.session.close()


def is_unique_violation(exc: Exception) -> bool:
    if getattr(exc, "code", None) == UNIQUE_VIOLATION:
        return True
    err_str = str(exc).lower()
    return "duplicate" in err_str or "unique" in err_str or UNIQUE_VIOLATION in err_str


# ── Users ─────────────────────────────────────────────────────────────────────

def get_user_by_phone(db: Client, phone: str) -> dict | None:
    res = db.table("users").select("*").eq("phone", phone).execute()
    return res.data[0] if res.data else None


def get_user(db: Client, user_id: str) -> dict | None:
    res = db.table("users").select("*").eq("user_id", user_id).execute()
    return res.data[0] if res.data else None


def upsert_user(db: Client, row: dict) -> dict:
    """Insert or merge by phone; only the columns present in ``row`` are overwritten."""
    res = db.table("users").upsert(row, on_conflict="phone").execute()
    return res.data[0]


def insert_user(db: Client, row: dict) -> dict:
    res = db.table("users").insert(row).execute()
    return res.data[0]


def list_users(db: Client) -> list[dict]:
    res = db.table("users").select("user_id, display_name").execute()
    return res.data or []


# ── Sessions ──────────────────────────────────────────────────────────────────

def get_session(db: Client, user_id: str) -> dict | None:
    res = db.table("sessions").select("*").eq("user_id", user_id).execute()
    return res.data[0] if res.data else None


def upsert_session(db: Client, user_id: str, token: str, expires_at: str) -> None:
    # One statement, so token and expires_at are always replaced together.
    db.table("sessions").upsert(
        {"user_id": user_id, "token": token, "expires_at": expires_at},
        on_conflict="user_id",
    ).execute()


# ── Chant entries ─────────────────────────────────────────────────────────────

def insert_entry(db: Client, row: dict) -> dict:
    res = db.table("chant_entries").insert(row).execute()
    return res.data[0]


def get_entries(db: Client, user_id: str) -> list[dict]:
    res = (
        db.table("chant_entries")
        .select("entry_id, rounds, occurred_on, recorded_at")
        .eq("user_id", user_id)
        .order("recorded_at")
        .execute()
    )
    return res.data or []


def list_entry_rounds(db: Client) -> list[dict]:
    res = db.table("chant_entries").select("user_id, rounds").execute()
    return res.data or []


# ── Streaks ───────────────────────────────────────────────────────────────────

def get_streak(db: Client, user_id: str) -> dict | None:
    res = db.table("user_streaks").select("*").eq("user_id", user_id).execute()
    return res.data[0] if res.data else None


def list_streaks(db: Client) -> list[dict]:
    res = db.table("user_streaks").select("user_id, current_streak, longest_streak").execute()
    return res.data or []


def insert_streak(db: Client, row: dict) -> bool:
    """Create the first streak row. Returns False if another writer created it first."""
    try:
        db.table("user_streaks").insert(row).execute()
        return True
    except Exception as e:
        if is_unique_violation(e):
            return False
        raise


def update_streak_if_unchanged(db: Client, user_id: str, expected: dict, updates: dict) -> bool:
    """
    Conditional write: applies ``updates`` only if the row still holds the
    ``expected`` values. Returns False when a concurrent writer got there first.
    """
    query = (
        db.table("user_streaks")
        .update(updates)
        .eq("user_id", user_id)
        .eq("current_streak", expected["current_streak"])
        .eq("longest_streak", expected["longest_streak"])
    )
    if expected.get("last_counted_date") is None:
        query = query.is_("last_counted_date", "null")
    else:
        query = query.eq("last_counted_date", expected["last_counted_date"])
    res = query.execute()
    return bool(res.data)


def upsert_streak(db: Client, row: dict) -> None:
    db.table("user_streaks").upsert(row, on_conflict="user_id").execute()

"""
Append-only chant entries.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from supabase import Client

from .db import get_entries, insert_entry
from .engine.dates import to_utc_date, utc_now
from .errors import ValidationError

logger = logging.getLogger(__name__)

# Postgres INTEGER upper bound.
MAX_ROUNDS = 2**31 - 1


@dataclass(frozen=True)
class ChantEntry:
    entry_id: str
    user_id: str
    rounds: int
    occurred_on: date
    recorded_at: datetime

    def public(self) -> dict:
        return {"entry_id": self.entry_id, "rounds": self.rounds, "occurred_on": self.occurred_on.isoformat()}


def coerce_rounds(value: Any) -> int:
    # bool is an int subclass; True must not count as one round.
    if isinstance(value, bool) or value is None:
        raise ValidationError("Rounds required and must be a positive number")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValidationError("Rounds required and must be a positive number")
    if value > MAX_ROUNDS:
        raise ValidationError(f"Rounds must be at most {MAX_ROUNDS}")
    return value


def coerce_occurred_on(value: Any, today: date) -> date:
    if value is None or value == "":
        return today
    try:
        occurred_on = to_utc_date(value)
    except (TypeError, ValueError):
        raise ValidationError("occurred_on must be an ISO-8601 date")
    if occurred_on > today:
        raise ValidationError("occurred_on cannot be in the future")
    return occurred_on


class EntryLedger:
    def __init__(self, db: Client):
        self.db = db

    def append(self, user_id: str, rounds: Any, occurred_on: Any = None, today: date | None = None) -> ChantEntry:
        now = utc_now()
        today = today or now.date()
        entry = ChantEntry(
            entry_id=str(uuid.uuid4()),
            user_id=user_id,
            rounds=coerce_rounds(rounds),
            occurred_on=coerce_occurred_on(occurred_on, today),
            recorded_at=now,
        )
        insert_entry(self.db, {
            "entry_id": entry.entry_id,
            "user_id": entry.user_id,
            "rounds": entry.rounds,
            "occurred_on": entry.occurred_on.isoformat(),
            "recorded_at": entry.recorded_at.isoformat(),
        })
        logger.info("Entry recorded for %s...: %d rounds on %s", user_id[:8], entry.rounds, entry.occurred_on)
        return entry

    def summarize(self, user_id: str) -> dict:
        """Total rounds and per-day rounds, newest day first."""
        daily: dict[str, int] = {}
        for row in get_entries(self.db, user_id):
            day = str(row["occurred_on"])[:10]
            daily[day] = daily.get(day, 0) + row["rounds"]
        return {
            "total_rounds": sum(daily.values()),
            "daily": [{"date": d, "rounds": r} for d, r in sorted(daily.items(), reverse=True)],
        }
